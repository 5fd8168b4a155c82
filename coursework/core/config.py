import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent.parent

# DEV default is a local SQLite file; deployments set COURSEWORK_DATABASE_URL.
DATABASE_URL = os.getenv("COURSEWORK_DATABASE_URL", f"sqlite:///{BASE_DIR}/coursework.db")

# Upload boundary
MAX_UPLOAD_BYTES = 10 * 1024 * 1024  # 10 MiB
BLOB_IO_TIMEOUT_SECONDS = 30.0

# Tasks
DEFAULT_TOTAL_POINTS = 100
MAX_TOTAL_POINTS = 1000
TITLE_MAX_LENGTH = 200

# Analytics
DEFAULT_ACTIVITY_WEEKS = 12
MAX_ACTIVITY_WEEKS = 104

# Listing
DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 100

# Grades
PASSING_PERCENT = 70
# category weights of the overall average; a category with nothing graded counts as 100
GRADE_WEIGHTS = {"assignment": 0.15, "quiz": 0.35, "exam": 0.50}
TOP_TASKS_LIMIT = 10
RECENT_GRADES_LIMIT = 10

# Dashboards
UPCOMING_TASKS_LIMIT = 5
RECENT_PENDING_LIMIT = 5
