from coursework.db.base_class import Base

# import models so Base.metadata has every table
from coursework.models.user import User  # noqa: F401
from coursework.models.task import Task, TaskAssignee  # noqa: F401
from coursework.models.submission import Submission  # noqa: F401
from coursework.models.blob import ContentBlob  # noqa: F401
