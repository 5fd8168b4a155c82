import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from coursework.core.errors import CourseworkError
from coursework.core.logging_middleware import LoggingMiddleware
from coursework.db.init_db import init_db
from coursework.routers.analytics import router as analytics_router
from coursework.routers.dashboard import router as dashboard_router
from coursework.routers.files import router as files_router
from coursework.routers.grades import router as grades_router
from coursework.routers.submissions import router as submissions_router
from coursework.routers.tasks import router as tasks_router
from coursework.routers.users import router as users_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Coursework")

# Middleware
app.add_middleware(LoggingMiddleware)


@app.exception_handler(CourseworkError)
async def coursework_error_handler(request: Request, exc: CourseworkError):
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.message,
            "code": exc.code,
            "status": getattr(exc, "current_status", None),
        },
    )


# Health check
@app.get("/health")
def health():
    return {"status": "ok"}


# Startup event
@app.on_event("startup")
def on_startup():
    init_db()


app.include_router(users_router, prefix="/users", tags=["users"])
app.include_router(tasks_router, prefix="/tasks", tags=["tasks"])
# submission routes span /tasks/{id}/submission and /submissions/{id}, so no prefix
app.include_router(submissions_router, tags=["submissions"])
app.include_router(files_router, prefix="/files", tags=["files"])
app.include_router(analytics_router, prefix="/analytics", tags=["analytics"])
app.include_router(grades_router, prefix="/grades", tags=["grades"])
app.include_router(dashboard_router, prefix="/dashboard", tags=["dashboard"])
