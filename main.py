"""
Main FastAPI application entry point
"""
import multiprocessing
import uvicorn
from app.core.app import create_app
from app.core.config import get_settings

settings = get_settings()
app = create_app()

if __name__ == "__main__":
    if settings.DEBUG:
        # Development: single worker with hot reload
        uvicorn.run(
            "main:app",
            host=settings.HOST,
            port=settings.PORT,
            reload=True,
            log_level=settings.LOG_LEVEL.lower()
        )
    else:
        # Signup staging lives in Redis, so every worker sees the same records
        workers = settings.UVICORN_WORKERS or min(multiprocessing.cpu_count() * 2 + 1, 8)
        uvicorn.run(
            "main:app",
            host=settings.HOST,
            port=settings.PORT,
            workers=workers,
            reload=False,
            log_level=settings.LOG_LEVEL.lower()
        )
