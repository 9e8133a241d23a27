import os
import time
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
from .db import init_db, close_db
from .errors import TaskBoardError, ValidationFailedError
from .routes import categories, subtasks, tasks

# Load environment variables
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    await init_db()
    logger.info("Database initialized successfully")
    yield
    await close_db()


app = FastAPI(
    title="Task Board API",
    description="Tasks organized by category, with ordered subtasks, status tracking and soft delete",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
allowed_origins = os.getenv("ALLOWED_ORIGINS", "*")
cors_origins = ["*"] if allowed_origins == "*" else [o.strip() for o in allowed_origins.split(",")]
logger.info("CORS origins: %s", cors_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info("%s %s -> %s (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


@app.exception_handler(TaskBoardError)
async def task_board_error_handler(request: Request, exc: TaskBoardError):
    """Translate domain errors into HTTP responses"""
    if isinstance(exc, ValidationFailedError):
        # Same shape as FastAPI's request validation errors
        loc = ["body", exc.field] if exc.field else ["body"]
        content = {"detail": [{"loc": loc, "msg": exc.message, "type": "value_error"}]}
    else:
        content = {"detail": exc.message}
    return JSONResponse(status_code=exc.status_code, content=content)


app.include_router(tasks.router, prefix="/api")
app.include_router(subtasks.router, prefix="/api")
app.include_router(categories.router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Task Board API",
        "version": app.version,
        "status": "running",
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "task-board-api",
        "version": app.version,
    }


@app.get("/api/info")
async def api_info():
    """API information endpoint"""
    return {
        "endpoints": {
            "tasks": "/api/tasks",
            "subtasks": "/api/subtasks/{id}/toggle",
            "categories": "/api/categories",
        },
        "features": [
            "Tasks with ordered subtasks",
            "Filtering by category, status and priority",
            "Sorting by creation, last activity or due date",
            "Status transitions with done as a final state",
            "Soft delete",
        ]
    }


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    host = os.getenv("HOST", "0.0.0.0")
    debug = os.getenv("DEBUG", "False").lower() == "true"

    uvicorn.run(
        "app.main:app",
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )
