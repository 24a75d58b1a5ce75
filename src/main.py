from contextlib import asynccontextmanager

from fastapi import FastAPI

from src.api.exceptions.handlers import register_exception_handlers
from src.api.routes.grades import router as grades_router
from src.database import init_db
from src.logging_config import app_logger
from src.settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    app_logger.info("Internship grading service started")
    yield


app = FastAPI(
    title="Internship Grading Service",
    version=settings.API_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}

app.include_router(grades_router)
register_exception_handlers(app)
