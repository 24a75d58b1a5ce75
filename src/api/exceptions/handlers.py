# src/api/exceptions/handlers.py
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.responses import JSONResponse

from src.exceptions import GradingError
from src.logging_config import app_logger
from src.schema.base import BaseResponse


def _failure(status_code: int, message: str, error: dict) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(BaseResponse.failure(message, error)),
    )


async def grading_error_handler(request: Request, exc: GradingError) -> JSONResponse:
    if exc.status_code >= 500:
        app_logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        app_logger.info(
            f"{request.method} {request.url.path} → {exc.status_code} {exc.code}: {exc.message}"
        )
    return _failure(exc.status_code, exc.message, exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _failure(
        422,
        "Invalid request",
        {
            "code": "VALIDATION_ERROR",
            "message": "Invalid request",
            "details": {"errors": jsonable_encoder(exc.errors())},
        },
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    code = "UNAUTHORIZED" if exc.status_code == status.HTTP_401_UNAUTHORIZED else "HTTP_ERROR"
    return _failure(
        exc.status_code,
        str(exc.detail),
        {"code": code, "message": str(exc.detail), "details": {}},
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(GradingError, grading_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
