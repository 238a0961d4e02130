from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import GlobalException
from app.core.errors import ErrorCode
from app.core.messages import ErrorMessage
from app.core.middlewares import logger
from app.utils.response import ApiResponse, ErrorDetail


def register_exception_handlers(app: FastAPI):
    # ---------- Custom Domain Errors ----------
    @app.exception_handler(GlobalException)
    async def handle_global_exception(
        request: Request, exc: GlobalException
    ):
        return JSONResponse(
            status_code=exc.status_code,
            content=ApiResponse(
                success=False,
                statusCode=exc.status_code,
                message=exc.message,
                data=exc.data,
                errors=[
                    ErrorDetail(
                        code=exc.error_code,
                        message=exc.message,
                    )
                ],
            ).model_dump(),
        )

    # ---------- Request Validation ----------
    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(
        request: Request, exc: RequestValidationError
    ):
        return JSONResponse(
            status_code=422,
            content=ApiResponse(
                success=False,
                statusCode=422,
                message="Validation failed",
                data=None,
                errors=[
                    ErrorDetail(
                        code=ErrorCode.REQUEST_VALIDATION_ERROR,
                        field=".".join(str(part) for part in error.get("loc", ())),
                        message=error.get("msg", ""),
                    )
                    for error in exc.errors()
                ],
            ).model_dump(),
        )

    # ---------- Database Errors ----------
    @app.exception_handler(SQLAlchemyError)
    async def handle_database_error(
        request: Request, exc: SQLAlchemyError
    ):
        logger.error(f"Database error on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content=ApiResponse(
                success=False,
                statusCode=500,
                message=ErrorMessage.DATABASE_FAILURE,
                data=None,
                errors=[
                    ErrorDetail(
                        code=ErrorCode.DATABASE_ERROR,
                        message=str(exc),
                    )
                ],
            ).model_dump(),
        )

    # ---------- Catch-all (500) ----------
    @app.exception_handler(Exception)
    async def handle_unhandled_exception(
        request: Request, exc: Exception
    ):
        logger.exception(f"Unhandled error on {request.url.path}")
        return JSONResponse(
            status_code=500,
            content=ApiResponse(
                success=False,
                statusCode=500,
                message=ErrorMessage.SERVER_ERROR,
                data=None,
                errors=[
                    ErrorDetail(
                        code=ErrorCode.INTERNAL_SERVER_ERROR,
                        message=str(exc),
                    )
                ],
            ).model_dump(),
        )
