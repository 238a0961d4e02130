import logging
import time

from fastapi import FastAPI, Request

from app.core.config import Config
from app.core.request_context import GatewayAuthContextMiddleware


logging.basicConfig(
    level=Config.LOG_LEVEL,
    format="%(asctime)s %(name)s %(levelname)s: %(message)s",
)

logger = logging.getLogger("refund-service")


def register_middleware(app: FastAPI):
    app.add_middleware(GatewayAuthContextMiddleware)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)"
        )
        return response
