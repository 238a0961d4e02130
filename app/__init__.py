from contextlib import asynccontextmanager

from fastapi import FastAPI
from app.api.router import api_router
from app.core.config import Config
from app.core.exception_handlers import register_exception_handlers
from app.core.middlewares import register_middleware
from app.db.main import async_engine, init_db


version = "v1"

description = """
A REST API for refund and statutory withdrawal requests.
    """

version_prefix =f"/api/{version}"


@asynccontextmanager
async def lifespan(app: FastAPI):
    if Config.DB_AUTO_CREATE:
        await init_db()

    yield

    await async_engine.dispose()


app = FastAPI(
    title="refund-service",
    description=description,
    version=version,
    lifespan=lifespan,
    license_info={"name": "MIT License", "url": "https://opensource.org/license/mit"},
    openapi_url=f"{version_prefix}/openapi.json",
    docs_url=f"{version_prefix}/docs",
    redoc_url=f"{version_prefix}/redoc"
)

register_exception_handlers(app)


register_middleware(app)


app.include_router(api_router, prefix=f"{version_prefix}")
