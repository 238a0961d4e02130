from fastapi import APIRouter
from app.api.health.routes import health_router
from app.api.refunds.routes import refunds_router
api_router = APIRouter()

api_router.include_router(health_router, prefix="/health", tags=["health"])
api_router.include_router(refunds_router, prefix="/refunds", tags=["refunds"])
