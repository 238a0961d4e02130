from fastapi import APIRouter
from app.api.health import (
    check_database,
    check_disk,
    check_memory
)

health_router = APIRouter()
@health_router.get("/")
async def health_check():
    db_status = await check_database()

    disk = check_disk()
    memory = check_memory()

    status = "ok"
    if db_status == "down":
        status = "degraded"

    return {
        "status": status,
        "checks": {
            "database": db_status,
            "disk": disk,
            "memory": memory
        }
    }
