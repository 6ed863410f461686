"""Health & Readiness Probes.

Invariants:
    - GET /health/ answers 200 while the process is up (liveness)
    - GET /health/ready answers 503 until the store round-trips a query (readiness)

Design Decisions:
    - db_manager read at call time: it is created in the lifespan, after this module is imported
    - Service name and version come from the FastAPI app, declared once in main.py
"""

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from skillloop.infrastructure import database

router = APIRouter(prefix="/api/v1/health", tags=["health"])


async def _database_status() -> str:
    manager = database.db_manager
    if manager is None:
        return "uninitialized"
    return "healthy" if await manager.health_check() else "unreachable"


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check(request: Request):
    return {
        "status": "healthy",
        "service": "skillloop-api",
        "version": request.app.version,
    }


@router.get("/ready")
async def readiness_check():
    checks = {"database": await _database_status()}
    if checks["database"] != "healthy":
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "reason": "database_unavailable",
                "checks": checks,
            },
        )
    return {"status": "ready", "checks": checks}
