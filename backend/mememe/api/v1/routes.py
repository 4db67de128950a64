from fastapi import APIRouter

from mememe.api.v1.endpoints.admin import router as admin_router
from mememe.api.v1.endpoints.health import router as health_router
from mememe.api.v1.endpoints.templates import router as templates_router

router = APIRouter()
router.include_router(health_router, tags=["meta"])
router.include_router(templates_router, prefix="/templates", tags=["templates"])
router.include_router(admin_router, tags=["admin"])
