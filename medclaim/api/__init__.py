# API module
from fastapi import APIRouter

from .claims import router as claims_router
from .payments import router as payments_router
from .treatments import router as treatments_router

router = APIRouter()
router.include_router(claims_router)
router.include_router(payments_router)
router.include_router(treatments_router)

__all__ = ["router"]
