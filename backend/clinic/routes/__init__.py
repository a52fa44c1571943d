# clinic/routes/__init__.py
from fastapi import APIRouter
from .consultations import router as consultations_router

router = APIRouter()
router.include_router(consultations_router)
