from fastapi import APIRouter

from app.core.config import settings
from app.models.api_models import HealthResponse
from app.services.db_service import db_service

router = APIRouter()

@router.get("/")
async def hello():
    return {"message": "Hello, world! Room booking backend is running"}

@router.get("/health", response_model=HealthResponse)
async def health_check():
    return HealthResponse(
        status="ok",
        db=await db_service.health(),
        backend_image=settings.BACKEND_IMAGE,
        frontend_image=settings.FRONTEND_IMAGE,
    )
