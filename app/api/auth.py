from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.api_models import AuthResponse, LoginRequest, RegisterRequest, UserOut
from app.services.db_service import db_service, get_session
from app.services.user_service import UserService

router = APIRouter()

@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=AuthResponse)
async def register(req: RegisterRequest, session: AsyncSession = Depends(get_session)):
    with db_service.guard("Failed to create user"):
        user, token = await UserService(session).register(req)
    return AuthResponse(user=UserOut.model_validate(user), token=token)

@router.post("/login", response_model=AuthResponse)
async def login(req: LoginRequest, session: AsyncSession = Depends(get_session)):
    with db_service.guard("Login failed"):
        user, token = await UserService(session).login(req)
    return AuthResponse(user=UserOut.model_validate(user), token=token)
