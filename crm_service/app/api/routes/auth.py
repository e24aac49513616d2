from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_auth_provider, get_current_subject
from app.core.database import get_db
from app.core.firebase import AuthProvider
from app.schemas.auth import LoginRequest, LoginResponse, SignupRequest, SignupResponse, UserRead
from app.services.auth import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


def get_auth_service(
    db: AsyncSession = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
) -> AuthService:
    return AuthService(db, provider)


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
async def signup(data: SignupRequest, service: AuthService = Depends(get_auth_service)):
    return await service.signup(data)


@router.post("/login", response_model=LoginResponse)
async def login(data: LoginRequest, service: AuthService = Depends(get_auth_service)):
    return await service.login(data)


@router.get("/me", response_model=UserRead)
async def me(
    subject_id: str = Depends(get_current_subject),
    service: AuthService = Depends(get_auth_service),
):
    return await service.me(subject_id)
