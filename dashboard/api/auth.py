from fastapi import APIRouter, Depends
from typing import Dict, Any

from shared.models import RegisterRequest, LoginRequest
from services.auth_service import AuthService
from ..dependencies import get_auth_service

router = APIRouter(prefix="/api/auth", tags=["auth"])

@router.post("/register", response_model=Dict[str, Any])
async def register(
    request: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Регистрация пользователя. Новая учетная запись требует оплаты подписки
    """
    return await auth_service.register(request.email, request.password)

@router.post("/login", response_model=Dict[str, Any])
async def login(
    request: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Вход по email и паролю"""
    return await auth_service.login(request.email, request.password)
