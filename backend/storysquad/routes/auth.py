from __future__ import annotations
from fastapi import APIRouter, Depends, Query, Response
from storysquad.auth_deps import get_current_user
from storysquad.deps import Deps, get_deps
from storysquad.models.user import User
from storysquad.schemas.auth import (
    SignUpRequest, LoginRequest, ActivationRequest, ResetCodeRequest, ResetPasswordRequest, UserPublic, AuthResponse,
)
from storysquad.services.auth import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/register", status_code=201, response_model=UserPublic)
async def register(payload: SignUpRequest, deps: Deps = Depends(get_deps)):
    return await AuthService(deps).sign_up(payload)

@router.post("/activation", response_model=AuthResponse)
async def activate(payload: ActivationRequest, deps: Deps = Depends(get_deps)):
    return await AuthService(deps).validate(payload.email, payload.token)

@router.get("/activation", response_model=AuthResponse)
async def activate_from_link(
    email: str = Query(...),
    token: str = Query(...),
    deps: Deps = Depends(get_deps),
):
    # target of the link in the validation e-mail
    return await AuthService(deps).validate(email, token)

@router.post("/login", response_model=AuthResponse)
async def login(payload: LoginRequest, deps: Deps = Depends(get_deps)):
    return await AuthService(deps).sign_in(payload.email, payload.password)

@router.post("/reset/email", status_code=202)
async def request_reset_code(payload: ResetCodeRequest, deps: Deps = Depends(get_deps)):
    await AuthService(deps).request_password_reset(payload.email)
    return {"status": "sent"}

@router.post("/reset/password", status_code=204)
async def reset_password(payload: ResetPasswordRequest, deps: Deps = Depends(get_deps)):
    await AuthService(deps).reset_password(payload.email, payload.password, payload.code)
    return Response(status_code=204)

@router.get("/me", response_model=UserPublic)
async def me(user: User = Depends(get_current_user)):
    return UserPublic.model_validate(user)
