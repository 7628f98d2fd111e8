from __future__ import annotations
from fastapi import APIRouter, Depends, Request
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from storysquad.config import settings
from storysquad.db import get_session, ping

router = APIRouter(tags=["system"])

@router.get("/health")
async def health(request: Request, session: AsyncSession = Depends(get_session)):
    db_ok = await ping(session)
    return {
        "status": "ok" if db_ok else "degraded",
        "db": "ok" if db_ok else "unreachable",
        "env": settings.environment,
        "time": datetime.now(timezone.utc).isoformat(),
        "request_id": request.headers.get("x-request-id") or request.state.request_id,
    }

@router.get("/version")
async def version():
    return {
        "name": settings.app_name,
        "display_name": settings.app_display_name,
        "version": settings.app_version,
        "git_sha": settings.git_sha,
    }
