from __future__ import annotations
from fastapi import APIRouter, Depends
from storysquad.auth_deps import get_current_user, require_role
from storysquad.deps import Deps, get_deps
from storysquad.models.user import User
from storysquad.schemas.rumble import RumbleBatchCreate, RumblePublic, RumbleWithSectionInfo, RumbleStarted
from storysquad.services.rumbles import RumbleService

router = APIRouter(prefix="/rumbles", tags=["rumbles"])

@router.post("", response_model=list[RumbleWithSectionInfo], status_code=201)
async def create_rumbles(
    payload: RumbleBatchCreate,
    deps: Deps = Depends(get_deps),
    user: User = Depends(require_role("teacher")),
):
    return await RumbleService(deps).create_instances(payload.rumble, payload.section_ids)

@router.post("/{rumble_id}/sections/{section_id}/start", response_model=RumbleStarted)
async def start_rumble(
    rumble_id: int,
    section_id: int,
    deps: Deps = Depends(get_deps),
    user: User = Depends(require_role("teacher")),
):
    end_time = await RumbleService(deps).start_rumble(section_id, rumble_id)
    return RumbleStarted(rumble_id=rumble_id, section_id=section_id, end_time=end_time)

@router.get("/sections/{section_id}", response_model=list[RumblePublic])
async def active_rumbles(
    section_id: int,
    deps: Deps = Depends(get_deps),
    user: User = Depends(get_current_user),
):
    return await RumbleService(deps).active_rumbles_for_section(section_id)
