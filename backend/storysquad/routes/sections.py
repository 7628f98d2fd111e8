from __future__ import annotations
from fastapi import APIRouter, Depends
from storysquad.auth_deps import get_current_user, require_role
from storysquad.deps import Deps, get_deps
from storysquad.models.user import User
from storysquad.schemas.section import SectionCreate, SectionPublic, SectionWithRumbles, EnrollRequest, StudentPublic
from storysquad.schemas.submission import SubItem
from storysquad.services.sections import SectionService

router = APIRouter(prefix="/sections", tags=["sections"])

@router.post("", response_model=SectionPublic, status_code=201)
async def create_section(
    payload: SectionCreate,
    deps: Deps = Depends(get_deps),
    user: User = Depends(require_role("teacher")),
):
    return await SectionService(deps).create_section(payload, user.id)

@router.get("", response_model=list[SectionWithRumbles])
async def list_my_sections(deps: Deps = Depends(get_deps), user: User = Depends(get_current_user)):
    return await SectionService(deps).list_sections_for_user(user)

@router.post("/{section_id}/students", response_model=SectionWithRumbles, status_code=201)
async def join_section(
    section_id: int,
    payload: EnrollRequest,
    deps: Deps = Depends(get_deps),
    user: User = Depends(require_role("student")),
):
    return await SectionService(deps).enroll_student(payload.join_code, section_id, user.id)

@router.get("/{section_id}/students", response_model=list[StudentPublic])
async def list_students(
    section_id: int,
    deps: Deps = Depends(get_deps),
    user: User = Depends(require_role("teacher", "admin")),
):
    return await SectionService(deps).list_students_in_section(section_id)

@router.get("/{section_id}/students/{student_id}/submissions", response_model=list[SubItem])
async def list_student_submissions(
    section_id: int,
    student_id: int,
    deps: Deps = Depends(get_deps),
    user: User = Depends(require_role("teacher", "admin")),
):
    return await SectionService(deps).get_student_submissions(student_id, section_id)
