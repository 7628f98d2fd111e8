from __future__ import annotations
import uuid
from fastapi import APIRouter, Depends, HTTPException, Query, Form, UploadFile, File, Response
from storysquad.auth_deps import get_current_user, require_role
from storysquad.deps import Deps, get_deps
from storysquad.models.submission import SubmissionSource, TranscriptionSource
from storysquad.models.user import User
from storysquad.schemas.submission import SubItem, UploadResponse, FlagCreate, FlagPublic
from storysquad.services.media import validate_page, ext_for_mime
from storysquad.services.submissions import SubmissionService

router = APIRouter(prefix="/submissions", tags=["submissions"])

@router.post("", response_model=SubItem, status_code=201)
async def submit_page(
    file: UploadFile = File(..., description="scanned page, JPEG or PNG"),
    prompt_id: int = Form(...),
    rumble_id: int | None = Form(default=None),
    transcription: str | None = Form(default=None, description="student-typed transcription"),
    deps: Deps = Depends(get_deps),
    user: User = Depends(get_current_user),
):
    data = await file.read()
    try:
        mime = validate_page(data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid image: {str(e)}")

    label = f"sub/{user.id}/{uuid.uuid4().hex}.{ext_for_mime(mime)}"
    etag = await deps.blobs.put(label, data, mime)
    upload = UploadResponse(blob_label=label, etag=etag, raw=data)

    return await SubmissionService(deps).process_submission(
        upload,
        prompt_id,
        user,
        source_id=SubmissionSource.RUMBLE if rumble_id is not None else SubmissionSource.FDSC,
        rumble_id=rumble_id,
        transcription=transcription,
        transcription_source_id=TranscriptionSource.USER if transcription else TranscriptionSource.DS,
    )

@router.get("/mine", response_model=list[SubItem])
async def my_submissions(
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    deps: Deps = Depends(get_deps),
    user: User = Depends(get_current_user),
):
    return await SubmissionService(deps).get_user_submissions(user.id, limit=limit, offset=offset)

@router.get("/{submission_id}", response_model=SubItem)
async def get_submission(
    submission_id: int,
    deps: Deps = Depends(get_deps),
    user: User = Depends(get_current_user),
):
    return await SubmissionService(deps).get_by_id(submission_id)

@router.get("/{submission_id}/flags", response_model=list[str])
async def list_flags(
    submission_id: int,
    deps: Deps = Depends(get_deps),
    user: User = Depends(require_role("teacher", "admin")),
):
    return await SubmissionService(deps).get_flags_by_sub_id(submission_id)

@router.post("/{submission_id}/flags", response_model=list[FlagPublic], status_code=201)
async def flag_submission(
    submission_id: int,
    payload: FlagCreate,
    anonymous: bool = Query(default=False, description="don't record who raised the flag"),
    deps: Deps = Depends(get_deps),
    user: User = Depends(get_current_user),
):
    creator_id = None if anonymous else user.id
    return await SubmissionService(deps).flag_submission(submission_id, payload.flag_ids, creator_id)

@router.delete("/{submission_id}/flags/{flag_id}", status_code=204)
async def remove_flag(
    submission_id: int,
    flag_id: int,
    deps: Deps = Depends(get_deps),
    user: User = Depends(require_role("teacher", "admin")),
):
    removed = await SubmissionService(deps).remove_flag(submission_id, flag_id)
    if not removed:
        raise HTTPException(status_code=404, detail="Flag not found")
    return Response(status_code=204)
