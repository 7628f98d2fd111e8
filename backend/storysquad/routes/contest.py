from __future__ import annotations
from fastapi import APIRouter, Depends
from storysquad.auth_deps import get_current_user, require_role
from storysquad.deps import Deps, get_deps
from storysquad.models.user import User
from storysquad.schemas.contest import TopTen, Top3Create, LogEntryPublic, VoteCreate, VotePublic, VoteTallyRow
from storysquad.schemas.submission import SubItem
from storysquad.services.leaderboard import LeaderboardService

router = APIRouter(tags=["contest"])

@router.get("/leaderboard", response_model=TopTen)
async def leaderboard(deps: Deps = Depends(get_deps), user: User = Depends(get_current_user)):
    return await LeaderboardService(deps).get_top_ten()

@router.get("/top3", response_model=list[SubItem])
async def current_top3(deps: Deps = Depends(get_deps), user: User = Depends(get_current_user)):
    return await LeaderboardService(deps).get_top3_subs()

@router.post("/top3", response_model=list[LogEntryPublic], status_code=201)
async def freeze_top3(
    payload: Top3Create,
    deps: Deps = Depends(get_deps),
    user: User = Depends(require_role("admin")),
):
    return await LeaderboardService(deps).set_top3(payload.ids)

@router.get("/winner", response_model=SubItem | None)
async def recent_winner(deps: Deps = Depends(get_deps), user: User = Depends(get_current_user)):
    return await LeaderboardService(deps).get_recent_winner()

@router.post("/winner", response_model=SubItem, status_code=201)
async def crown_winner(deps: Deps = Depends(get_deps), user: User = Depends(require_role("admin"))):
    return await LeaderboardService(deps).crown_winner()

@router.post("/votes", response_model=VotePublic, status_code=201)
async def cast_vote(
    payload: VoteCreate,
    deps: Deps = Depends(get_deps),
    user: User = Depends(get_current_user),
):
    return await LeaderboardService(deps).cast_vote(user.id, payload)

@router.get("/votes/tally", response_model=list[VoteTallyRow])
async def vote_tally(deps: Deps = Depends(get_deps), user: User = Depends(require_role("admin"))):
    return await LeaderboardService(deps).tally_votes()
