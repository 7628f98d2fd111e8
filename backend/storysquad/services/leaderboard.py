from __future__ import annotations
from sqlalchemy import select, func, or_
import structlog

from storysquad.deps import Deps
from storysquad.errors import NotFoundError
from storysquad.models.contest import Top3, Winner, Vote
from storysquad.models.rumble import Prompt
from storysquad.models.submission import Submission
from storysquad.schemas.contest import TopTen, LogEntryPublic, VoteCreate, VotePublic, VoteTallyRow
from storysquad.schemas.submission import SubItem
from storysquad.services.submissions import SubmissionService
from storysquad.services.transactions import transaction

log = structlog.get_logger()

TOP_N = 10
FINALISTS = 3
# points per place when tallying votes
PLACE_POINTS = (3, 2, 1)


class LeaderboardService:
    """
    Rankings for the active prompt.

    Top3 and Winner are append-only logs; the "current" finalists / winner are
    simply the newest rows (created_at, then id, descending). Nothing is ever
    updated in place, and a new prompt does not clear the previous top 3.
    """

    def __init__(self, deps: Deps):
        self.deps = deps
        self.session = deps.session
        self.subs = SubmissionService(deps)

    async def _active_prompt_id(self) -> int:
        prompt_id = await self.session.scalar(
            select(Prompt.id).where(Prompt.active.is_(True)).order_by(Prompt.id.desc()).limit(1)
        )
        if prompt_id is None:
            log.warning("active_prompt_missing")
            raise NotFoundError("No active prompt")
        return prompt_id

    async def get_top_ten(self) -> TopTen:
        prompt_id = await self._active_prompt_id()
        subs = (await self.session.execute(
            select(Submission)
            .where(Submission.prompt_id == prompt_id)
            .order_by(Submission.score.desc(), Submission.id.asc())  # ties: earlier entry first
            .limit(TOP_N)
        )).scalars().all()
        items = await self.subs.to_sub_items(subs)

        frozen = await self.session.scalar(
            select(func.count())
            .select_from(Top3)
            .join(Submission, Submission.id == Top3.submission_id)
            .where(Submission.prompt_id == prompt_id)
        )
        return TopTen(subs=items, has_voted=int(frozen or 0) > 0)

    async def set_top3(self, ids: list[int]) -> list[LogEntryPublic]:
        # No dedup and no "exactly three" check; callers own that
        rows = [Top3(submission_id=sid) for sid in ids]
        async with transaction(self.session):
            self.session.add_all(rows)
            await self.session.flush()
            for r in rows:
                await self.session.refresh(r)
        log.info("top3_frozen", submission_ids=ids)
        return [LogEntryPublic.model_validate(r) for r in rows]

    async def _current_top3(self) -> list[Submission]:
        return list((await self.session.execute(
            select(Submission)
            .join(Top3, Top3.submission_id == Submission.id)
            .order_by(Top3.created_at.desc(), Top3.id.desc())
            .limit(FINALISTS)
        )).scalars().all())

    async def get_top3_subs(self) -> list[SubItem]:
        return await self.subs.to_sub_items(await self._current_top3())

    async def get_recent_winner(self) -> SubItem | None:
        winner = await self.session.scalar(
            select(Submission)
            .join(Winner, Winner.submission_id == Submission.id)
            .order_by(Winner.created_at.desc(), Winner.id.desc())
            .limit(1)
        )
        if winner is None:
            return None
        return await self.subs.retrieve_sub_item(winner)

    # ---------- voting ----------

    async def cast_vote(self, voter_id: int, body: VoteCreate) -> VotePublic:
        vote = Vote(
            voter_id=voter_id,
            first_place_id=body.first_place_id,
            second_place_id=body.second_place_id,
            third_place_id=body.third_place_id,
        )
        async with transaction(self.session):
            self.session.add(vote)
            await self.session.flush()
            await self.session.refresh(vote)
        log.info("vote_cast", vote_id=vote.id, voter_id=voter_id)
        return VotePublic.model_validate(vote)

    async def tally_votes(self, submission_ids: list[int] | None = None) -> list[VoteTallyRow]:
        """
        Points per submission (3/2/1 for first/second/third place), highest
        first. Defaults to the current finalists; ties keep the order the ids
        were given in, which for finalists is the order they were frozen.
        """
        if submission_ids is None:
            submission_ids = [s.id for s in reversed(await self._current_top3())]
        # a finalist frozen twice is still one candidate
        submission_ids = list(dict.fromkeys(submission_ids))
        if not submission_ids:
            return []

        votes = (await self.session.execute(
            select(Vote).where(or_(
                Vote.first_place_id.in_(submission_ids),
                Vote.second_place_id.in_(submission_ids),
                Vote.third_place_id.in_(submission_ids),
            ))
        )).scalars().all()

        points = {sid: 0 for sid in submission_ids}
        for v in votes:
            for sid, pts in zip((v.first_place_id, v.second_place_id, v.third_place_id), PLACE_POINTS):
                if sid in points:
                    points[sid] += pts

        # sorted() is stable, so equal totals keep input order
        ranked = sorted(submission_ids, key=lambda sid: -points[sid])
        return [VoteTallyRow(submission_id=sid, points=points[sid]) for sid in ranked]

    async def crown_winner(self) -> SubItem:
        tally = await self.tally_votes()
        if not tally:
            log.warning("crown_without_top3")
            raise NotFoundError("No top 3 to pick a winner from")

        leader = tally[0].submission_id
        async with transaction(self.session):
            self.session.add(Winner(submission_id=leader))
        log.info("winner_crowned", submission_id=leader, points=tally[0].points)

        s = await self.session.get(Submission, leader)
        return await self.subs.retrieve_sub_item(s)
