from __future__ import annotations
import pydantic
import pytest
from storysquad.errors import NotFoundError
from storysquad.schemas.contest import VoteCreate
from storysquad.services.leaderboard import LeaderboardService


async def _finalists(factory, scores=(90, 80, 70)):
    prompt = await factory.prompt()
    subs = []
    for score in scores:
        author = await factory.user()
        subs.append(await factory.submission(author, prompt, score=score))
    return prompt, subs


@pytest.mark.asyncio
async def test_top_ten_needs_active_prompt(deps, factory):
    await factory.prompt(active=False)
    with pytest.raises(NotFoundError):
        await LeaderboardService(deps).get_top_ten()


@pytest.mark.asyncio
async def test_top_ten_order_and_ties(deps, factory):
    prompt = await factory.prompt()
    old = await factory.prompt("Last week", active=False)
    author = await factory.user()
    scores = [55, 90, 72, 90, 10, 33, 64, 81, 47, 20, 99, 5]
    subs = [await factory.submission(author, prompt, score=s) for s in scores]
    await factory.submission(author, old, score=100)

    board = await LeaderboardService(deps).get_top_ten()

    assert len(board.subs) == 10
    assert [s.score for s in board.subs] == [99, 90, 90, 81, 72, 64, 55, 47, 33, 20]
    # equal scores: earlier entry first
    tied = [s.id for s in board.subs if s.score == 90]
    assert tied == [subs[1].id, subs[3].id]
    assert board.has_voted is False


@pytest.mark.asyncio
async def test_has_voted_only_counts_current_prompt(deps, session, factory):
    old_prompt, old_subs = await _finalists(factory)
    svc = LeaderboardService(deps)
    await svc.set_top3([s.id for s in old_subs])
    assert (await svc.get_top_ten()).has_voted is True

    old_prompt.active = False
    await session.commit()
    new_prompt = await factory.prompt("Fresh prompt")
    await factory.submission(await factory.user(), new_prompt, score=12)

    board = await svc.get_top_ten()
    assert board.has_voted is False
    # the previous finalists stay current until replaced
    assert [s.id for s in await svc.get_top3_subs()] == [s.id for s in reversed(old_subs)]


@pytest.mark.asyncio
async def test_latest_top3_wins(deps, factory):
    _, subs = await _finalists(factory, scores=(10, 20, 30, 40, 50, 60))
    svc = LeaderboardService(deps)
    first = await svc.set_top3([s.id for s in subs[:3]])
    await svc.set_top3([s.id for s in subs[3:]])

    assert [row.submission_id for row in first] == [s.id for s in subs[:3]]
    current = await svc.get_top3_subs()
    assert {s.id for s in current} == {s.id for s in subs[3:]}


@pytest.mark.asyncio
async def test_no_winner_yet(deps):
    assert await LeaderboardService(deps).get_recent_winner() is None


def test_vote_places_must_differ():
    with pytest.raises(pydantic.ValidationError):
        VoteCreate(first_place_id=1, second_place_id=1, third_place_id=2)


@pytest.mark.asyncio
async def test_tally_and_crown(deps, factory):
    _, (a, b, c) = await _finalists(factory)
    voters = [await factory.user() for _ in range(3)]
    svc = LeaderboardService(deps)
    await svc.set_top3([a.id, b.id, c.id])

    await svc.cast_vote(voters[0].id, VoteCreate(first_place_id=a.id, second_place_id=b.id, third_place_id=c.id))
    await svc.cast_vote(voters[1].id, VoteCreate(first_place_id=b.id, second_place_id=a.id, third_place_id=c.id))
    vote = await svc.cast_vote(voters[2].id, VoteCreate(first_place_id=b.id, second_place_id=c.id, third_place_id=a.id))
    assert vote.voter_id == voters[2].id

    tally = await svc.tally_votes()
    assert [(row.submission_id, row.points) for row in tally] == [(b.id, 8), (a.id, 6), (c.id, 4)]

    crowned = await svc.crown_winner()
    assert crowned.id == b.id
    assert (await svc.get_recent_winner()).id == b.id


@pytest.mark.asyncio
async def test_tally_without_votes_keeps_freeze_order(deps, factory):
    _, (a, b, c) = await _finalists(factory)
    svc = LeaderboardService(deps)
    await svc.set_top3([b.id, c.id, a.id])

    tally = await svc.tally_votes()
    assert [row.submission_id for row in tally] == [b.id, c.id, a.id]
    assert all(row.points == 0 for row in tally)


@pytest.mark.asyncio
async def test_crown_without_finalists(deps):
    with pytest.raises(NotFoundError):
        await LeaderboardService(deps).crown_winner()


@pytest.mark.asyncio
async def test_tally_counts_a_repeated_finalist_once(deps, factory):
    _, (a, b, _) = await _finalists(factory)
    svc = LeaderboardService(deps)
    await svc.set_top3([a.id, a.id, b.id])

    tally = await svc.tally_votes()
    assert sorted(row.submission_id for row in tally) == sorted([a.id, b.id])
    assert len(tally) == 2

    explicit = await svc.tally_votes([b.id, b.id, a.id])
    assert [row.submission_id for row in explicit] == [b.id, a.id]
