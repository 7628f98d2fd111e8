from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

log = structlog.get_logger()

_DEPTH_KEY = "storysquad.tx_depth"


@asynccontextmanager
async def transaction(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Re-entrant unit of work on `session`.

    The outermost entry owns the transaction: it commits when the block exits
    cleanly and rolls back on any exception. Nested entries join the outer
    unit (no savepoint), so an exception raised deep inside propagates up and
    the whole unit is rolled back. Nothing is visible to other sessions until
    the outermost block commits.
    """
    depth = session.info.get(_DEPTH_KEY, 0)
    session.info[_DEPTH_KEY] = depth + 1
    try:
        yield session
        if depth == 0:
            await session.commit()
    except BaseException:
        if depth == 0:
            await session.rollback()
        raise
    finally:
        session.info[_DEPTH_KEY] = depth


@asynccontextmanager
async def best_effort(step: str, **context) -> AsyncIterator[None]:
    """
    Wrap a non-critical step: failures are logged and swallowed so the
    surrounding operation carries on. Critical steps must not use this.
    """
    try:
        yield
    except Exception as e:
        log.warning("best_effort_step_failed", step=step, error=str(e), error_type=type(e).__name__, **context)
