from __future__ import annotations
from dataclasses import dataclass
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from storysquad.db import get_session
from storysquad.services.mailer import LogMailer, Mailer
from storysquad.services.scoring import HttpScoringGateway, ScoringGateway
from storysquad.services.storage import BlobStore, MinioBlobStore


@dataclass
class Deps:
    """Collaborators handed to every service constructor. One per request."""
    session: AsyncSession
    blobs: BlobStore
    scorer: ScoringGateway
    mailer: Mailer


# process-wide collaborators; the minio client only connects on first use
_blob_store = MinioBlobStore()
_scorer = HttpScoringGateway()
_mailer = LogMailer()

def get_blob_store() -> BlobStore:
    return _blob_store

def get_scorer() -> ScoringGateway:
    return _scorer

def get_mailer() -> Mailer:
    return _mailer

async def get_deps(
    session: AsyncSession = Depends(get_session),
    blobs: BlobStore = Depends(get_blob_store),
    scorer: ScoringGateway = Depends(get_scorer),
    mailer: Mailer = Depends(get_mailer),
) -> Deps:
    return Deps(session=session, blobs=blobs, scorer=scorer, mailer=mailer)
