from __future__ import annotations
from datetime import datetime
from typing import Iterable
from sqlalchemy import select, or_
import structlog

from storysquad.deps import Deps
from storysquad.errors import NotFoundError
from storysquad.models.rumble import Rumble, RumbleSection
from storysquad.models.section import Section
from storysquad.schemas.rumble import RumbleCreate, RumblePublic, RumbleWithSectionInfo
from storysquad.schemas.section import SectionWithRumbles
from storysquad.services.clock import utcnow, as_utc, end_time_after
from storysquad.services.join_codes import generate_code
from storysquad.services.transactions import transaction

log = structlog.get_logger()


def rumble_phase(end_time: datetime | None, now: datetime) -> str:
    if end_time is None:
        return "pending"
    return "active" if as_utc(end_time) > now else "ended"


def to_public(r: Rumble, link: RumbleSection | None, now: datetime) -> RumblePublic:
    end_time = link.end_time if link else None
    return RumblePublic(
        id=r.id,
        join_code=r.join_code,
        prompt_id=r.prompt_id,
        num_minutes=r.num_minutes,
        can_join=r.can_join,
        max_sections=r.max_sections,
        created_at=r.created_at,
        start_time=as_utc(link.start_time) if link else None,
        end_time=as_utc(end_time),
        phase=rumble_phase(end_time, now),
    )


class RumbleService:
    """Timed contest instances. A rumble is a template; its clock lives on the per-section link."""

    def __init__(self, deps: Deps):
        self.deps = deps
        self.session = deps.session

    async def create_instances(self, body: RumbleCreate, section_ids: Iterable[int]) -> list[RumbleWithSectionInfo]:
        """
        One rumble per target section, all inside a single transaction: if any
        section is missing or any insert fails, nothing from the batch survives.
        """
        created: list[tuple[Rumble, RumbleSection, Section]] = []
        async with transaction(self.session):
            for section_id in section_ids:
                section = await self.session.get(Section, section_id)
                if not section:
                    log.warning("rumble_batch_section_missing", section_id=section_id)
                    raise NotFoundError(f"Section {section_id} not found")

                r = Rumble(
                    join_code=generate_code(f"{body.num_minutes}-{body.prompt_id}-{section_id}"),
                    prompt_id=body.prompt_id,
                    num_minutes=body.num_minutes,
                    can_join=False,
                    max_sections=1,
                )
                self.session.add(r)
                await self.session.flush()  # r.id without commit

                link = RumbleSection(rumble_id=r.id, section_id=section.id, start_time=None, end_time=None)
                self.session.add(link)
                await self.session.flush()
                await self.session.refresh(r)
                created.append((r, link, section))

        now = utcnow()
        log.info("rumbles_created", count=len(created), prompt_id=body.prompt_id)
        return [
            RumbleWithSectionInfo(
                **to_public(r, link, now).model_dump(),
                section_id=section.id,
                section_name=section.name,
            )
            for (r, link, section) in created
        ]

    async def start_rumble(self, section_id: int, rumble_id: int) -> datetime:
        rumble = await self.session.get(Rumble, rumble_id)
        if not rumble:
            log.warning("rumble_not_found", rumble_id=rumble_id)
            raise NotFoundError("Rumble not found")

        link = await self.session.scalar(
            select(RumbleSection).where(RumbleSection.rumble_id == rumble_id, RumbleSection.section_id == section_id)
        )
        if not link:
            log.warning("rumble_not_in_section", rumble_id=rumble_id, section_id=section_id)
            raise NotFoundError("Rumble is not scheduled for this section")

        now = utcnow()
        end_time = end_time_after(rumble.num_minutes, now)
        async with transaction(self.session):
            # schedule goes on the section link, never on the template
            link.start_time = now
            link.end_time = end_time
            rumble.can_join = False

        log.info("rumble_started", rumble_id=rumble_id, section_id=section_id, end_time=end_time.isoformat())
        return end_time

    async def active_rumbles_for_section(self, section_id: int) -> list[RumblePublic]:
        now = utcnow()
        rows = (await self.session.execute(
            select(Rumble, RumbleSection)
            .join(RumbleSection, RumbleSection.rumble_id == Rumble.id)
            .where(
                RumbleSection.section_id == section_id,
                or_(RumbleSection.end_time.is_(None), RumbleSection.end_time > now),
            )
            .order_by(Rumble.id.asc())
        )).all()
        return [to_public(r, link, now) for (r, link) in rows]

    async def active_rumbles_for_sections(self, sections: list[SectionWithRumbles]) -> None:
        # sequential: an AsyncSession cannot run queries concurrently
        for section in sections:
            section.rumbles = await self.active_rumbles_for_section(section.id)
