from __future__ import annotations
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
import structlog

from storysquad.deps import Deps
from storysquad.errors import ConflictError, NotFoundError, UnauthorizedError
from storysquad.models.section import Section, SectionTeacher, SectionStudent
from storysquad.models.submission import Submission
from storysquad.models.rumble import RumbleSection
from storysquad.models.user import User
from storysquad.schemas.section import SectionCreate, SectionPublic, SectionWithRumbles, StudentPublic
from storysquad.schemas.submission import SubItem
from storysquad.services.join_codes import generate_code
from storysquad.services.rumbles import RumbleService
from storysquad.services.submissions import SubmissionService
from storysquad.services.transactions import transaction

log = structlog.get_logger()


def _with_rumbles(section: Section) -> SectionWithRumbles:
    return SectionWithRumbles(**SectionPublic.model_validate(section).model_dump())


class SectionService:
    """Classroom sections: creation, join-code enrollment, rosters."""

    def __init__(self, deps: Deps):
        self.deps = deps
        self.session = deps.session
        self.rumbles = RumbleService(deps)

    async def create_section(self, body: SectionCreate, teacher_id: int) -> SectionPublic:
        section: Section | None = None
        try:
            async with transaction(self.session):
                section = Section(
                    name=body.name,
                    join_code=generate_code(body.name),
                    subject_id=body.subject_id,
                    grade_id=body.grade_id,
                    active=True,
                )
                self.session.add(section)
                await self.session.flush()  # section.id without commit

                # Creator becomes the primary teacher in the same unit of work
                self.session.add(SectionTeacher(section_id=section.id, user_id=teacher_id, is_primary=True))
                await self.session.flush()
                await self.session.refresh(section)
        except IntegrityError:
            log.warning("section_create_conflict", teacher_id=teacher_id, name=body.name)
            raise ConflictError("Could not create section")

        if section is None or section.id is None:
            log.error("section_create_no_row", teacher_id=teacher_id)
            raise ConflictError("Could not create section")
        log.info("section_created", section_id=section.id, teacher_id=teacher_id)
        return SectionPublic.model_validate(section)

    async def enroll_student(self, join_code: str, section_id: int, student_id: int) -> SectionWithRumbles:
        section = await self.session.get(Section, section_id)
        if not section:
            log.warning("section_not_found", section_id=section_id)
            raise NotFoundError("Invalid section ID")
        if join_code != section.join_code:
            log.warning("section_join_code_mismatch", section_id=section_id, student_id=student_id)
            raise UnauthorizedError("Join code is invalid")

        async with transaction(self.session):
            self.session.add(SectionStudent(section_id=section.id, user_id=student_id))

        log.info("student_enrolled", section_id=section_id, student_id=student_id)
        out = _with_rumbles(section)
        out.rumbles = await self.rumbles.active_rumbles_for_section(section.id)
        return out

    async def list_sections_for_user(self, user: User) -> list[SectionWithRumbles]:
        if user.role == "teacher":
            q = (
                select(Section)
                .join(SectionTeacher, SectionTeacher.section_id == Section.id)
                .where(SectionTeacher.user_id == user.id)
                .order_by(Section.id.asc())
            )
        elif user.role == "student":
            q = (
                select(Section)
                .join(SectionStudent, SectionStudent.section_id == Section.id)
                .where(SectionStudent.user_id == user.id)
                .order_by(Section.id.asc())
            )
        else:
            log.warning("sections_invalid_role", user_id=user.id, role=user.role)
            raise UnauthorizedError("Invalid user type!")

        rows = (await self.session.execute(q)).scalars().all()
        sections = [_with_rumbles(s) for s in rows]
        await self.rumbles.active_rumbles_for_sections(sections)
        return sections

    async def list_students_in_section(self, section_id: int) -> list[StudentPublic]:
        rows = (await self.session.execute(
            select(User)
            .join(SectionStudent, SectionStudent.user_id == User.id)
            .where(SectionStudent.section_id == section_id)
            .order_by(SectionStudent.id.asc())
        )).scalars().all()
        return [StudentPublic.model_validate(u) for u in rows]

    async def get_student_submissions(self, student_id: int, section_id: int) -> list[SubItem]:
        """A student's rumble entries for one section, as display items."""
        student = await self.session.get(User, student_id)
        if not student:
            log.warning("student_not_found", student_id=student_id)
            raise NotFoundError("User not found")

        subs = (await self.session.execute(
            select(Submission)
            .join(RumbleSection, RumbleSection.rumble_id == Submission.rumble_id)
            .where(Submission.user_id == student_id, RumbleSection.section_id == section_id)
            .order_by(Submission.created_at.desc(), Submission.id.desc())
        )).scalars().all()
        return await SubmissionService(self.deps).to_sub_items(subs, codename=student.codename)
