from __future__ import annotations
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "sections",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("join_code", sa.String(length=64), nullable=False),
        sa.Column("subject_id", sa.Integer(), nullable=False),
        sa.Column("grade_id", sa.Integer(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_sections_join_code", "sections", ["join_code"], unique=True)

    op.create_table(
        "section_teachers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("section_id", sa.Integer(), sa.ForeignKey("sections.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_section_teachers_section_id", "section_teachers", ["section_id"])
    op.create_index("ix_section_teachers_user_id", "section_teachers", ["user_id"])

    # no unique (section_id, user_id): a repeated enrollment adds a row
    op.create_table(
        "section_students",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("section_id", sa.Integer(), sa.ForeignKey("sections.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("joined_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_section_students_section_id", "section_students", ["section_id"])
    op.create_index("ix_section_students_user_id", "section_students", ["user_id"])

    op.create_table(
        "prompts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("prompt", sa.Text(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )

    op.create_table(
        "rumbles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("join_code", sa.String(length=64), nullable=False),
        sa.Column("prompt_id", sa.Integer(), sa.ForeignKey("prompts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("num_minutes", sa.Integer(), nullable=False),
        sa.Column("can_join", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("max_sections", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_rumbles_join_code", "rumbles", ["join_code"])
    op.create_index("ix_rumbles_prompt_id", "rumbles", ["prompt_id"])

    op.create_table(
        "rumble_sections",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("rumble_id", sa.Integer(), sa.ForeignKey("rumbles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("section_id", sa.Integer(), sa.ForeignKey("sections.id", ondelete="CASCADE"), nullable=False),
        sa.Column("start_time", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("end_time", sa.TIMESTAMP(timezone=True), nullable=True),
    )
    op.create_index("ix_rumble_sections_rumble_id", "rumble_sections", ["rumble_id"])
    op.create_index("ix_rumble_sections_section_id", "rumble_sections", ["section_id"])

def downgrade() -> None:
    op.drop_index("ix_rumble_sections_section_id", table_name="rumble_sections")
    op.drop_index("ix_rumble_sections_rumble_id", table_name="rumble_sections")
    op.drop_table("rumble_sections")
    op.drop_index("ix_rumbles_prompt_id", table_name="rumbles")
    op.drop_index("ix_rumbles_join_code", table_name="rumbles")
    op.drop_table("rumbles")
    op.drop_table("prompts")
    op.drop_index("ix_section_students_user_id", table_name="section_students")
    op.drop_index("ix_section_students_section_id", table_name="section_students")
    op.drop_table("section_students")
    op.drop_index("ix_section_teachers_user_id", table_name="section_teachers")
    op.drop_index("ix_section_teachers_section_id", table_name="section_teachers")
    op.drop_table("section_teachers")
    op.drop_index("ix_sections_join_code", table_name="sections")
    op.drop_table("sections")
