from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "20261019_0003"
down_revision = "20261019_0002"
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "submissions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("prompt_id", sa.Integer(), sa.ForeignKey("prompts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("rumble_id", sa.Integer(), sa.ForeignKey("rumbles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("source_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("blob_label", sa.Text(), nullable=False),
        sa.Column("etag", sa.String(length=128), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("confidence", sa.Integer(), nullable=False),
        sa.Column("rotation", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("transcription", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_submissions_user_id", "submissions", ["user_id"])
    op.create_index("ix_submissions_prompt_id", "submissions", ["prompt_id"])
    op.create_index("ix_submissions_rumble_id", "submissions", ["rumble_id"])
    op.create_index("ix_submissions_score", "submissions", ["score"])

    op.create_table(
        "transcriptions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("submission_id", sa.Integer(), sa.ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("source_id", sa.Integer(), nullable=False),
        sa.Column("transcription_source_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("transcription", sa.Text(), nullable=True),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_transcriptions_submission_id", "transcriptions", ["submission_id"])
    op.create_index("ix_transcriptions_user_id", "transcriptions", ["user_id"])

    op.create_table(
        "flag_types",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("flag", sa.String(length=32), nullable=False),
    )
    op.create_unique_constraint("uq_flag_types_flag", "flag_types", ["flag"])

    op.create_table(
        "submission_flags",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("submission_id", sa.Integer(), sa.ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("flag_id", sa.Integer(), sa.ForeignKey("flag_types.id", ondelete="CASCADE"), nullable=False),
        sa.Column("creator_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_submission_flags_submission_id", "submission_flags", ["submission_id"])

def downgrade() -> None:
    op.drop_index("ix_submission_flags_submission_id", table_name="submission_flags")
    op.drop_table("submission_flags")
    op.drop_constraint("uq_flag_types_flag", "flag_types", type_="unique")
    op.drop_table("flag_types")
    op.drop_index("ix_transcriptions_user_id", table_name="transcriptions")
    op.drop_index("ix_transcriptions_submission_id", table_name="transcriptions")
    op.drop_table("transcriptions")
    op.drop_index("ix_submissions_score", table_name="submissions")
    op.drop_index("ix_submissions_rumble_id", table_name="submissions")
    op.drop_index("ix_submissions_prompt_id", table_name="submissions")
    op.drop_index("ix_submissions_user_id", table_name="submissions")
    op.drop_table("submissions")
