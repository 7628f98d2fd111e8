from __future__ import annotations
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = "20261019_0004"
down_revision = "20261019_0003"
branch_labels = None
depends_on = None

def upgrade() -> None:
    # append-only logs, newest row is current
    for table in ("top3", "winners"):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
            sa.Column("submission_id", sa.Integer(), sa.ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False),
            sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        )
        op.create_index(f"ix_{table}_submission_id", table, ["submission_id"])

    op.create_table(
        "votes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("voter_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("first_place_id", sa.Integer(), sa.ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("second_place_id", sa.Integer(), sa.ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("third_place_id", sa.Integer(), sa.ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_votes_voter_id", "votes", ["voter_id"])
    op.create_check_constraint(
        "ck_votes_distinct_places",
        "votes",
        "first_place_id <> second_place_id AND first_place_id <> third_place_id AND second_place_id <> third_place_id",
    )

def downgrade() -> None:
    op.drop_constraint("ck_votes_distinct_places", "votes", type_="check")
    op.drop_index("ix_votes_voter_id", table_name="votes")
    op.drop_table("votes")
    for table in ("winners", "top3"):
        op.drop_index(f"ix_{table}_submission_id", table_name=table)
        op.drop_table(table)
