"""create rating and vote tables

Revision ID: 3b8e1c2d9f40
Revises:
Create Date: 2026-10-19 09:12:44.518302

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3b8e1c2d9f40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the rating and vote tables."""
    op.create_table(
        "rating",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("total_votes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_rating", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("parent_id", sa.Integer(), nullable=True),
        sa.Column("effect_type", sa.String(length=10), nullable=False, server_default="positive"),
        sa.Column("display_only", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("mirror_of", sa.Integer(), nullable=True),
        sa.Column("date_created", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("total_votes >= 0", name="ck_rating_total_votes"),
        sa.CheckConstraint("total_rating >= 0", name="ck_rating_total_rating"),
        sa.CheckConstraint("effect_type IN ('positive', 'negative')", name="ck_rating_effect_type"),
        sa.ForeignKeyConstraint(["parent_id"], ["rating.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["mirror_of"], ["rating.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_rating_parent_id", "rating", ["parent_id"])
    op.create_index("ix_rating_mirror_of", "rating", ["mirror_of"])

    op.create_table(
        "vote",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("rating_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("user_ip", sa.String(length=45), nullable=True),
        sa.Column("voter_key", sa.String(length=64), nullable=False),
        sa.Column("rating_value", sa.SmallInteger(), nullable=False),
        sa.Column("date_created", sa.DateTime(timezone=True), nullable=False),
        sa.Column("date_modified", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("rating_value >= 1", name="ck_vote_rating_value"),
        sa.ForeignKeyConstraint(["rating_id"], ["rating.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("rating_id", "voter_key", name="uq_vote_rating_voter"),
    )
    op.create_index("ix_vote_rating_id", "vote", ["rating_id"])
    op.create_index("ix_vote_voter_activity", "vote", ["voter_key", "date_modified"])


def downgrade() -> None:
    """Drop the rating and vote tables."""
    op.drop_index("ix_vote_voter_activity", table_name="vote")
    op.drop_index("ix_vote_rating_id", table_name="vote")
    op.drop_table("vote")
    op.drop_index("ix_rating_mirror_of", table_name="rating")
    op.drop_index("ix_rating_parent_id", table_name="rating")
    op.drop_table("rating")
