"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "id_sequences",
        sa.Column("name", sa.String(), primary_key=True),
        sa.Column("value", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "user_profiles",
        sa.Column("user_id", sa.String(), primary_key=True),
        sa.Column("reputation", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_completions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longest_streak_ever", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "current_streak_aggregate", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("last_active_day", sa.Integer(), nullable=True),
    )

    op.create_table(
        "quest_templates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("creator_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("frequency", sa.String(), nullable=False),
        sa.Column("custom_interval_days", sa.Integer(), nullable=True),
        sa.Column("difficulty", sa.String(), nullable=False),
        sa.Column("recommended_reward", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("for_sale", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("price", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("purchase_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_day", sa.Integer(), nullable=False),
    )
    op.create_index(
        "ix_quest_templates_creator_id", "quest_templates", ["creator_id"], unique=False
    )
    op.create_index(
        "ix_quest_templates_for_sale", "quest_templates", ["for_sale"], unique=False
    )

    op.create_table(
        "quests",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("frequency", sa.String(), nullable=False),
        sa.Column("custom_interval_days", sa.Integer(), nullable=True),
        sa.Column("difficulty", sa.String(), nullable=False),
        sa.Column("reward_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_day", sa.Integer(), nullable=False),
        sa.Column(
            "origin_template_id",
            sa.Integer(),
            sa.ForeignKey("quest_templates.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("origin_challenge_id", sa.Integer(), nullable=True),
    )
    op.create_index("ix_quests_owner_id", "quests", ["owner_id"], unique=False)
    op.create_index(
        "ix_quests_origin_template_id", "quests", ["origin_template_id"], unique=False
    )
    op.create_index(
        "ix_quests_origin_challenge_id", "quests", ["origin_challenge_id"], unique=False
    )

    op.create_table(
        "user_quest_index",
        sa.Column("user_id", sa.String(), primary_key=True),
        sa.Column(
            "quest_id",
            sa.Integer(),
            sa.ForeignKey("quests.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.UniqueConstraint("user_id", "position", name="uq_user_quest_index_position"),
    )

    op.create_table(
        "quest_completions",
        sa.Column(
            "quest_id",
            sa.Integer(),
            sa.ForeignKey("quests.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("day", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_quest_completions_user_id", "quest_completions", ["user_id"], unique=False
    )

    op.create_table(
        "quest_streaks",
        sa.Column(
            "quest_id",
            sa.Integer(),
            sa.ForeignKey("quests.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("user_id", sa.String(), primary_key=True),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longest_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_completion_day", sa.Integer(), nullable=True),
    )

    op.create_table(
        "template_purchases",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column(
            "template_id",
            sa.Integer(),
            sa.ForeignKey("quest_templates.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("buyer_id", sa.String(), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("day", sa.Integer(), nullable=False),
        sa.Column(
            "quest_id",
            sa.Integer(),
            sa.ForeignKey("quests.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    op.create_index(
        "ix_template_purchases_template_id",
        "template_purchases",
        ["template_id"],
        unique=False,
    )
    op.create_index(
        "ix_template_purchases_buyer_id", "template_purchases", ["buyer_id"], unique=False
    )

    op.create_table(
        "challenges",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("creator_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "template_id",
            sa.Integer(),
            sa.ForeignKey("quest_templates.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("start_day", sa.Integer(), nullable=False),
        sa.Column("end_day", sa.Integer(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_day", sa.Integer(), nullable=False),
    )
    op.create_index("ix_challenges_creator_id", "challenges", ["creator_id"], unique=False)
    op.create_index("ix_challenges_template_id", "challenges", ["template_id"], unique=False)
    op.create_index("ix_challenges_active", "challenges", ["active"], unique=False)

    op.create_table(
        "challenge_participants",
        sa.Column(
            "challenge_id",
            sa.Integer(),
            sa.ForeignKey("challenges.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("user_id", sa.String(), primary_key=True),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("joined_day", sa.Integer(), nullable=False),
    )
    op.create_index(
        "ix_challenge_participants_user_id",
        "challenge_participants",
        ["user_id"],
        unique=False,
    )

    op.create_table(
        "leaderboard_entries",
        sa.Column(
            "challenge_id",
            sa.Integer(),
            sa.ForeignKey("challenges.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("user_id", sa.String(), primary_key=True),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("position", sa.Integer(), nullable=False),
    )

    op.create_table(
        "events",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("payload_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_events_user_id", "events", ["user_id"], unique=False)
    op.create_index("ix_events_type", "events", ["type"], unique=False)
    op.create_index("ix_events_created_at", "events", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_table("events")
    op.drop_table("leaderboard_entries")
    op.drop_table("challenge_participants")
    op.drop_table("challenges")
    op.drop_table("template_purchases")
    op.drop_table("quest_streaks")
    op.drop_table("quest_completions")
    op.drop_table("user_quest_index")
    op.drop_table("quests")
    op.drop_table("quest_templates")
    op.drop_table("user_profiles")
    op.drop_table("id_sequences")
