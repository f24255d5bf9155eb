from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from questforge_api.db import Base


class IdSequence(Base):
    __tablename__ = "id_sequences"

    name: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class UserProfile(Base):
    __tablename__ = "user_profiles"

    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    reputation: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_completions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak_ever: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_streak_aggregate: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    last_active_day: Mapped[int | None] = mapped_column(Integer, nullable=True)


class QuestTemplate(Base):
    __tablename__ = "quest_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    creator_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    frequency: Mapped[str] = mapped_column(String, nullable=False)
    custom_interval_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    difficulty: Mapped[str] = mapped_column(String, nullable=False)
    recommended_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    for_sale: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, index=True
    )
    price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    purchase_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_day: Mapped[int] = mapped_column(Integer, nullable=False)


class Quest(Base):
    __tablename__ = "quests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    owner_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    frequency: Mapped[str] = mapped_column(String, nullable=False)
    custom_interval_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    difficulty: Mapped[str] = mapped_column(String, nullable=False)
    reward_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_day: Mapped[int] = mapped_column(Integer, nullable=False)
    origin_template_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("quest_templates.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    # Set for quests spawned by creating or joining a challenge.
    origin_challenge_id: Mapped[int | None] = mapped_column(
        Integer, nullable=True, index=True
    )


class UserQuestIndex(Base):
    __tablename__ = "user_quest_index"

    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    quest_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("quests.id", ondelete="CASCADE"), primary_key=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "position", name="uq_user_quest_index_position"),
    )


class QuestCompletion(Base):
    __tablename__ = "quest_completions"

    quest_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("quests.id", ondelete="CASCADE"), primary_key=True
    )
    day: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )


class QuestStreak(Base):
    __tablename__ = "quest_streaks"

    quest_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("quests.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_completion_day: Mapped[int | None] = mapped_column(Integer, nullable=True)


class TemplatePurchase(Base):
    __tablename__ = "template_purchases"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    template_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("quest_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    buyer_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    day: Mapped[int] = mapped_column(Integer, nullable=False)
    # Null until the buyer's quest exists; an unfulfilled purchase keeps it null.
    quest_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("quests.id", ondelete="SET NULL"), nullable=True
    )


class Challenge(Base):
    __tablename__ = "challenges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    creator_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    template_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("quest_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    start_day: Mapped[int] = mapped_column(Integer, nullable=False)
    end_day: Mapped[int] = mapped_column(Integer, nullable=False)
    active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, index=True
    )
    created_day: Mapped[int] = mapped_column(Integer, nullable=False)


class ChallengeParticipant(Base):
    __tablename__ = "challenge_participants"

    challenge_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("challenges.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(String, primary_key=True, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    joined_day: Mapped[int] = mapped_column(Integer, nullable=False)


class LeaderboardEntry(Base):
    __tablename__ = "leaderboard_entries"

    challenge_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("challenges.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Insertion order; the last ranking tie-break.
    position: Mapped[int] = mapped_column(Integer, nullable=False)


class Event(Base):
    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    type: Mapped[str] = mapped_column(String, nullable=False, index=True)
    payload_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
