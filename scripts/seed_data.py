from __future__ import annotations

import argparse

from sqlalchemy import delete

from questforge_api import profiles
from questforge_api.challenges import create_challenge, join_challenge
from questforge_api.clock import SystemClock, current_day
from questforge_api.db import Base, SessionLocal, engine
from questforge_api.locks import write_transaction
from questforge_api.marketplace import create_template, purchase_template
from questforge_api.models import (
    Challenge,
    ChallengeParticipant,
    Event,
    IdSequence,
    LeaderboardEntry,
    Quest,
    QuestCompletion,
    QuestStreak,
    QuestTemplate,
    TemplatePurchase,
    UserProfile,
    UserQuestIndex,
)
from questforge_api.quest_registry import complete_quest, create_quest


DEMO_USER_ID = "demo"

LAB_USERS = [
    ("alice", 120),
    ("bob", 80),
    ("carol", 40),
]

DEMO_QUESTS = [
    ("Morning stretch", "Ten minutes before coffee.", "daily", None, "easy", 5),
    ("Long run", "At least 8 km.", "weekly", None, "hard", 40),
    ("Review budget", "Reconcile the month.", "monthly", None, "medium", 25),
    ("Water the plants", "Every third day.", "custom", 3, "easy", 5),
]

_ALL_TABLES = (
    Event,
    LeaderboardEntry,
    ChallengeParticipant,
    Challenge,
    TemplatePurchase,
    QuestStreak,
    QuestCompletion,
    UserQuestIndex,
    Quest,
    QuestTemplate,
    UserProfile,
    IdSequence,
)


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--reset", action="store_true", help="Delete every row and regenerate."
    )
    args = parser.parse_args()

    Base.metadata.create_all(engine)
    clock = SystemClock()
    today = current_day(clock)

    with SessionLocal() as session:
        if args.reset:
            for model in _ALL_TABLES:
                session.execute(delete(model))
            session.commit()

        if session.get(UserProfile, DEMO_USER_ID) is not None:
            print("seed: demo data already present (use --reset to regenerate)")
            return

        with write_transaction(session):
            profiles.ensure_profile(session, user_id=DEMO_USER_ID)
            for user_id, reputation in LAB_USERS:
                profiles.credit(session, user_id=user_id, amount=reputation)
            for name, desc, freq, interval, diff, reward in DEMO_QUESTS:
                create_quest(
                    session,
                    owner_id=DEMO_USER_ID,
                    name=name,
                    description=desc,
                    frequency=freq,
                    custom_interval_days=interval,
                    difficulty=diff,
                    reward=reward,
                    clock=clock,
                )

        with write_transaction(session):
            template = create_template(
                session,
                creator_id="alice",
                name="30 days of journaling",
                description="One page a day.",
                frequency="daily",
                difficulty="medium",
                recommended_reward=20,
                for_sale=True,
                price=50,
                clock=clock,
            )
            template_id = int(template.id)

        with write_transaction(session):
            purchase_template(session, buyer_id="bob", template_id=template_id, clock=clock)

        with write_transaction(session):
            created = create_challenge(
                session,
                creator_id="alice",
                name="Journaling sprint",
                description="Who keeps the chain longest?",
                template_id=template_id,
                start_day=today,
                end_day=today + 30,
                clock=clock,
            )
            challenge_id = int(created.challenge.id)
            creator_quest_id = created.quest_id

        with write_transaction(session):
            carol_quest_id = join_challenge(
                session, user_id="carol", challenge_id=challenge_id, clock=clock
            )

        for user_id, quest_id in (("alice", creator_quest_id), ("carol", carol_quest_id)):
            with write_transaction(session):
                complete_quest(session, caller_id=user_id, quest_id=quest_id, clock=clock)

    print(f"seed: demo data written (day {today}, challenge {challenge_id})")


if __name__ == "__main__":
    main()
