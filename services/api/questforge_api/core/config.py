from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="QUESTFORGE_", extra="ignore")

    allowed_hosts: str = "localhost,127.0.0.1,testserver"
    cors_allowed_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    log_json: bool = False

    db_url: str = "sqlite:///./artifacts/questforge.db"

    auth_jwt_secret: str = "dev-secret-change-me"
    auth_jwt_issuer: str = "questforge-local"
    auth_jwt_exp_minutes: int = 60 * 24 * 7

    # Bounded collections. Inserts past the cap fail with CapacityExceeded.
    max_quests_per_user: int = 100
    challenge_participant_cap: int = 100

    # Completion reward: difficulty level (easy=1, medium=2, hard=3) times this.
    reputation_per_difficulty_level: int = 10

    leaderboard_default_limit: int = 50

    @field_validator("max_quests_per_user", "challenge_participant_cap")
    @classmethod
    def _validate_caps(cls, v: int) -> int:
        if int(v) < 1:
            raise ValueError("capacity must be at least 1")
        return int(v)

    @field_validator("reputation_per_difficulty_level")
    @classmethod
    def _validate_reputation_unit(cls, v: int) -> int:
        if int(v) < 0:
            raise ValueError("QUESTFORGE_REPUTATION_PER_DIFFICULTY_LEVEL must be >= 0")
        return int(v)
