"""
Domain errors raised by the quest engine.

Every error carries a stable ``code`` (used in API responses), the HTTP status
the API layer maps it to, and a small ``details`` dict. All of them are
terminal for the call that raised them; nothing in the engine retries.
"""

from __future__ import annotations

from typing import Any


class QuestForgeError(Exception):
    code: str = "error"
    status_code: int = 400

    def __init__(self, message: str | None = None, **details: Any) -> None:
        self.message = message or self.code
        self.details: dict[str, Any] = dict(details)
        super().__init__(self.message)

    def to_detail(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, **self.details}


class NotAuthorized(QuestForgeError):
    code = "not_authorized"
    status_code = 403


class NotChallengeMember(NotAuthorized):
    code = "not_challenge_member"


class NotFound(QuestForgeError):
    code = "not_found"
    status_code = 404
    entity: str = ""

    def __init__(self, message: str | None = None, **details: Any) -> None:
        super().__init__(message, entity=self.entity, **details)


class QuestNotFound(NotFound):
    code = "quest_not_found"
    entity = "quest"


class TemplateNotFound(NotFound):
    code = "template_not_found"
    entity = "template"


class ChallengeNotFound(NotFound):
    code = "challenge_not_found"
    entity = "challenge"


class InvalidInput(QuestForgeError):
    code = "invalid_input"
    status_code = 422

    def __init__(self, field: str, message: str | None = None, **details: Any) -> None:
        self.field = field
        super().__init__(message or f"invalid {field}", field=field, **details)


class AlreadyCompletedToday(QuestForgeError):
    code = "already_completed_today"
    status_code = 409


class NotActive(QuestForgeError):
    code = "not_active"
    status_code = 409


class QuestNotActive(NotActive):
    code = "quest_not_active"


class AlreadyJoinedChallenge(QuestForgeError):
    code = "already_joined_challenge"
    status_code = 409


class InsufficientReputation(QuestForgeError):
    code = "insufficient_reputation"
    status_code = 402


class TemplateNotForSale(QuestForgeError):
    code = "template_not_for_sale"
    status_code = 409


class CapacityExceeded(QuestForgeError):
    code = "capacity_exceeded"
    status_code = 409
