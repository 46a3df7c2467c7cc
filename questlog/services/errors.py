"""
Domain exceptions for quest log operations.

Services raise these for illegal transitions, permission failures and remote
failures. The HTTP layer maps ``status_code``; dialog-driven front ends go
through ``ActionRunner``, which turns them into an alert.
"""
from typing import Any, Dict, Optional


class QuestLogError(Exception):
    """Base exception for quest log errors."""

    error_code = "quest_log_error"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error_code, "detail": self.message, **({"details": self.details} if self.details else {})}


class ValidationError(QuestLogError):
    """A required field is missing or malformed (e.g. an empty code)."""

    error_code = "validation_error"
    status_code = 400


class Unauthorized(QuestLogError):
    """The caller lacks the capability for this action."""

    error_code = "unauthorized"
    status_code = 403


class NotFound(QuestLogError):
    """The referenced quest or challenge is unknown."""

    error_code = "not_found"
    status_code = 404


class AlreadyStarted(QuestLogError):
    """Start requested for something that is not in ``not_started``."""

    error_code = "already_started"
    status_code = 409


class NotClaimable(QuestLogError):
    """Claim requested for a challenge that is not completed-and-unclaimed."""

    error_code = "not_claimable"
    status_code = 409


class RemoteFailure(QuestLogError):
    """The game backend failed or rejected the call."""

    error_code = "remote_failure"
    status_code = 502

    def __init__(self, message: str, *, remote_status: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.remote_status = remote_status
