"""Typed rejections and the engine's exception taxonomy.

Rejections are values returned by the pure validator. The mutator turns
them into exceptions so route handlers can map them onto HTTP statuses.
"""

from dataclasses import dataclass
from typing import Optional


WRONG_PHASE = 'wrong_phase'
WRONG_ACTOR = 'wrong_actor'
MATCH_NOT_ACTIVE = 'match_not_active'
DISPUTE_BUDGET_EXHAUSTED = 'dispute_budget_exhausted'
EVIDENCE_MISSING = 'evidence_missing'
UNKNOWN_ACTION = 'unknown_action'
DEADLINE_ELAPSED = 'deadline_elapsed'
ALREADY_VOTED = 'already_voted'
INVALID_VERDICT = 'invalid_verdict'
NOT_DISPUTABLE = 'not_disputable'
DISPUTE_WINDOW_CLOSED = 'dispute_window_closed'
DISPUTE_ALREADY_RESOLVED = 'dispute_already_resolved'
NOT_EXPIRED = 'not_expired'
ACTOR_RESTRICTED = 'actor_restricted'
INVALID_REQUEST = 'invalid_request'

# Reasons surfaced as 403 rather than 400
FORBIDDEN_REASONS = frozenset({WRONG_ACTOR, WRONG_PHASE, ACTOR_RESTRICTED})


@dataclass(frozen=True)
class Rejection:
    reason: str
    message: str = ''


class SkateError(Exception):
    status_code = 500
    reason = 'error'

    def __init__(self, message: str = '', reason: Optional[str] = None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        if reason:
            self.reason = reason

    def to_dict(self):
        return {'error': self.message, 'reason': self.reason}


class ValidationError(SkateError):
    """The request is illegal for the current state. Not retryable."""

    status_code = 400

    def __init__(self, rejection: Rejection):
        super().__init__(rejection.message or rejection.reason, reason=rejection.reason)
        self.rejection = rejection
        if rejection.reason in FORBIDDEN_REASONS:
            self.status_code = 403


class BudgetExhaustedError(ValidationError):
    """The player already spent their dispute for this match."""

    def __init__(self, rejection: Optional[Rejection] = None):
        super().__init__(rejection or Rejection(DISPUTE_BUDGET_EXHAUSTED, 'Dispute already used for this match'))


class ConcurrencyConflict(SkateError):
    """The match changed underneath us twice in a row."""

    status_code = 409
    reason = 'conflict'


class NotFoundError(SkateError):
    status_code = 404
    reason = 'not_found'


class StorageUnavailableError(SkateError):
    status_code = 503
    reason = 'storage_unavailable'


def raise_for_rejection(rejection: Rejection) -> None:
    if rejection.reason == DISPUTE_BUDGET_EXHAUSTED:
        raise BudgetExhaustedError(rejection)
    raise ValidationError(rejection)
