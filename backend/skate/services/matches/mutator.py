"""Optimistic read-validate-write for a single match row.

The match row carries a ``version`` column mapped as SQLAlchemy's
``version_id_col``, so every UPDATE is issued as
``... WHERE id = :id AND version = :read_version``. A zero-row update
raises ``StaleDataError``; we roll back, re-read, re-validate and try
once more before surfacing ``ConcurrencyConflict``.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Optional, Union

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from skate import db
from skate.errors import (
    Rejection,
    ConcurrencyConflict,
    NotFoundError,
    StorageUnavailableError,
    raise_for_rejection,
)
from skate.models import Match, Move, Dispute, PlayerProfile
from .rules import Delta


class _StaleRead(Exception):
    """The row no longer has the version the caller expected."""


@contextmanager
def storage_errors(context: str):
    """Roll back and re-raise driver failures as StorageUnavailableError."""
    try:
        yield
    except DBAPIError as exc:
        db.session.rollback()
        current_app.logger.error(f"[storage-error] {context} {exc.__class__.__name__}: {exc}")
        raise StorageUnavailableError('Storage unavailable') from exc


@dataclass
class MutationOutcome:
    match: Match
    delta: Optional[Delta] = None
    dispute: Optional[Dispute] = None
    duplicate: bool = False

    @property
    def events(self):
        return self.delta.events if self.delta else []

    @property
    def message(self) -> str:
        return self.delta.message if self.delta else 'Already processed.'


Decide = Callable[[Match], Union[Delta, Rejection]]


class TransactionalMutator:
    def __init__(self, max_attempts: int = 2):
        self.max_attempts = max_attempts

    def apply(self, match_id, expected_version: Optional[int], decide: Decide, now: float,
              idempotency_key: Optional[str] = None) -> MutationOutcome:
        """Commit at most one transition for one logical action.

        ``decide`` is re-run against the freshly read row on every
        attempt, so a delta is never applied to state it was not
        validated against.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                match = self._read(match_id)
                if idempotency_key and idempotency_key in match.processed_key_list():
                    db.session.rollback()
                    current_app.logger.info(f"[action-duplicate] match={match_id} key={idempotency_key}")
                    return MutationOutcome(match=match, duplicate=True)
                if attempt == 1 and expected_version is not None and match.version != expected_version:
                    raise _StaleRead()

                decision = decide(match)
                if isinstance(decision, Rejection):
                    raise_for_rejection(decision)

                outcome = self._write(match, decision, now, idempotency_key)
                db.session.commit()
                current_app.logger.info(
                    f"[action-commit] match={match.id} kind={decision.kind} status={match.status} "
                    f"phase={match.phase} version={match.version}"
                )
                return outcome
            except (StaleDataError, IntegrityError, _StaleRead):
                db.session.rollback()
                current_app.logger.info(f"[action-retry] match={match_id} attempt={attempt} stale version")
                continue
            except DBAPIError as exc:
                db.session.rollback()
                current_app.logger.error(f"[storage-error] match={match_id} {exc.__class__.__name__}: {exc}")
                raise StorageUnavailableError('Storage unavailable') from exc
            except Exception:
                db.session.rollback()
                raise

        raise ConcurrencyConflict(f'Match {match_id} changed concurrently; retry the request')

    def _read(self, match_id) -> Match:
        match = db.session.get(Match, match_id, populate_existing=True)
        if match is None:
            raise NotFoundError('Match not found', reason='match_not_found')
        return match

    def _write(self, match: Match, delta: Delta, now: float, idempotency_key: Optional[str]) -> MutationOutcome:
        # Read the tail of the log before touching the row so autoflush
        # cannot fire the versioned UPDATE early.
        last_seq = db.session.query(func.coalesce(func.max(Move.seq), 0)).filter(Move.match_id == match.id).scalar()
        round_number = match.round_number

        for attr, value in delta.changes.items():
            setattr(match, attr, value)
        match.updated_at = now
        if idempotency_key:
            match.remember_key(idempotency_key)

        for offset, record in enumerate(delta.moves, start=1):
            move = Move(
                match_id=match.id,
                seq=last_seq + offset,
                kind=record.kind,
                actor_id=record.actor_id,
                trick_name=record.trick_name,
                evidence_ref=record.evidence_ref,
                result=record.result,
                letter=record.letter,
                judged_against_id=record.judged_against_id,
                round_number=round_number,
                created_at=now,
            )
            db.session.add(move)

        dispute = None
        if delta.filing is not None:
            dispute = Dispute(
                match_id=match.id,
                move_id=delta.filing.move_id,
                filed_by=delta.filing.filed_by,
                against_player_id=delta.filing.against_player_id,
                original_result=delta.filing.original_result,
                created_at=now,
            )
            db.session.add(dispute)

        if delta.verdict is not None:
            dispute = db.session.get(Dispute, delta.verdict.dispute_id)
            dispute.verdict = delta.verdict.verdict
            dispute.resolved_by = delta.verdict.resolved_by
            dispute.resolved_at = now
            dispute.penalty_applied_to = delta.verdict.penalty_applied_to
            profile = db.session.get(PlayerProfile, delta.verdict.penalty_applied_to)
            if profile is None:
                profile = PlayerProfile(id=delta.verdict.penalty_applied_to, dispute_penalties=0)
                db.session.add(profile)
            profile.dispute_penalties = (profile.dispute_penalties or 0) + 1

        db.session.add(match)
        db.session.flush()
        return MutationOutcome(match=match, delta=delta, dispute=dispute)
