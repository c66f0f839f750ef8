"""Match engine context.

One ``MatchService`` lives on each Flask app (``app.extensions['skate']``)
and wires the validator, the mutator, dispute handling and the
notification port together. Route handlers and the reconciler both go
through it, so live actions and background forfeits share one path.
"""

import time
from typing import Callable, Optional

from flask import current_app

from skate import db
from skate.errors import (
    Rejection,
    ValidationError,
    NotFoundError,
    UNKNOWN_ACTION,
    WRONG_ACTOR,
    ACTOR_RESTRICTED,
    INVALID_REQUEST,
)
from skate.models import Match, PlayerProfile
from .cooldowns import WarningCooldownStore, cooldown_store_for
from .disputes import DisputeResolver
from .mutator import TransactionalMutator, MutationOutcome, storage_errors
from .notifications import NotificationPort, SocketIONotifier, deliver
from .rules import Action, Event, RuleSettings, CLIENT_ACTIONS, SYSTEM_ACTOR, ACCEPT, validate


class ModerationGate:
    """Yes/no trust gate consulted before a player can start or join a match."""

    def is_allowed(self, player_id: str) -> bool:
        return True


class MatchService:
    def __init__(self, settings: RuleSettings, notifier: NotificationPort,
                 cooldowns: WarningCooldownStore, moderation_gate: Optional[ModerationGate] = None,
                 mutator: Optional[TransactionalMutator] = None, clock: Callable[[], float] = time.time,
                 warning_lead_sec: int = 3600, warning_cooldown_sec: int = 3600):
        self.settings = settings
        self.notifier = notifier
        self.cooldowns = cooldowns
        self.moderation_gate = moderation_gate or ModerationGate()
        self.mutator = mutator or TransactionalMutator()
        self.disputes = DisputeResolver(self.mutator, settings)
        self.clock = clock
        self.warning_lead_sec = warning_lead_sec
        self.warning_cooldown_sec = warning_cooldown_sec

    @classmethod
    def from_app(cls, app, notifier=None, moderation_gate=None) -> 'MatchService':
        cfg = app.config
        return cls(
            settings=RuleSettings.from_config(cfg),
            notifier=notifier or SocketIONotifier(),
            cooldowns=cooldown_store_for(cfg.get('WARNING_STORE', 'database')),
            moderation_gate=moderation_gate,
            warning_lead_sec=int(cfg.get('WARNING_LEAD_SEC', 3600)),
            warning_cooldown_sec=int(cfg.get('WARNING_COOLDOWN_SEC', 3600)),
        )

    def now(self) -> float:
        return float(self.clock())

    def _require_allowed(self, player_id) -> None:
        if not self.moderation_gate.is_allowed(player_id):
            raise ValidationError(Rejection(ACTOR_RESTRICTED, 'Player is not allowed to play right now'))

    # ---- Write path ----

    def challenge(self, challenger_id, opponent_id) -> Match:
        if not challenger_id or not opponent_id:
            raise ValidationError(Rejection(INVALID_REQUEST, 'Challenger and opponent are required'))
        if challenger_id == opponent_id:
            raise ValidationError(Rejection(INVALID_REQUEST, 'Cannot challenge yourself'))
        if SYSTEM_ACTOR in (challenger_id, opponent_id):
            raise ValidationError(Rejection(WRONG_ACTOR, 'Reserved player id'))
        self._require_allowed(challenger_id)
        match = Match.challenge(challenger_id, opponent_id, now=self.now())
        with storage_errors(f"challenge={challenger_id}->{opponent_id}"):
            db.session.add(match)
            db.session.commit()
        current_app.logger.info(f"[challenge] match={match.id} a={challenger_id} b={opponent_id}")
        deliver(self.notifier, [_challenge_event(match)])
        return match

    def submit_action(self, match_id, actor_id, action_type, payload=None,
                      expected_version=None, idempotency_key=None) -> MutationOutcome:
        """Validate and commit one action, then notify. Used for client and system actors alike."""
        action = Action(action_type, dict(payload or {}))
        now = self.now()

        def decide(match):
            return validate(match, actor_id, action, self.settings, now)

        outcome = self.mutator.apply(match_id, expected_version, decide, now, idempotency_key=idempotency_key)
        if not outcome.duplicate:
            deliver(self.notifier, outcome.events)
        return outcome

    def submit_client_action(self, match_id, actor_id, action_type, payload=None,
                             expected_version=None, idempotency_key=None) -> MutationOutcome:
        if action_type not in CLIENT_ACTIONS:
            raise ValidationError(Rejection(UNKNOWN_ACTION, f'Unknown action {action_type!r}'))
        if not actor_id or actor_id == SYSTEM_ACTOR:
            raise ValidationError(Rejection(WRONG_ACTOR, 'A player id is required'))
        if action_type == ACCEPT:
            self._require_allowed(actor_id)
        return self.submit_action(match_id, actor_id, action_type, payload, expected_version, idempotency_key)

    def file_dispute(self, match_id, filer_id, move_id) -> MutationOutcome:
        outcome = self.disputes.file_dispute(match_id, filer_id, move_id, self.now())
        deliver(self.notifier, outcome.events)
        return outcome

    def resolve_dispute(self, dispute_id, resolver_id, verdict) -> MutationOutcome:
        outcome = self.disputes.resolve(dispute_id, resolver_id, verdict, self.now())
        deliver(self.notifier, outcome.events)
        return outcome

    # ---- Read projections ----

    def get_match(self, match_id) -> Match:
        with storage_errors(f"match={match_id}"):
            match = db.session.get(Match, match_id)
        if match is None:
            raise NotFoundError('Match not found', reason='match_not_found')
        return match

    def matches_for(self, player_id):
        with storage_errors(f"player={player_id}"):
            return (
                Match.query
                .filter((Match.player_a_id == player_id) | (Match.player_b_id == player_id))
                .order_by(Match.updated_at.desc())
                .all()
            )

    def profile(self, player_id) -> PlayerProfile:
        with storage_errors(f"profile={player_id}"):
            profile = db.session.get(PlayerProfile, player_id)
        return profile or PlayerProfile(id=player_id, dispute_penalties=0)


def _challenge_event(match):
    return Event(match.player_b_id, 'challenge_received', {'match_id': match.id, 'challenger_id': match.player_a_id})


def get_service() -> MatchService:
    return current_app.extensions['skate']
