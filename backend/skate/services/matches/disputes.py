"""Dispute filing and resolution.

A dispute contests the most recent judgment of an active match. Each
player may file one per match. The filer's opponent resolves it; an
overturn is applied as a compensating transition, never by editing the
judged move.
"""

from flask import current_app

from skate import db
from skate.errors import NotFoundError
from skate.models import Move, Dispute
from .mutator import TransactionalMutator, MutationOutcome, storage_errors
from .rules import Action, RuleSettings, DISPUTE, RESOLVE_DISPUTE, validate


class DisputeResolver:
    def __init__(self, mutator: TransactionalMutator, settings: RuleSettings):
        self.mutator = mutator
        self.settings = settings

    def file_dispute(self, match_id, filer_id, move_id, now: float) -> MutationOutcome:
        def decide(match):
            move = db.session.get(Move, move_id)
            if move is None or move.match_id != match.id:
                raise NotFoundError('Move not found', reason='move_not_found')
            latest_judgment_id = (
                db.session.query(Move.id)
                .filter(Move.match_id == match.id, Move.kind == 'judgment')
                .order_by(Move.seq.desc())
                .limit(1)
                .scalar()
            )
            # Votes share the round of the judgment they produced
            filer_vote = (
                db.session.query(Move.result)
                .filter(
                    Move.match_id == match.id,
                    Move.kind == 'vote',
                    Move.actor_id == filer_id,
                    Move.round_number == move.round_number,
                    Move.seq < move.seq,
                )
                .order_by(Move.seq.desc())
                .limit(1)
                .scalar()
            )
            return validate(
                match, filer_id, Action(DISPUTE, {'move_id': move_id}), self.settings, now,
                move=move, latest_judgment_id=latest_judgment_id, filer_vote=filer_vote,
            )

        outcome = self.mutator.apply(match_id, None, decide, now)
        current_app.logger.info(
            f"[dispute-filed] match={match_id} dispute={outcome.dispute.id} move={move_id} by={filer_id}"
        )
        return outcome

    def resolve(self, dispute_id, resolver_id, verdict, now: float) -> MutationOutcome:
        with storage_errors(f"dispute={dispute_id}"):
            dispute = db.session.get(Dispute, dispute_id)
        if dispute is None:
            raise NotFoundError('Dispute not found', reason='dispute_not_found')
        match_id = dispute.match_id

        def decide(match):
            current = db.session.get(Dispute, dispute_id, populate_existing=True)
            return validate(
                match, resolver_id, Action(RESOLVE_DISPUTE, {'verdict': verdict}), self.settings, now,
                dispute=current,
            )

        outcome = self.mutator.apply(match_id, None, decide, now)
        current_app.logger.info(
            f"[dispute-resolved] match={match_id} dispute={dispute_id} verdict={verdict} "
            f"penalty={outcome.dispute.penalty_applied_to}"
        )
        return outcome
