from skate import db
from sqlalchemy import event
from sqlalchemy.orm import validates
import json
import time
import uuid

LETTERS = 'SKATE'
MAX_LETTERS = len(LETTERS)

PENDING = 'pending'
ACTIVE = 'active'
COMPLETED = 'completed'
FORFEITED = 'forfeited'
DECLINED = 'declined'

AWAITING_SET = 'awaiting_set'
AWAITING_RESPONSE = 'awaiting_response'
AWAITING_JUDGMENT = 'awaiting_judgment'
VERIFICATION = 'verification'

LANDED = 'landed'
MISSED = 'missed'

UPHELD = 'upheld'
OVERTURNED = 'overturned'

# Idempotency keys remembered per match
MAX_PROCESSED_KEYS = 50


class Match(db.Model):
    __tablename__ = 'match'
    id = db.Column(db.String(32), primary_key=True)
    player_a_id = db.Column(db.String(255), nullable=False, index=True)
    player_b_id = db.Column(db.String(255), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=PENDING)  # pending, active, completed, forfeited, declined
    phase = db.Column(db.String(32), nullable=True)  # awaiting_set, awaiting_response, awaiting_judgment, verification
    current_actor_id = db.Column(db.String(255), nullable=True)
    attacker_id = db.Column(db.String(255), nullable=True)
    defender_id = db.Column(db.String(255), nullable=True)
    player_a_letters = db.Column(db.String(5), nullable=False, default='')
    player_b_letters = db.Column(db.String(5), nullable=False, default='')
    current_trick_name = db.Column(db.String(500), nullable=True)
    current_evidence_ref = db.Column(db.String(500), nullable=True)
    response_evidence_ref = db.Column(db.String(500), nullable=True)
    # Dual-vote ballots for the trick under judgment
    attacker_vote = db.Column(db.String(16), nullable=True)
    defender_vote = db.Column(db.String(16), nullable=True)
    player_a_dispute_used = db.Column(db.Boolean, nullable=False, default=False)
    player_b_dispute_used = db.Column(db.Boolean, nullable=False, default=False)
    round_number = db.Column(db.Integer, nullable=False, default=1)
    deadline_at = db.Column(db.Float, nullable=True)
    created_at = db.Column(db.Float, nullable=False, default=time.time)
    updated_at = db.Column(db.Float, nullable=False, default=time.time)
    completed_at = db.Column(db.Float, nullable=True)
    winner_id = db.Column(db.String(255), nullable=True)
    forfeit_reason = db.Column(db.String(32), nullable=True)  # resigned, turn_timeout, hard_cap
    processed_keys = db.Column(db.Text, nullable=True)  # JSON-encoded list of idempotency keys
    version = db.Column(db.Integer, nullable=False)

    moves = db.relationship('Move', back_populates='match', order_by='Move.seq', lazy='select')
    disputes = db.relationship('Dispute', back_populates='match', order_by='Dispute.id', lazy='select')

    __mapper_args__ = {'version_id_col': version}
    __table_args__ = (
        db.Index('ix_match_status_deadline', 'status', 'deadline_at'),
        db.Index('ix_match_status_created', 'status', 'created_at'),
    )

    @classmethod
    def challenge(cls, challenger_id, opponent_id, now=None):
        """A pending match where the challenger will set the first trick."""
        now = time.time() if now is None else now
        return cls(
            id=uuid.uuid4().hex,
            player_a_id=challenger_id,
            player_b_id=opponent_id,
            status=PENDING,
            phase=None,
            current_actor_id=opponent_id,
            attacker_id=challenger_id,
            defender_id=opponent_id,
            player_a_letters='',
            player_b_letters='',
            player_a_dispute_used=False,
            player_b_dispute_used=False,
            round_number=1,
            created_at=now,
            updated_at=now,
        )

    @validates('player_a_letters', 'player_b_letters')
    def _validate_letters(self, key, value):
        value = value or ''
        if len(value) > MAX_LETTERS or not LETTERS.startswith(value):
            raise ValueError(f'{key}={value!r} is not a prefix of {LETTERS}')
        return value

    @validates('player_a_dispute_used', 'player_b_dispute_used')
    def _validate_dispute_budget(self, key, value):
        if getattr(self, key, None) and not value:
            raise ValueError(f'{key} cannot be restored once used')
        return bool(value)

    @property
    def players(self):
        return (self.player_a_id, self.player_b_id)

    def is_participant(self, player_id) -> bool:
        return player_id in self.players

    def opponent_of(self, player_id):
        if player_id == self.player_a_id:
            return self.player_b_id
        if player_id == self.player_b_id:
            return self.player_a_id
        return None

    def letters_of(self, player_id) -> str:
        return (self.player_a_letters if player_id == self.player_a_id else self.player_b_letters) or ''

    def dispute_used(self, player_id) -> bool:
        if player_id == self.player_a_id:
            return bool(self.player_a_dispute_used)
        return bool(self.player_b_dispute_used)

    @property
    def letters(self):
        return {self.player_a_id: self.player_a_letters or '', self.player_b_id: self.player_b_letters or ''}

    @property
    def dispute_budget(self):
        return {self.player_a_id: bool(self.player_a_dispute_used), self.player_b_id: bool(self.player_b_dispute_used)}

    def processed_key_list(self):
        try:
            return json.loads(self.processed_keys) if self.processed_keys else []
        except ValueError:
            return []

    def remember_key(self, key) -> None:
        keys = [k for k in self.processed_key_list() if k != key]
        keys.append(key)
        self.processed_keys = json.dumps(keys[-MAX_PROCESSED_KEYS:])

    def to_dict(self, include_moves=False):
        payload = {
            'id': self.id,
            'players': list(self.players),
            'status': self.status,
            'phase': self.phase if self.status == ACTIVE else None,
            'current_actor_id': self.current_actor_id if self.status in (PENDING, ACTIVE) else None,
            'attacker_id': self.attacker_id,
            'defender_id': self.defender_id,
            'letters': self.letters,
            'current_trick_name': self.current_trick_name,
            'current_evidence_ref': self.current_evidence_ref,
            'response_evidence_ref': self.response_evidence_ref,
            'votes_cast': {
                'attacker': self.attacker_vote is not None,
                'defender': self.defender_vote is not None,
            },
            'dispute_budget': self.dispute_budget,
            'round_number': self.round_number,
            'deadline_at': self.deadline_at,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
            'completed_at': self.completed_at,
            'winner_id': self.winner_id,
            'forfeit_reason': self.forfeit_reason,
            'version': self.version,
        }
        if include_moves:
            payload['moves'] = [m.to_dict() for m in self.moves]
            payload['disputes'] = [d.to_dict() for d in self.disputes]
        return payload


class Move(db.Model):
    __tablename__ = 'move'
    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.String(32), db.ForeignKey('match.id'), nullable=False, index=True)
    seq = db.Column(db.Integer, nullable=False)
    kind = db.Column(db.String(32), nullable=False)
    actor_id = db.Column(db.String(255), nullable=False)
    trick_name = db.Column(db.String(500), nullable=True)
    evidence_ref = db.Column(db.String(500), nullable=True)
    result = db.Column(db.String(16), nullable=True)
    letter = db.Column(db.String(1), nullable=True)
    judged_against_id = db.Column(db.String(255), nullable=True)
    round_number = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.Float, nullable=False, default=time.time)

    match = db.relationship('Match', back_populates='moves')

    __table_args__ = (db.UniqueConstraint('match_id', 'seq', name='uq_move_match_seq'),)

    def to_dict(self):
        return {
            'id': self.id,
            'match_id': self.match_id,
            'seq': self.seq,
            'kind': self.kind,
            'actor_id': self.actor_id,
            'trick_name': self.trick_name,
            'evidence_ref': self.evidence_ref,
            'result': self.result,
            'letter': self.letter,
            'judged_against_id': self.judged_against_id,
            'round_number': self.round_number,
            'created_at': self.created_at,
        }


@event.listens_for(Move, 'before_update')
def _moves_are_append_only(mapper, connection, target):
    raise ValueError(f'move {target.id} is append-only')


class Dispute(db.Model):
    __tablename__ = 'dispute'
    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.String(32), db.ForeignKey('match.id'), nullable=False, index=True)
    move_id = db.Column(db.Integer, db.ForeignKey('move.id'), nullable=False)
    filed_by = db.Column(db.String(255), nullable=False)
    against_player_id = db.Column(db.String(255), nullable=False)
    original_result = db.Column(db.String(16), nullable=False)
    verdict = db.Column(db.String(16), nullable=True)  # upheld, overturned; null while pending
    resolved_by = db.Column(db.String(255), nullable=True)
    resolved_at = db.Column(db.Float, nullable=True)
    penalty_applied_to = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.Float, nullable=False, default=time.time)

    match = db.relationship('Match', back_populates='disputes')
    move = db.relationship('Move')

    @validates('verdict')
    def _validate_verdict(self, key, value):
        if self.verdict is not None and value != self.verdict:
            raise ValueError(f'dispute {self.id} verdict is final')
        return value

    def to_dict(self):
        return {
            'id': self.id,
            'match_id': self.match_id,
            'move_id': self.move_id,
            'filed_by': self.filed_by,
            'against_player_id': self.against_player_id,
            'original_result': self.original_result,
            'verdict': self.verdict,
            'resolved_by': self.resolved_by,
            'resolved_at': self.resolved_at,
            'penalty_applied_to': self.penalty_applied_to,
            'created_at': self.created_at,
        }


class PlayerProfile(db.Model):
    __tablename__ = 'player_profile'
    id = db.Column(db.String(255), primary_key=True)
    dispute_penalties = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self):
        return {
            'id': self.id,
            'dispute_penalties': self.dispute_penalties or 0,
        }


class DeadlineWarning(db.Model):
    __tablename__ = 'deadline_warning'
    match_id = db.Column(db.String(32), primary_key=True)
    warned_at = db.Column(db.Float, nullable=False)
