"""Match rules: the pure action validator.

``validate`` inspects a match snapshot and a proposed action and returns
either a ``Delta`` describing the next state or a typed ``Rejection``.
It never touches the database or the clock; callers pass ``now`` and
any rows the action refers to (the disputed move, the dispute).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from skate.errors import (
    Rejection,
    WRONG_PHASE,
    WRONG_ACTOR,
    MATCH_NOT_ACTIVE,
    DISPUTE_BUDGET_EXHAUSTED,
    EVIDENCE_MISSING,
    UNKNOWN_ACTION,
    DEADLINE_ELAPSED,
    ALREADY_VOTED,
    INVALID_VERDICT,
    NOT_DISPUTABLE,
    DISPUTE_WINDOW_CLOSED,
    DISPUTE_ALREADY_RESOLVED,
    NOT_EXPIRED,
)
from skate.models import (
    LETTERS,
    MAX_LETTERS,
    PENDING,
    ACTIVE,
    COMPLETED,
    FORFEITED,
    DECLINED,
    AWAITING_SET,
    AWAITING_RESPONSE,
    AWAITING_JUDGMENT,
    VERIFICATION,
    LANDED,
    MISSED,
    UPHELD,
    OVERTURNED,
)

SYSTEM_ACTOR = 'system'

ACCEPT = 'accept'
DECLINE = 'decline'
SET_TRICK = 'set_trick'
ATTEMPT_RESPONSE = 'attempt_response'
JUDGE = 'judge'
SETTER_MISSED = 'setter_missed'
FORFEIT = 'forfeit'
DISPUTE = 'dispute'
RESOLVE_DISPUTE = 'resolve_dispute'
TIMEOUT = 'timeout'
HARD_CAP = 'hard_cap'

# Actions a client may submit through the generic action endpoint
CLIENT_ACTIONS = (ACCEPT, DECLINE, SET_TRICK, ATTEMPT_RESPONSE, JUDGE, SETTER_MISSED, FORFEIT)

SELF_REPORT = 'self_report'
DUAL_VOTE = 'dual_vote'


@dataclass(frozen=True)
class RuleSettings:
    turn_deadline_sec: int = 24 * 60 * 60
    hard_cap_sec: int = 7 * 24 * 60 * 60
    dispute_grace_sec: int = 24 * 60 * 60
    judging_mode: str = DUAL_VOTE

    @classmethod
    def from_config(cls, config) -> 'RuleSettings':
        mode = config.get('JUDGING_MODE', cls.judging_mode)
        judging_strategy(mode)
        return cls(
            turn_deadline_sec=int(config.get('TURN_DEADLINE_SEC', cls.turn_deadline_sec)),
            hard_cap_sec=int(config.get('MATCH_HARD_CAP_SEC', cls.hard_cap_sec)),
            dispute_grace_sec=int(config.get('DISPUTE_GRACE_SEC', cls.dispute_grace_sec)),
            judging_mode=mode,
        )


@dataclass(frozen=True)
class Action:
    type: str
    payload: Dict[str, Any] = field(default_factory=dict)

    def get(self, key, default=None):
        return (self.payload or {}).get(key, default)


@dataclass
class MoveRecord:
    kind: str
    actor_id: str
    trick_name: Optional[str] = None
    evidence_ref: Optional[str] = None
    result: Optional[str] = None
    letter: Optional[str] = None
    judged_against_id: Optional[str] = None


@dataclass
class Event:
    player_id: str
    event_type: str
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DisputeFiling:
    move_id: int
    filed_by: str
    against_player_id: str
    original_result: str


@dataclass
class DisputeVerdict:
    dispute_id: int
    verdict: str
    resolved_by: str
    penalty_applied_to: str


@dataclass
class Delta:
    kind: str
    changes: Dict[str, Any] = field(default_factory=dict)
    moves: List[MoveRecord] = field(default_factory=list)
    events: List[Event] = field(default_factory=list)
    filing: Optional[DisputeFiling] = None
    verdict: Optional[DisputeVerdict] = None
    message: str = ''


Decision = Union[Delta, Rejection]


def next_letter(letters: str) -> str:
    return LETTERS[len(letters)] if len(letters) < MAX_LETTERS else ''


def deadline_elapsed(match, now: float) -> bool:
    return match.deadline_at is not None and match.deadline_at <= now


def hard_cap_reached(match, now: float, settings: RuleSettings) -> bool:
    return match.created_at is not None and match.created_at + settings.hard_cap_sec <= now


def letters_field(match, player_id) -> str:
    return 'player_a_letters' if player_id == match.player_a_id else 'player_b_letters'


def budget_field(match, player_id) -> str:
    return 'player_a_dispute_used' if player_id == match.player_a_id else 'player_b_dispute_used'


def _cleared_turn() -> Dict[str, Any]:
    return {
        'current_trick_name': None,
        'current_evidence_ref': None,
        'response_evidence_ref': None,
        'attacker_vote': None,
        'defender_vote': None,
    }


def _next_set(attacker_id, defender_id, now, settings) -> Dict[str, Any]:
    changes = _cleared_turn()
    changes.update({
        'phase': AWAITING_SET,
        'attacker_id': attacker_id,
        'defender_id': defender_id,
        'current_actor_id': attacker_id,
        'deadline_at': now + settings.turn_deadline_sec,
    })
    return changes


def _finish(status, winner_id, now, forfeit_reason=None) -> Dict[str, Any]:
    changes = _cleared_turn()
    changes.update({
        'status': status,
        'phase': None,
        'current_actor_id': None,
        'deadline_at': None,
        'winner_id': winner_id,
        'completed_at': now,
        'forfeit_reason': forfeit_reason,
    })
    return changes


def _match_over_events(match, winner_id, reason) -> List[Event]:
    return [
        Event(pid, 'match_over', {'match_id': match.id, 'winner_id': winner_id, 'you_won': pid == winner_id, 'reason': reason})
        for pid in match.players
    ]


def _live_guard(match, actor_id, now) -> Optional[Rejection]:
    if match.status != ACTIVE:
        return Rejection(MATCH_NOT_ACTIVE, 'Match is not active')
    if not match.is_participant(actor_id):
        return Rejection(WRONG_ACTOR, 'You are not a player in this match')
    if deadline_elapsed(match, now):
        return Rejection(DEADLINE_ELAPSED, 'Turn deadline has passed')
    return None


# ---- Judging strategies ----

@dataclass
class Ballot:
    """Outcome of one judge submission: recorded votes and, once decided, the final result."""

    changes: Dict[str, Any]
    vote: str
    final: Optional[str] = None
    waiting_on: Optional[str] = None


class SelfReportJudging:
    """The defender reports their own attempt; the report is final."""

    def cast(self, match, actor_id, verdict):
        if actor_id != match.defender_id:
            return Rejection(WRONG_ACTOR, 'Only the defending player can judge')
        return Ballot(changes={'defender_vote': verdict}, vote=verdict, final=verdict)


class DualVoteJudging:
    """Both players vote; disagreement resolves to landed."""

    def cast(self, match, actor_id, verdict):
        if actor_id == match.attacker_id:
            mine, theirs, other = 'attacker_vote', 'defender_vote', match.defender_id
        elif actor_id == match.defender_id:
            mine, theirs, other = 'defender_vote', 'attacker_vote', match.attacker_id
        else:
            return Rejection(WRONG_ACTOR, 'Not a participant in this judgment')
        if getattr(match, mine) is not None:
            return Rejection(ALREADY_VOTED, 'You have already voted')
        other_vote = getattr(match, theirs)
        if other_vote is None:
            return Ballot(changes={mine: verdict}, vote=verdict, waiting_on=other)
        final = verdict if verdict == other_vote else LANDED
        return Ballot(changes={mine: verdict}, vote=verdict, final=final)


JUDGING_STRATEGIES = {
    SELF_REPORT: SelfReportJudging(),
    DUAL_VOTE: DualVoteJudging(),
}


def judging_strategy(mode: str):
    try:
        return JUDGING_STRATEGIES[mode]
    except KeyError:
        raise ValueError(f'Unknown judging mode {mode!r}')


# ---- Transitions ----

def _accept(match, actor_id, action, settings, now) -> Decision:
    if match.status != PENDING:
        return Rejection(WRONG_PHASE, 'Match is not pending')
    if actor_id != match.player_b_id:
        return Rejection(WRONG_ACTOR, 'Only the challenged player can respond')
    changes = _next_set(match.player_a_id, match.player_b_id, now, settings)
    changes['status'] = ACTIVE
    return Delta(
        kind=ACCEPT,
        changes=changes,
        moves=[MoveRecord(ACCEPT, actor_id)],
        events=[Event(match.player_a_id, 'your_turn', {'match_id': match.id, 'phase': AWAITING_SET})],
        message='Game on.',
    )


def _decline(match, actor_id, action, settings, now) -> Decision:
    if match.status != PENDING:
        return Rejection(WRONG_PHASE, 'Match is not pending')
    if actor_id != match.player_b_id:
        return Rejection(WRONG_ACTOR, 'Only the challenged player can respond')
    changes = _finish(DECLINED, None, now)
    return Delta(
        kind=DECLINE,
        changes=changes,
        moves=[MoveRecord(DECLINE, actor_id)],
        events=[Event(match.player_a_id, 'challenge_declined', {'match_id': match.id})],
        message='Challenge declined.',
    )


def _set_trick(match, actor_id, action, settings, now) -> Decision:
    rejection = _live_guard(match, actor_id, now)
    if rejection:
        return rejection
    if match.phase != AWAITING_SET:
        return Rejection(WRONG_PHASE, 'Not accepting a new trick right now')
    if actor_id != match.attacker_id:
        return Rejection(WRONG_ACTOR, 'Only the attacker can set a trick')
    name = (action.get('name') or action.get('trick_name') or '').strip()
    evidence = (action.get('evidence_ref') or '').strip()
    if not name or not evidence:
        return Rejection(EVIDENCE_MISSING, 'Trick name and evidence are required')
    return Delta(
        kind=SET_TRICK,
        changes={
            'phase': AWAITING_RESPONSE,
            'current_trick_name': name,
            'current_evidence_ref': evidence,
            'current_actor_id': match.defender_id,
            'deadline_at': now + settings.turn_deadline_sec,
        },
        moves=[MoveRecord(SET_TRICK, actor_id, trick_name=name, evidence_ref=evidence)],
        events=[Event(match.defender_id, 'your_turn', {'match_id': match.id, 'phase': AWAITING_RESPONSE, 'trick_name': name})],
        message='Trick set. Sent.',
    )


def _attempt_response(match, actor_id, action, settings, now) -> Decision:
    rejection = _live_guard(match, actor_id, now)
    if rejection:
        return rejection
    if match.phase != AWAITING_RESPONSE:
        return Rejection(WRONG_PHASE, 'No trick is waiting for a response')
    if actor_id != match.defender_id:
        return Rejection(WRONG_ACTOR, 'Only the defender can respond')
    evidence = (action.get('evidence_ref') or '').strip()
    if not evidence:
        return Rejection(EVIDENCE_MISSING, 'Response evidence is required')
    return Delta(
        kind=ATTEMPT_RESPONSE,
        changes={
            'phase': AWAITING_JUDGMENT,
            'response_evidence_ref': evidence,
            'attacker_vote': None,
            'defender_vote': None,
            'current_actor_id': match.defender_id,
            'deadline_at': now + settings.turn_deadline_sec,
        },
        moves=[MoveRecord(ATTEMPT_RESPONSE, actor_id, trick_name=match.current_trick_name, evidence_ref=evidence)],
        events=[Event(match.attacker_id, 'trick_attempted', {'match_id': match.id, 'trick_name': match.current_trick_name})],
        message='Response sent. Now judge the trick.',
    )


def _judge(match, actor_id, action, settings, now) -> Decision:
    rejection = _live_guard(match, actor_id, now)
    if rejection:
        return rejection
    if match.phase != AWAITING_JUDGMENT:
        return Rejection(WRONG_PHASE, 'Match is not in judging phase')
    verdict = action.get('verdict') or action.get('result')
    if verdict not in (LANDED, MISSED):
        return Rejection(INVALID_VERDICT, "Verdict must be 'landed' or 'missed'")
    ballot = judging_strategy(settings.judging_mode).cast(match, actor_id, verdict)
    if isinstance(ballot, Rejection):
        return ballot

    vote_move = MoveRecord('vote', actor_id, trick_name=match.current_trick_name, result=verdict)
    if ballot.final is None:
        changes = dict(ballot.changes)
        changes['current_actor_id'] = ballot.waiting_on
        changes['deadline_at'] = now + settings.turn_deadline_sec
        return Delta(
            kind=JUDGE,
            changes=changes,
            moves=[vote_move],
            events=[Event(ballot.waiting_on, 'vote_requested', {'match_id': match.id, 'trick_name': match.current_trick_name})],
            message='Vote recorded. Waiting for the other vote.',
        )

    delta = apply_judgment(match, actor_id, ballot.final, settings, now)
    delta.changes = {**ballot.changes, **delta.changes}
    if settings.judging_mode == DUAL_VOTE:
        delta.moves.insert(0, vote_move)
    return delta


def apply_judgment(match, actor_id, result, settings, now) -> Delta:
    """Letter and turn-transfer rule for a final judgment."""
    attacker, defender = match.attacker_id, match.defender_id
    trick = match.current_trick_name
    if result == MISSED:
        letters = match.letters_of(defender)
        letter = next_letter(letters)
        new_letters = letters + letter
        move = MoveRecord('judgment', actor_id, trick_name=trick, result=MISSED, letter=letter, judged_against_id=defender)
        if len(new_letters) >= MAX_LETTERS:
            changes = _finish(COMPLETED, attacker, now)
            changes[letters_field(match, defender)] = new_letters
            return Delta(
                kind=JUDGE,
                changes=changes,
                moves=[move],
                events=_match_over_events(match, attacker, 'letters'),
                message='Game over.',
            )
        changes = _next_set(attacker, defender, now, settings)
        changes[letters_field(match, defender)] = new_letters
        changes['round_number'] = (match.round_number or 1) + 1
        return Delta(
            kind=JUDGE,
            changes=changes,
            moves=[move],
            events=[Event(match.opponent_of(actor_id), 'trick_judged', {'match_id': match.id, 'result': MISSED, 'letter': letter})],
            message='BAIL. Letter earned.',
        )

    changes = _next_set(defender, attacker, now, settings)
    changes['round_number'] = (match.round_number or 1) + 1
    return Delta(
        kind=JUDGE,
        changes=changes,
        moves=[MoveRecord('judgment', actor_id, trick_name=trick, result=LANDED, judged_against_id=attacker)],
        events=[Event(match.opponent_of(actor_id), 'trick_judged', {'match_id': match.id, 'result': LANDED})],
        message='LAND. Roles swap.',
    )


def _setter_missed(match, actor_id, action, settings, now) -> Decision:
    rejection = _live_guard(match, actor_id, now)
    if rejection:
        return rejection
    if match.phase != AWAITING_RESPONSE:
        return Rejection(WRONG_PHASE, 'Can only concede a trick before the response')
    if actor_id != match.attacker_id:
        return Rejection(WRONG_ACTOR, 'Only the setter can concede their trick')
    return Delta(
        kind=SETTER_MISSED,
        changes=_next_set(match.defender_id, match.attacker_id, now, settings),
        moves=[MoveRecord(SETTER_MISSED, actor_id, trick_name=match.current_trick_name)],
        events=[Event(match.defender_id, 'your_turn', {'match_id': match.id, 'phase': AWAITING_SET})],
        message='Setter missed. Roles swap.',
    )


def _forfeit(match, actor_id, action, settings, now) -> Decision:
    rejection = _live_guard(match, actor_id, now)
    if rejection:
        return rejection
    winner = match.opponent_of(actor_id)
    return Delta(
        kind=FORFEIT,
        changes=_finish(FORFEITED, winner, now, forfeit_reason='resigned'),
        moves=[MoveRecord(FORFEIT, actor_id, judged_against_id=actor_id)],
        events=[Event(winner, 'you_won', {'match_id': match.id, 'reason': 'resigned'})],
        message='You forfeited.',
    )


def _timeout(match, actor_id, action, settings, now) -> Decision:
    if actor_id != SYSTEM_ACTOR:
        return Rejection(WRONG_ACTOR, 'Timeouts are issued by the system')
    if match.status != ACTIVE:
        return Rejection(MATCH_NOT_ACTIVE, 'Match is not active')
    if not deadline_elapsed(match, now):
        return Rejection(NOT_EXPIRED, 'Deadline has not elapsed')
    loser = match.current_actor_id if match.is_participant(match.current_actor_id) else match.player_a_id
    winner = match.opponent_of(loser)
    return Delta(
        kind=TIMEOUT,
        changes=_finish(FORFEITED, winner, now, forfeit_reason='turn_timeout'),
        moves=[MoveRecord(TIMEOUT, SYSTEM_ACTOR, judged_against_id=loser)],
        events=[
            Event(loser, 'forfeited_by_timeout', {'match_id': match.id, 'winner_id': winner}),
            Event(winner, 'you_won', {'match_id': match.id, 'reason': 'turn_timeout'}),
        ],
        message='Turn deadline passed. Match forfeited.',
    )


def stalled_loser(match) -> str:
    """More letters loses; a tie goes against whoever is sitting on the turn."""
    a_count = len(match.player_a_letters or '')
    b_count = len(match.player_b_letters or '')
    if a_count > b_count:
        return match.player_a_id
    if b_count > a_count:
        return match.player_b_id
    if match.is_participant(match.current_actor_id):
        return match.current_actor_id
    return match.player_a_id


def _hard_cap(match, actor_id, action, settings, now) -> Decision:
    if actor_id != SYSTEM_ACTOR:
        return Rejection(WRONG_ACTOR, 'Hard cap is enforced by the system')
    if match.status != ACTIVE:
        return Rejection(MATCH_NOT_ACTIVE, 'Match is not active')
    if not hard_cap_reached(match, now, settings):
        return Rejection(NOT_EXPIRED, 'Match is within its time limit')
    loser = stalled_loser(match)
    winner = match.opponent_of(loser)
    return Delta(
        kind=HARD_CAP,
        changes=_finish(FORFEITED, winner, now, forfeit_reason='hard_cap'),
        moves=[MoveRecord(HARD_CAP, SYSTEM_ACTOR, judged_against_id=loser)],
        events=[
            Event(loser, 'forfeited_by_hard_cap', {'match_id': match.id, 'winner_id': winner}),
            Event(winner, 'you_won', {'match_id': match.id, 'reason': 'hard_cap'}),
        ],
        message='Match exceeded its time limit.',
    )


def _dispute(match, actor_id, action, settings, now, move=None, latest_judgment_id=None, filer_vote=None) -> Decision:
    rejection = _live_guard(match, actor_id, now)
    if rejection:
        return rejection
    if match.dispute_used(actor_id):
        return Rejection(DISPUTE_BUDGET_EXHAUSTED, 'You have already used your dispute for this match')
    if move is None or move.match_id != match.id or move.kind != 'judgment':
        return Rejection(NOT_DISPUTABLE, 'Only judgments can be disputed')
    if move.judged_against_id != actor_id:
        return Rejection(WRONG_ACTOR, 'You can only dispute judgments made against you')
    # The next set may already be pending; filing discards it
    if match.phase not in (AWAITING_SET, AWAITING_RESPONSE):
        return Rejection(WRONG_PHASE, 'Disputes must be filed before the next attempt')
    if move.id != latest_judgment_id or now - move.created_at > settings.dispute_grace_sec:
        return Rejection(DISPUTE_WINDOW_CLOSED, 'This judgment can no longer be disputed')
    if move.result == MISSED and not match.letters_of(actor_id):
        return Rejection(NOT_DISPUTABLE, 'No letter to dispute')
    if filer_vote is not None and filer_vote == move.result:
        return Rejection(NOT_DISPUTABLE, 'You voted for this result')

    against = match.opponent_of(actor_id)
    changes = _cleared_turn()
    changes.update({
        budget_field(match, actor_id): True,
        'phase': VERIFICATION,
        'current_actor_id': against,
        'deadline_at': now + settings.turn_deadline_sec,
    })
    return Delta(
        kind=DISPUTE,
        changes=changes,
        moves=[MoveRecord('dispute_filed', actor_id, trick_name=move.trick_name, result=move.result, judged_against_id=actor_id)],
        events=[Event(against, 'dispute_filed', {'match_id': match.id, 'move_id': move.id})],
        filing=DisputeFiling(move_id=move.id, filed_by=actor_id, against_player_id=against, original_result=move.result),
        message='Dispute filed.',
    )


def _resolve_dispute(match, actor_id, action, settings, now, dispute=None) -> Decision:
    if dispute is None or dispute.match_id != match.id:
        return Rejection(NOT_DISPUTABLE, 'Dispute does not belong to this match')
    if dispute.verdict is not None:
        return Rejection(DISPUTE_ALREADY_RESOLVED, 'Dispute already resolved')
    rejection = _live_guard(match, actor_id, now)
    if rejection:
        return rejection
    if actor_id != dispute.against_player_id:
        return Rejection(WRONG_ACTOR, 'Only the opposing player can resolve the dispute')
    verdict = action.get('verdict')
    if verdict not in (UPHELD, OVERTURNED):
        return Rejection(INVALID_VERDICT, "Verdict must be 'upheld' or 'overturned'")
    if match.phase != VERIFICATION:
        return Rejection(WRONG_PHASE, 'Match is not awaiting a dispute resolution')

    filer, resolver = dispute.filed_by, dispute.against_player_id
    if verdict == UPHELD:
        return Delta(
            kind=RESOLVE_DISPUTE,
            changes=_next_set(match.attacker_id, match.defender_id, now, settings),
            moves=[MoveRecord('dispute_resolved', actor_id, result=UPHELD, judged_against_id=filer)],
            events=[Event(filer, 'dispute_resolved', {'match_id': match.id, 'dispute_id': dispute.id, 'verdict': UPHELD})],
            verdict=DisputeVerdict(dispute.id, UPHELD, actor_id, penalty_applied_to=filer),
            message='Dispute upheld.',
        )

    verdict_record = DisputeVerdict(dispute.id, OVERTURNED, actor_id, penalty_applied_to=resolver)
    resolved_event = Event(filer, 'dispute_resolved', {'match_id': match.id, 'dispute_id': dispute.id, 'verdict': OVERTURNED})

    if dispute.original_result == MISSED:
        # The filer's letter comes off and the trick counts as landed
        letters = match.letters_of(filer)
        if not letters:
            return Rejection(NOT_DISPUTABLE, 'No letter to reverse')
        changes = _next_set(filer, resolver, now, settings)
        changes[letters_field(match, filer)] = letters[:-1]
        return Delta(
            kind=RESOLVE_DISPUTE,
            changes=changes,
            moves=[MoveRecord('dispute_resolved', actor_id, result=OVERTURNED, letter=letters[-1], judged_against_id=resolver)],
            events=[resolved_event],
            verdict=verdict_record,
            message='Dispute overturned. Letter removed. Roles swap.',
        )

    # A landed call overturned: the resolver takes the letter, the filer sets again
    letters = match.letters_of(resolver)
    letter = next_letter(letters)
    new_letters = letters + letter
    move = MoveRecord('dispute_resolved', actor_id, result=OVERTURNED, letter=letter, judged_against_id=resolver)
    if len(new_letters) >= MAX_LETTERS:
        changes = _finish(COMPLETED, filer, now)
        changes[letters_field(match, resolver)] = new_letters
        return Delta(
            kind=RESOLVE_DISPUTE,
            changes=changes,
            moves=[move],
            events=_match_over_events(match, filer, 'letters'),
            verdict=verdict_record,
            message='Dispute overturned. Game over.',
        )
    changes = _next_set(filer, resolver, now, settings)
    changes[letters_field(match, resolver)] = new_letters
    return Delta(
        kind=RESOLVE_DISPUTE,
        changes=changes,
        moves=[move],
        events=[resolved_event],
        verdict=verdict_record,
        message='Dispute overturned. Letter earned.',
    )


_HANDLERS = {
    ACCEPT: _accept,
    DECLINE: _decline,
    SET_TRICK: _set_trick,
    ATTEMPT_RESPONSE: _attempt_response,
    JUDGE: _judge,
    SETTER_MISSED: _setter_missed,
    FORFEIT: _forfeit,
    TIMEOUT: _timeout,
    HARD_CAP: _hard_cap,
}


def validate(match, actor_id, action: Action, settings: RuleSettings, now: float,
             move=None, latest_judgment_id=None, filer_vote=None, dispute=None) -> Decision:
    """Decide whether ``action`` by ``actor_id`` is legal for ``match``.

    ``move``, ``latest_judgment_id`` and ``filer_vote`` (the filer's own
    ballot on that judgment, if any) are consulted for disputes and
    ``dispute`` for resolutions; other actions ignore them.
    """
    if action.type == DISPUTE:
        return _dispute(
            match, actor_id, action, settings, now,
            move=move, latest_judgment_id=latest_judgment_id, filer_vote=filer_vote,
        )
    if action.type == RESOLVE_DISPUTE:
        return _resolve_dispute(match, actor_id, action, settings, now, dispute=dispute)
    handler = _HANDLERS.get(action.type)
    if handler is None:
        return Rejection(UNKNOWN_ACTION, f'Unknown action {action.type!r}')
    return handler(match, actor_id, action, settings, now)
