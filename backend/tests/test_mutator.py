import pytest
import sqlalchemy as sa
from sqlalchemy.exc import OperationalError

from skate import db
from skate.errors import ConcurrencyConflict, NotFoundError, StorageUnavailableError, ValidationError
from skate.models import Match, Move, ACTIVE, FORFEITED, AWAITING_RESPONSE
from skate.services.matches.mutator import TransactionalMutator
from skate.services.matches.rules import Action, SET_TRICK, validate


TRICK = {'name': 'kickflip', 'evidence_ref': 'clip://kickflip'}


def _bump_version(match_id):
    table = Match.__table__
    db.session.execute(sa.update(table).where(table.c.id == match_id).values(version=table.c.version + 1))


def _racing_decide(service, actor_id, action, races):
    """Validate normally, but let a competing writer bump the row first ``races`` times."""
    calls = {'n': 0}

    def decide(match):
        calls['n'] += 1
        if calls['n'] <= races:
            _bump_version(match.id)
        return validate(match, actor_id, action, service.settings, service.now())
    return decide, calls


def test_commit_appends_moves_and_bumps_version(service, start_match):
    match_id = start_match()
    version = service.get_match(match_id).version
    outcome = service.submit_action(match_id, 'alice', 'set_trick', TRICK)
    assert outcome.match.version == version + 1
    assert outcome.match.phase == AWAITING_RESPONSE
    moves = Move.query.filter_by(match_id=match_id).order_by(Move.seq).all()
    assert [(m.seq, m.kind) for m in moves] == [(1, 'accept'), (2, 'set_trick')]
    assert moves[-1].round_number == 1


def test_rejection_writes_nothing(service, start_match):
    match_id = start_match()
    version = service.get_match(match_id).version
    with pytest.raises(ValidationError) as excinfo:
        service.submit_action(match_id, 'bob', 'set_trick', TRICK)
    assert excinfo.value.reason == 'wrong_actor'
    assert excinfo.value.status_code == 403
    assert service.get_match(match_id).version == version
    assert Move.query.filter_by(match_id=match_id).count() == 1


def test_single_race_is_retried(service, start_match):
    match_id = start_match()
    decide, calls = _racing_decide(service, 'alice', Action(SET_TRICK, TRICK), races=1)
    outcome = TransactionalMutator().apply(match_id, None, decide, service.now())
    assert calls['n'] == 2
    assert outcome.match.phase == AWAITING_RESPONSE
    assert Move.query.filter_by(match_id=match_id, kind='set_trick').count() == 1


def test_repeated_race_raises_conflict(service, start_match):
    match_id = start_match()
    version = service.get_match(match_id).version
    decide, calls = _racing_decide(service, 'alice', Action(SET_TRICK, TRICK), races=5)
    with pytest.raises(ConcurrencyConflict) as excinfo:
        TransactionalMutator().apply(match_id, None, decide, service.now())
    assert excinfo.value.status_code == 409
    assert calls['n'] == 2
    assert service.get_match(match_id).version == version
    assert Move.query.filter_by(match_id=match_id, kind='set_trick').count() == 0


def test_stale_expected_version_revalidates(service, start_match):
    match_id = start_match()
    version = service.get_match(match_id).version
    service.submit_action(match_id, 'alice', 'set_trick', TRICK, expected_version=version)

    # A second submission built from the same snapshot loses: on re-read the phase has moved on
    with pytest.raises(ValidationError) as excinfo:
        service.submit_action(match_id, 'alice', 'set_trick', {'name': 'heelflip', 'evidence_ref': 'clip://h'},
                              expected_version=version)
    assert excinfo.value.reason == 'wrong_phase'
    assert Move.query.filter_by(match_id=match_id, kind='set_trick').count() == 1


def test_stale_expected_version_still_valid_commits(service, start_match):
    match_id = start_match()
    stale = service.get_match(match_id).version - 1
    outcome = service.submit_action(match_id, 'alice', 'set_trick', TRICK, expected_version=stale)
    assert outcome.match.phase == AWAITING_RESPONSE


def test_idempotency_key_replays_without_mutating(service, start_match, notifier):
    match_id = start_match()
    first = service.submit_action(match_id, 'alice', 'set_trick', TRICK, idempotency_key='k-1')
    version = first.match.version
    notifier.clear()

    again = service.submit_action(match_id, 'alice', 'set_trick', TRICK, idempotency_key='k-1')
    assert again.duplicate
    assert again.match.version == version
    assert notifier.sent == []
    assert Move.query.filter_by(match_id=match_id, kind='set_trick').count() == 1


def test_storage_failure_surfaces_as_unavailable(service, start_match):
    match_id = start_match()

    def decide(match):
        raise OperationalError('UPDATE match', {}, Exception('connection reset'))

    with pytest.raises(StorageUnavailableError) as excinfo:
        TransactionalMutator().apply(match_id, None, decide, service.now())
    assert excinfo.value.status_code == 503
    assert service.get_match(match_id).status == ACTIVE


def test_missing_match_is_not_found(service):
    with pytest.raises(NotFoundError):
        service.submit_action('nope', 'alice', 'forfeit')


def test_moves_are_append_only(service, start_match):
    match_id = start_match()
    move = Move.query.filter_by(match_id=match_id).first()
    move.kind = 'forfeit'
    with pytest.raises(ValueError):
        db.session.commit()
    db.session.rollback()
    assert Move.query.filter_by(match_id=match_id).first().kind == 'accept'


def test_forfeit_from_another_session_wins_the_race(file_app):
    service = file_app.extensions['skate']
    match_id = service.challenge('alice', 'bob').id
    service.submit_action(match_id, 'bob', 'accept')
    calls = {'n': 0}

    def decide(match):
        calls['n'] += 1
        if calls['n'] == 1:
            # A second worker with its own session commits first
            with file_app.app_context():
                service.submit_action(match_id, 'bob', 'forfeit')
        return validate(match, 'alice', Action(SET_TRICK, TRICK), service.settings, service.now())

    with pytest.raises(ValidationError) as excinfo:
        TransactionalMutator().apply(match_id, None, decide, service.now())
    assert excinfo.value.reason == 'match_not_active'
    assert calls['n'] == 2
    kinds = [m.kind for m in Move.query.filter_by(match_id=match_id).order_by(Move.seq)]
    assert kinds == ['accept', 'forfeit']
    assert service.get_match(match_id).status == FORFEITED
