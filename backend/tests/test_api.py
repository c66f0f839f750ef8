from skate.errors import ConcurrencyConflict, StorageUnavailableError


def _challenge(client, a='alice', b='bob'):
    res = client.post('/api/matches', json={'challenger_id': a, 'opponent_id': b})
    assert res.status_code == 201
    return res.get_json()['match']


def _act(client, match_id, actor_id, action_type, payload=None, **extra):
    body = {'match_id': match_id, 'actor_id': actor_id, 'action_type': action_type, 'payload': payload or {}}
    body.update(extra)
    return client.post('/api/actions', json=body)


def _active(client):
    match = _challenge(client)
    res = _act(client, match['id'], 'bob', 'accept')
    assert res.status_code == 200
    return res.get_json()['match']


def test_create_match(client, notifier):
    match = _challenge(client)
    assert match['status'] == 'pending'
    assert match['players'] == ['alice', 'bob']
    assert match['current_actor_id'] == 'bob'
    assert notifier.of_type('challenge_received') == [('bob', {'match_id': match['id'], 'challenger_id': 'alice'})]


def test_create_match_validation(client):
    res = client.post('/api/matches', json={'challenger_id': 'alice'})
    assert res.status_code == 400
    assert res.get_json()['reason'] == 'invalid_request'
    res = client.post('/api/matches', json={'challenger_id': 'alice', 'opponent_id': 'alice'})
    assert res.status_code == 400


def test_full_game_to_five_letters(client):
    match = _active(client)
    match_id = match['id']
    for trick in ('ollie', 'kickflip', 'heelflip', 'shuvit', 'tre flip'):
        assert _act(client, match_id, 'alice', 'set_trick', {'name': trick, 'evidence_ref': f'clip://{trick}'}).status_code == 200
        assert _act(client, match_id, 'bob', 'attempt_response', {'evidence_ref': f'clip://{trick}/bob'}).status_code == 200
        assert _act(client, match_id, 'bob', 'judge', {'verdict': 'missed'}).status_code == 200
        res = _act(client, match_id, 'alice', 'judge', {'verdict': 'missed'})
        assert res.status_code == 200

    final = res.get_json()['match']
    assert final['status'] == 'completed'
    assert final['winner_id'] == 'alice'
    assert final['letters'] == {'alice': '', 'bob': 'SKATE'}
    assert final['phase'] is None

    state = client.get(f'/api/matches/{match_id}').get_json()
    kinds = [m['kind'] for m in state['moves']]
    assert kinds.count('judgment') == 5
    assert [m['seq'] for m in state['moves']] == list(range(1, len(kinds) + 1))

    res = _act(client, match_id, 'alice', 'set_trick', {'name': 'late', 'evidence_ref': 'clip://late'})
    assert res.status_code == 400
    assert res.get_json()['reason'] == 'match_not_active'


def test_status_vocabulary(client):
    match = _active(client)
    match_id = match['id']

    res = _act(client, match_id, 'bob', 'set_trick', {'name': 'ollie', 'evidence_ref': 'clip://o'})
    assert res.status_code == 403
    assert res.get_json()['reason'] == 'wrong_actor'

    res = _act(client, match_id, 'alice', 'attempt_response', {'evidence_ref': 'clip://o'})
    assert res.status_code == 403
    assert res.get_json()['reason'] == 'wrong_phase'

    res = _act(client, match_id, 'alice', 'set_trick', {'name': 'ollie'})
    assert res.status_code == 400
    assert res.get_json()['reason'] == 'evidence_missing'

    res = _act(client, match_id, 'alice', 'timeout')
    assert res.status_code == 400
    assert res.get_json()['reason'] == 'unknown_action'

    res = _act(client, match_id, 'system', 'forfeit')
    assert res.status_code == 403

    res = _act(client, 'missing', 'alice', 'forfeit')
    assert res.status_code == 404

    res = _act(client, match_id, 'alice', 'forfeit', expected_version='abc')
    assert res.status_code == 400

    res = client.post('/api/actions', json={'actor_id': 'alice'})
    assert res.status_code == 400


def test_duplicate_submission_is_flagged(client):
    match = _active(client)
    payload = {'name': 'ollie', 'evidence_ref': 'clip://o'}
    first = _act(client, match['id'], 'alice', 'set_trick', payload, idempotency_key='tap-1').get_json()
    again = _act(client, match['id'], 'alice', 'set_trick', payload, idempotency_key='tap-1').get_json()
    assert first['duplicate'] is False
    assert again['duplicate'] is True
    assert again['match']['version'] == first['match']['version']


def test_conflict_and_outage_statuses(client, service, monkeypatch):
    match = _active(client)

    def conflict(*args, **kwargs):
        raise ConcurrencyConflict('raced')

    monkeypatch.setattr(service, 'submit_client_action', conflict)
    res = _act(client, match['id'], 'alice', 'forfeit')
    assert res.status_code == 409
    assert res.get_json()['reason'] == 'conflict'

    def outage(*args, **kwargs):
        raise StorageUnavailableError('Storage unavailable')

    monkeypatch.setattr(service, 'get_match', outage)
    res = client.get(f"/api/matches/{match['id']}")
    assert res.status_code == 503
    assert res.get_json()['reason'] == 'storage_unavailable'


def test_moderation_gate_blocks_restricted_players(client, service):
    class DenyMallory:
        def is_allowed(self, player_id):
            return player_id != 'mallory'

    service.moderation_gate = DenyMallory()
    res = client.post('/api/matches', json={'challenger_id': 'mallory', 'opponent_id': 'bob'})
    assert res.status_code == 403
    assert res.get_json()['reason'] == 'actor_restricted'

    match = _challenge(client, 'alice', 'mallory')
    res = _act(client, match['id'], 'mallory', 'accept')
    assert res.status_code == 403


def test_dispute_endpoints(client):
    match = _active(client)
    match_id = match['id']
    _act(client, match_id, 'alice', 'set_trick', {'name': 'ollie', 'evidence_ref': 'clip://o'})
    _act(client, match_id, 'bob', 'attempt_response', {'evidence_ref': 'clip://o/bob'})
    _act(client, match_id, 'bob', 'judge', {'verdict': 'landed'})
    state = _act(client, match_id, 'alice', 'judge', {'verdict': 'missed'}).get_json()['match']
    judgment = [m for m in state['moves'] if m['kind'] == 'judgment'][-1]
    assert judgment['result'] == 'landed'

    res = client.post('/api/disputes', json={'match_id': match_id, 'filer_id': 'bob', 'move_id': judgment['id']})
    assert res.status_code == 403
    assert res.get_json()['reason'] == 'wrong_actor'

    res = client.post('/api/disputes', json={'match_id': match_id, 'filer_id': 'alice', 'move_id': judgment['id']})
    assert res.status_code == 201
    body = res.get_json()
    assert body['match']['phase'] == 'verification'
    dispute_id = body['dispute']['id']

    res = client.post(f'/api/disputes/{dispute_id}/resolve', json={'resolver_id': 'bob', 'verdict': 'sideways'})
    assert res.status_code == 400
    assert res.get_json()['reason'] == 'invalid_verdict'

    res = client.post(f'/api/disputes/{dispute_id}/resolve', json={'resolver_id': 'bob', 'verdict': 'overturned'})
    assert res.status_code == 200
    body = res.get_json()
    assert body['dispute']['verdict'] == 'overturned'
    assert body['match']['letters']['bob'] == 'S'

    profile = client.get('/api/players/bob').get_json()
    assert profile['dispute_penalties'] == 1
    assert profile['matches_played'] == 1

    res = client.post('/api/disputes', json={'match_id': match_id, 'filer_id': 'alice'})
    assert res.status_code == 400


def test_my_matches(client):
    _challenge(client, 'alice', 'bob')
    _challenge(client, 'carol', 'alice')
    _challenge(client, 'carol', 'dave')
    mine = client.get('/api/matches/mine?player_id=alice').get_json()
    assert len(mine) == 2
    assert client.get('/api/matches/mine').status_code == 400
