from conftest import LeaveOnDisconnectConfig, updates
from planwise import create_app, socketio


def call(test_client, event, data=None):
    return test_client.emit(event, data or {}, namespace='/ws', callback=True)


def send(test_client, event, data):
    test_client.emit(event, data, namespace='/ws')


def test_socket_connect_and_ping(sio_client):
    assert sio_client.is_connected('/ws')
    send(sio_client, 'ping', {'n': 1})
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'pong' and pkt['args'][0] == {'n': 1} for pkt in received)


def test_create_join_and_get_over_acks(sio_client):
    created = call(sio_client, 'create_room')
    assert created['success'] is True
    room_id = created['room_id']

    joined = call(sio_client, 'join_room', {'room_id': room_id, 'name': 'Alice'})
    assert joined['success'] is True
    assert joined['user']['is_host'] is True
    # the joiner receives the broadcast of its own join too
    assert updates(sio_client)[-1]['participants'][0]['name'] == 'Alice'

    got = call(sio_client, 'get_room', {'room_id': room_id})
    assert got['room'] == joined['room']
    assert call(sio_client, 'get_room', {'room_id': 'room_missing'}) == {'success': False, 'message': 'Room not found'}
    assert call(sio_client, 'join_room', {'room_id': 'room_missing', 'name': 'X'})['success'] is False


def test_voting_round_is_broadcast_to_everyone(make_sio):
    host, guest = make_sio(), make_sio()
    room_id = call(host, 'create_room')['room_id']
    a = call(host, 'join_room', {'room_id': room_id, 'name': 'A'})['user']
    b = call(guest, 'join_room', {'room_id': room_id, 'name': 'B'})['user']
    assert a['is_host'] and not b['is_host']
    updates(host), updates(guest)

    issues = call(host, 'upload_issues', {'room_id': room_id, 'issues': [{'title': 'Fix bug'}]})['issues']
    assert issues[0]['key'] == 'ISSUE-1'
    issue_id = issues[0]['id']

    send(host, 'select_issue', {'room_id': room_id, 'issue_id': issue_id})
    send(host, 'submit_vote', {'room_id': room_id, 'vote': {'user_id': a['id'], 'issue_id': issue_id, 'value': 5}})
    send(guest, 'submit_vote', {'room_id': room_id, 'vote': {'user_id': b['id'], 'issue_id': issue_id, 'value': 8}})
    send(host, 'reveal_votes', {'room_id': room_id})
    send(host, 'finalize_estimation', {'room_id': room_id, 'issue_id': issue_id, 'value': 8})

    seen = updates(guest)
    assert updates(host) == seen
    assert len(seen) == 6
    selected, _, voted, revealed, finalized = seen[1:]
    assert selected['current_issue_id'] == issue_id and selected['reveal_votes'] is False
    assert sorted(v['value'] for v in voted['votes']) == [5, 8]
    assert revealed['reveal_votes'] is True and revealed['votes'] == voted['votes']
    assert finalized['issues'][0]['estimation'] == 8
    assert finalized['current_issue_id'] is None
    assert finalized['reveal_votes'] is False


def test_guest_cannot_run_host_commands(make_sio):
    host, guest = make_sio(), make_sio()
    room_id = call(host, 'create_room')['room_id']
    call(host, 'join_room', {'room_id': room_id, 'name': 'A'})
    b = call(guest, 'join_room', {'room_id': room_id, 'name': 'B'})['user']
    updates(host)

    reply = call(guest, 'upload_issues', {'room_id': room_id, 'issues': [{}]})
    assert reply['success'] is False
    send(guest, 'transfer_host', {'room_id': room_id, 'new_host_id': b['id']})
    assert updates(host) == []


def test_guest_cannot_vote_as_someone_else(make_sio):
    host, guest = make_sio(), make_sio()
    room_id = call(host, 'create_room')['room_id']
    a = call(host, 'join_room', {'room_id': room_id, 'name': 'A'})['user']
    call(guest, 'join_room', {'room_id': room_id, 'name': 'B'})
    issue_id = call(host, 'upload_issues', {'room_id': room_id, 'issues': [{}]})['issues'][0]['id']
    send(host, 'select_issue', {'room_id': room_id, 'issue_id': issue_id})
    updates(host)

    reply = call(guest, 'submit_vote', {'room_id': room_id, 'vote': {'user_id': a['id'], 'value': 1}})
    assert reply['success'] is False
    assert updates(host) == []


def test_host_leave_promotes_next_participant(make_sio):
    ca, cb, cc = make_sio(), make_sio(), make_sio()
    room_id = call(ca, 'create_room')['room_id']
    a = call(ca, 'join_room', {'room_id': room_id, 'name': 'A'})['user']
    b = call(cb, 'join_room', {'room_id': room_id, 'name': 'B'})['user']
    c = call(cc, 'join_room', {'room_id': room_id, 'name': 'C'})['user']
    issue_id = call(ca, 'upload_issues', {'room_id': room_id, 'issues': [{}]})['issues'][0]['id']
    send(ca, 'select_issue', {'room_id': room_id, 'issue_id': issue_id})
    send(ca, 'submit_vote', {'room_id': room_id, 'vote': {'user_id': a['id'], 'value': 3}})
    updates(cb)

    assert call(ca, 'leave_room', {'room_id': room_id, 'user_id': a['id']})['success'] is True
    room = call(cb, 'get_room', {'room_id': room_id})['room']
    assert [p['id'] for p in room['participants']] == [b['id'], c['id']]
    assert [p['id'] for p in room['participants'] if p['is_host']] == [b['id']]
    assert room['votes'] == []
    # the departed connection no longer receives updates
    updates(ca)
    send(cb, 'transfer_host', {'room_id': room_id, 'new_host_id': c['id']})
    assert updates(ca) == []
    assert updates(cc)[-1]['participants'][1]['is_host'] is True


def test_remove_participant_and_modify_vote(make_sio):
    host, guest = make_sio(), make_sio()
    room_id = call(host, 'create_room')['room_id']
    call(host, 'join_room', {'room_id': room_id, 'name': 'A'})
    b = call(guest, 'join_room', {'room_id': room_id, 'name': 'B'})['user']
    issue_id = call(host, 'upload_issues', {'room_id': room_id, 'issues': [{}]})['issues'][0]['id']
    send(host, 'select_issue', {'room_id': room_id, 'issue_id': issue_id})
    send(guest, 'submit_vote', {'room_id': room_id, 'vote': {'value': 2}})
    send(host, 'modify_vote', {'room_id': room_id, 'user_id': b['id'], 'issue_id': issue_id, 'value': 13})
    room = call(host, 'get_room', {'room_id': room_id})['room']
    assert room['votes'] == [{'user_id': b['id'], 'issue_id': issue_id, 'value': 13}]

    updates(guest)
    send(host, 'remove_participant', {'room_id': room_id, 'user_id': b['id']})
    final = updates(guest)
    assert len(final) == 1
    assert [p['name'] for p in final[0]['participants']] == ['A']
    assert final[0]['votes'] == []
    # removed connection is unsubscribed from further broadcasts
    send(host, 'reveal_votes', {'room_id': room_id})
    assert updates(guest) == []


def test_subscribe_gives_initial_sync_and_updates(make_sio):
    member, watcher = make_sio(), make_sio()
    room_id = call(member, 'create_room')['room_id']
    call(member, 'join_room', {'room_id': room_id, 'name': 'A'})

    synced = call(watcher, 'subscribe', {'room_id': room_id})
    assert synced['room']['participants'][0]['name'] == 'A'
    call(member, 'join_room', {'room_id': room_id, 'name': 'A2'})
    assert len(updates(watcher)[-1]['participants']) == 2

    call(watcher, 'unsubscribe', {'room_id': room_id})
    call(member, 'join_room', {'room_id': room_id, 'name': 'A3'})
    assert updates(watcher) == []
    assert call(watcher, 'subscribe', {'room_id': 'room_missing'})['success'] is False


def test_last_leave_closes_room(make_sio):
    member, watcher = make_sio(), make_sio()
    room_id = call(member, 'create_room')['room_id']
    a = call(member, 'join_room', {'room_id': room_id, 'name': 'A'})['user']
    call(watcher, 'subscribe', {'room_id': room_id})
    watcher.get_received('/ws')

    call(member, 'leave_room', {'room_id': room_id, 'user_id': a['id']})
    events = watcher.get_received('/ws')
    assert [e['name'] for e in events] == ['room_closed']
    assert events[0]['args'][0] == {'room_id': room_id}
    assert call(watcher, 'get_room', {'room_id': room_id})['success'] is False


def test_malformed_payloads_are_rejected_not_raised(sio_client):
    assert call(sio_client, 'join_room', 'nonsense')['success'] is False
    assert call(sio_client, 'select_issue', {'room_id': 'room_missing'})['success'] is False
    assert call(sio_client, 'leave_room', {})['success'] is False


def test_disconnect_keeps_participant_by_default(make_sio):
    host, guest = make_sio(), make_sio()
    room_id = call(host, 'create_room')['room_id']
    call(host, 'join_room', {'room_id': room_id, 'name': 'A'})
    call(guest, 'join_room', {'room_id': room_id, 'name': 'B'})
    guest.disconnect(namespace='/ws')
    room = call(host, 'get_room', {'room_id': room_id})['room']
    assert len(room['participants']) == 2


def test_disconnect_leaves_when_configured():
    app = create_app(LeaveOnDisconnectConfig)
    with app.app_context():
        host = socketio.test_client(app, namespace='/ws')
        guest = socketio.test_client(app, namespace='/ws')
        room_id = call(host, 'create_room')['room_id']
        call(host, 'join_room', {'room_id': room_id, 'name': 'A'})
        call(guest, 'join_room', {'room_id': room_id, 'name': 'B'})

        host.disconnect(namespace='/ws')
        room = call(guest, 'get_room', {'room_id': room_id})['room']
        assert [(p['name'], p['is_host']) for p in room['participants']] == [('B', True)]
        guest.disconnect(namespace='/ws')


def test_leaving_for_another_member_keeps_own_subscription(make_sio):
    host, guest = make_sio(), make_sio()
    room_id = call(host, 'create_room')['room_id']
    call(host, 'join_room', {'room_id': room_id, 'name': 'A'})
    b = call(guest, 'join_room', {'room_id': room_id, 'name': 'B'})['user']
    updates(host)

    assert call(host, 'leave_room', {'room_id': room_id, 'user_id': b['id']})['success'] is True
    assert [p['name'] for p in updates(host)[-1]['participants']] == ['A']
    # host is still bound and subscribed
    call(host, 'upload_issues', {'room_id': room_id, 'issues': [{}]})
    assert len(updates(host)) == 1
