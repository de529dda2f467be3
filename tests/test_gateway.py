from hive_server.websocket.hub import get_websocket_hub

from conftest import auth_headers, named, token_for


def test_authenticate_returns_public_profile(connect):
    alice = connect('a1')

    [payload] = named(alice.get_received(), 'authenticated')
    assert payload['user']['name'] == 'Alice'
    assert 'password' not in payload['user']
    assert get_websocket_hub().presence.is_online('a1')


def test_authentication_marks_user_online_in_store(connect, mongo_db):
    connect('a1')
    assert mongo_db['users'].find_one({'_id': 'a1'})['is_online'] is True


def test_bad_token_leaves_connection_unauthenticated(connect):
    client = connect()
    client.emit('authenticate', {'token': 'not-a-jwt'})
    client.emit('send_message', {'recipientId': 'b1', 'content': 'hi'})

    packets = client.get_received()
    assert named(packets, 'auth_error') == [{'message': 'Authentication failed'}]
    [error] = named(packets, 'error')
    assert error['code'] == 'UNAUTHORIZED'
    assert client.is_connected()


def test_missing_token(connect):
    client = connect()
    client.emit('authenticate', {})
    assert named(client.get_received(), 'auth_error') == [{'message': 'Token required'}]


def test_message_to_offline_user_is_stored(connect, client):
    alice = connect('a1')
    alice.emit('send_message', {'recipientId': 'b1', 'content': 'are you there?'})

    [sent] = named(alice.get_received(), 'message_sent')
    assert sent['conversationId'] == 'a1_b1'

    history = client.get('/api/messages/conversations/a1', headers=auth_headers('b1')).get_json()
    assert [m['content'] for m in history['messages']] == ['are you there?']


def test_message_to_online_user_is_delivered(connect):
    alice = connect('a1')
    bob = connect('b1')
    bob.get_received()

    alice.emit('send_message', {'recipientId': 'b1', 'content': 'hello bob'})

    [incoming] = named(bob.get_received(), 'new_message')
    assert incoming['conversationId'] == 'a1_b1'
    assert incoming['message']['content'] == 'hello bob'
    assert incoming['message']['senderInfo']['name'] == 'Alice'


def test_send_validation_error_stays_on_sender(connect):
    alice = connect('a1')
    bob = connect('b1')
    bob.get_received()

    alice.emit('send_message', {'recipientId': 'b1', 'content': ''})

    [error] = named(alice.get_received(), 'error')
    assert error['code'] == 'VALIDATION_FAILED'
    assert named(bob.get_received(), 'new_message') == []


def test_group_message_fan_out_and_read_receipt(connect):
    alice = connect('a1')
    bob = connect('b1')
    carol = connect('c1')
    bob.get_received()
    carol.get_received()

    alice.emit('send_group_message', {'groupId': 'g1', 'content': 'hike saturday?'})

    alice_packets = alice.get_received()
    [sent] = named(alice_packets, 'group_message_sent')
    assert sent['groupId'] == 'g1'
    assert named(alice_packets, 'new_group_message') == []

    [incoming] = named(bob.get_received(), 'new_group_message')
    assert incoming['message']['content'] == 'hike saturday?'
    assert named(carol.get_received(), 'new_group_message') == []

    message_id = incoming['message']['id']
    bob.emit('mark_as_read', {'messageId': message_id})

    [receipt] = named(alice.get_received(), 'message_read')
    assert receipt == {'messageId': message_id, 'readBy': 'b1', 'groupId': 'g1'}


def test_join_group_requires_membership(connect):
    bob = connect('b1')
    carol = connect('c1')

    bob.emit('join_group', {'groupId': 'g1'})
    carol.emit('join_group', {'groupId': 'g1'})

    assert named(bob.get_received(), 'joined_group') == [{'groupId': 'g1', 'groupName': 'Hikers'}]
    [error] = named(carol.get_received(), 'error')
    assert error['code'] == 'ACCESS_DENIED'


def test_typing_relay_in_direct_conversation(connect):
    alice = connect('a1')
    bob = connect('b1')
    bob.get_received()

    alice.emit('typing_start', {'recipientId': 'b1'})
    alice.emit('typing_stop', {'recipientId': 'b1'})

    packets = bob.get_received()
    assert named(packets, 'user_typing') == [{'userId': 'a1', 'userName': 'Alice', 'conversationId': 'a1_b1'}]
    assert named(packets, 'user_stop_typing') == [{'userId': 'a1', 'conversationId': 'a1_b1'}]


def test_typing_relay_in_group_skips_typist(connect):
    alice = connect('a1')
    bob = connect('b1')
    alice.get_received()
    bob.get_received()

    bob.emit('typing_start', {'groupId': 'g1'})

    assert named(alice.get_received(), 'user_typing') == [{'userId': 'b1', 'userName': 'Bob', 'groupId': 'g1'}]
    assert named(bob.get_received(), 'user_typing') == []


def test_presence_broadcasts(connect):
    alice = connect('a1')
    alice.get_received()
    bob = connect('b1')

    [online] = named(alice.get_received(), 'user_online')
    assert online == {'userId': 'b1', 'name': 'Bob', 'avatar': 'bob.png'}

    bob.disconnect()

    [offline] = named(alice.get_received(), 'user_offline')
    assert offline['userId'] == 'b1'
    assert offline['lastSeen']
    assert not get_websocket_hub().presence.is_online('b1')


def test_superseded_connection_does_not_take_user_offline(connect, mongo_db):
    observer = connect('c1')
    first_tab = connect('a1')
    connect('a1')
    observer.get_received()

    first_tab.disconnect()

    assert named(observer.get_received(), 'user_offline') == []
    assert get_websocket_hub().presence.is_online('a1')
    assert mongo_db['users'].find_one({'_id': 'a1'})['is_online'] is True


def test_status_update_is_validated_and_broadcast(connect, mongo_db):
    alice = connect('a1')
    bob = connect('b1')
    alice.get_received()

    bob.emit('update_status', {'status': 'away'})
    bob.emit('update_status', {'status': 'sleeping'})

    assert named(alice.get_received(), 'user_status_update') == [{'userId': 'b1', 'status': 'away'}]
    assert named(bob.get_received(), 'error')[0]['code'] == 'VALIDATION_FAILED'
    assert mongo_db['users'].find_one({'_id': 'b1'})['status'] == 'away'


def test_call_signaling_relay(connect):
    alice = connect('a1')
    bob = connect('b1')
    alice.get_received()
    bob.get_received()

    alice.emit('call_user', {'recipientId': 'b1', 'callType': 'video', 'offer': {'sdp': 'x'}})
    bob.emit('answer_call', {'callerId': 'a1', 'answer': {'sdp': 'y'}})
    bob.emit('end_call', {'recipientId': 'a1'})

    assert named(bob.get_received(), 'incoming_call') == [
        {'from': 'a1', 'caller': 'Alice', 'callType': 'video', 'offer': {'sdp': 'x'}}]
    alice_packets = alice.get_received()
    assert named(alice_packets, 'call_answered') == [{'from': 'b1', 'answer': {'sdp': 'y'}}]
    assert named(alice_packets, 'call_ended') == [{'from': 'b1'}]


def test_notification_relay(connect):
    alice = connect('a1')
    bob = connect('b1')
    bob.get_received()

    alice.emit('send_notification', {'recipientId': 'b1', 'notification': {'title': 'ping'}})

    assert named(bob.get_received(), 'new_notification') == [{'title': 'ping'}]


def test_reauthentication_releases_previous_user(connect):
    shared = connect('a1')
    bob = connect('b1')

    shared.emit('authenticate', {'token': token_for('c1')})
    shared.get_received()
    bob.emit('send_message', {'recipientId': 'a1', 'content': 'for alice only'})

    assert named(shared.get_received(), 'new_message') == []
    hub = get_websocket_hub()
    assert not hub.presence.is_online('a1')
    assert hub.presence.is_online('c1')

    shared.disconnect()
    assert not hub.presence.is_online('c1')


def test_unexpected_failure_during_authentication_is_reported(connect, monkeypatch):
    client = connect()

    def broken_lookup(user_id):
        raise RuntimeError('database unavailable')

    monkeypatch.setattr(get_websocket_hub().users, 'current_user', broken_lookup)
    client.emit('authenticate', {'token': token_for('a1')})

    assert named(client.get_received(), 'auth_error') == [{'message': 'Authentication failed'}]
    assert not get_websocket_hub().presence.is_online('a1')
