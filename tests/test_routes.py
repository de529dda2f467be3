from datetime import timedelta

from hive_server.security.authentication import AuthSecurity

from conftest import auth_headers, named


def post_direct(client, sender, recipient, content='hi'):
    return client.post('/api/messages/direct', json={'recipientId': recipient, 'content': content},
                       headers=auth_headers(sender))


def test_requires_bearer_token(client):
    resp = client.get('/api/messages/conversations')
    assert resp.status_code == 401
    assert resp.get_json()['success'] is False


def test_expired_token_is_rejected(client):
    token = AuthSecurity.encode_token({'user_id': 'a1'}, expires_delta=timedelta(minutes=-5))
    resp = client.get('/api/messages/conversations', headers={'Authorization': f'Bearer {token}'})
    assert resp.status_code == 401


def test_send_direct_message(client):
    resp = post_direct(client, 'a1', 'b1')

    assert resp.status_code == 201
    message = resp.get_json()['message']
    assert message['conversation'] == 'a1_b1'
    assert message['recipient'] == 'b1'
    assert message['group'] is None


def test_send_direct_validation_errors(client):
    resp = client.post('/api/messages/direct', json={'recipientId': 'b1', 'content': ''},
                       headers=auth_headers('a1'))

    assert resp.status_code == 400
    assert 'content' in resp.get_json()['errors']


def test_send_direct_ignores_unlisted_fields(client):
    resp = client.post('/api/messages/direct',
                       json={'recipientId': 'b1', 'content': 'hi', 'sender': 'c1', 'isDeleted': True},
                       headers=auth_headers('a1'))

    message = resp.get_json()['message']
    assert message['sender'] == 'a1'
    assert message['isDeleted'] is False


def test_conversation_history_oldest_first_and_marks_read(client):
    first = post_direct(client, 'a1', 'b1', 'one').get_json()['message']
    second = post_direct(client, 'a1', 'b1', 'two').get_json()['message']

    assert client.get('/api/messages/unread/count', headers=auth_headers('b1')).get_json()['unreadCount'] == 2

    resp = client.get('/api/messages/conversations/a1', headers=auth_headers('b1'))

    assert resp.status_code == 200
    ids = [m['id'] for m in resp.get_json()['messages']]
    assert set(ids) == {first['id'], second['id']}
    assert client.get('/api/messages/unread/count', headers=auth_headers('b1')).get_json()['unreadCount'] == 0


def test_conversation_with_unknown_user_is_404(client):
    resp = client.get('/api/messages/conversations/ghost', headers=auth_headers('a1'))
    assert resp.status_code == 404


def test_invalid_pagination(client):
    resp = client.get('/api/messages/conversations/b1?page=0', headers=auth_headers('a1'))
    assert resp.status_code == 400
    assert 'page' in resp.get_json()['errors']


def test_conversation_summaries(client):
    post_direct(client, 'a1', 'b1', 'one')
    post_direct(client, 'c1', 'b1', 'two')

    resp = client.get('/api/messages/conversations', headers=auth_headers('b1'))

    body = resp.get_json()
    assert body['count'] == 2
    assert {c['conversationKey'] for c in body['conversations']} == {'a1_b1', 'b1_c1'}
    assert all(c['unreadCount'] == 1 for c in body['conversations'])


def test_group_messages_membership(client):
    resp = client.post('/api/messages/groups/g1', json={'content': 'hello hikers'}, headers=auth_headers('a1'))
    assert resp.status_code == 201
    assert resp.get_json()['message']['group'] == 'g1'

    assert client.post('/api/messages/groups/g1', json={'content': 'let me in'},
                       headers=auth_headers('c1')).status_code == 403
    assert client.get('/api/messages/groups/g1', headers=auth_headers('c1')).status_code == 403
    assert client.get('/api/messages/groups/nope', headers=auth_headers('a1')).status_code == 404

    history = client.get('/api/messages/groups/g1', headers=auth_headers('b1')).get_json()
    assert [m['content'] for m in history['messages']] == ['hello hikers']


def test_edit_and_delete(client):
    message = post_direct(client, 'a1', 'b1', 'typo').get_json()['message']

    resp = client.put(f"/api/messages/{message['id']}", json={'content': 'fixed'}, headers=auth_headers('a1'))
    assert resp.status_code == 200
    edited = resp.get_json()['message']
    assert edited['content'] == 'fixed'
    assert edited['edited']['originalContent'] == 'typo'

    assert client.put(f"/api/messages/{message['id']}", json={'content': 'hijack'},
                      headers=auth_headers('b1')).status_code == 403
    assert client.delete(f"/api/messages/{message['id']}", headers=auth_headers('b1')).status_code == 403

    resp = client.delete(f"/api/messages/{message['id']}", headers=auth_headers('a1'))
    assert resp.status_code == 200
    assert resp.get_json()['deleted'] is True

    assert client.put(f"/api/messages/{message['id']}", json={'content': 'again'},
                      headers=auth_headers('a1')).status_code == 404


def test_reaction_toggle(client):
    message = post_direct(client, 'a1', 'b1').get_json()['message']
    url = f"/api/messages/{message['id']}/reaction"

    first = client.post(url, json={'emoji': '👍'}, headers=auth_headers('b1')).get_json()
    second = client.post(url, json={'emoji': '👍'}, headers=auth_headers('b1')).get_json()

    assert first['added'] is True
    assert len(first['message']['reactions']) == 1
    assert second['added'] is False
    assert second['message']['reactions'] == []
    assert client.post(url, json={'emoji': ''}, headers=auth_headers('b1')).status_code == 400


def test_mark_read_endpoint(client):
    message = post_direct(client, 'a1', 'b1').get_json()['message']
    url = f"/api/messages/{message['id']}/read"

    assert client.post(url, headers=auth_headers('b1')).get_json()['marked'] is True
    assert client.post(url, headers=auth_headers('b1')).get_json()['marked'] is False
    assert client.post(url, headers=auth_headers('c1')).status_code == 403


def test_search_endpoints(client):
    post_direct(client, 'a1', 'b1', 'Meet at the TRAILHEAD')
    client.post('/api/messages/groups/g1', json={'content': 'trailhead at 9'}, headers=auth_headers('a1'))

    resp = client.get('/api/messages/search/conversation/b1?q=trail', headers=auth_headers('a1'))
    body = resp.get_json()
    assert body['totalCount'] == 1
    assert body['totalPages'] == 1

    assert client.get('/api/messages/search/conversation/b1?q=t',
                      headers=auth_headers('a1')).status_code == 400

    group = client.get('/api/messages/search/group/g1?q=trailhead', headers=auth_headers('b1')).get_json()
    assert group['totalCount'] == 1
    assert client.get('/api/messages/search/group/g1?q=trailhead',
                      headers=auth_headers('c1')).status_code == 403


def test_online_users_lists_connected_sockets(client, connect):
    connect('a1')

    body = client.get('/api/messages/online', headers=auth_headers('b1')).get_json()

    assert body['count'] == 1
    assert body['users'][0]['userId'] == 'a1'
    assert body['users'][0]['name'] == 'Alice'


def test_rest_changes_reach_socket_clients(client, connect):
    bob = connect('b1')
    bob.get_received()

    message = post_direct(client, 'a1', 'b1', 'draft').get_json()['message']
    client.put(f"/api/messages/{message['id']}", json={'content': 'final'}, headers=auth_headers('a1'))
    client.post(f"/api/messages/{message['id']}/reaction", json={'emoji': '🎉'}, headers=auth_headers('a1'))
    client.delete(f"/api/messages/{message['id']}", headers=auth_headers('a1'))

    packets = bob.get_received()
    assert named(packets, 'new_message')[0]['message']['id'] == message['id']
    assert named(packets, 'message_edited')[0]['content'] == 'final'
    assert named(packets, 'message_reaction')[0] == {
        'messageId': message['id'], 'userId': 'a1', 'emoji': '🎉', 'added': True}
    assert named(packets, 'message_deleted')[0]['deletedBy'] == 'a1'
