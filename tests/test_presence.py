import threading

from hive_server.messaging.presence import PresenceRegistry


def test_register_and_lookup():
    registry = PresenceRegistry()
    registry.register('a1', 'sid-1', {'name': 'Alice', 'avatar': 'alice.png'})

    assert registry.lookup('a1') == 'sid-1'
    assert registry.is_online('a1')
    assert registry.user_for_sid('sid-1') == 'a1'
    assert registry.lookup('b1') is None


def test_latest_connection_wins():
    registry = PresenceRegistry()
    registry.register('a1', 'sid-1', {'name': 'Alice'})
    registry.register('a1', 'sid-2', {'name': 'Alice'})

    assert registry.lookup('a1') == 'sid-2'
    assert len(registry) == 1


def test_superseded_connection_does_not_evict_newer_one():
    registry = PresenceRegistry()
    registry.register('a1', 'sid-1')
    registry.register('a1', 'sid-2')

    assert registry.unregister('a1', 'sid-1') is False
    assert registry.lookup('a1') == 'sid-2'
    assert registry.user_for_sid('sid-1') is None

    assert registry.unregister('a1', 'sid-2') is True
    assert not registry.is_online('a1')


def test_unregister_without_sid_and_unknown_user():
    registry = PresenceRegistry()
    registry.register('a1', 'sid-1')

    assert registry.unregister('a1') is True
    assert registry.user_for_sid('sid-1') is None
    assert registry.unregister('a1') is False


def test_list_connected_shape():
    registry = PresenceRegistry()
    registry.register('a1', 'sid-1', {'name': 'Alice', 'avatar': 'alice.png'})
    registry.register('b1', 'sid-2', {'name': 'Bob'})

    connected = {e['userId']: e for e in registry.list_connected()}
    assert set(connected) == {'a1', 'b1'}
    assert connected['a1']['name'] == 'Alice'
    assert connected['a1']['avatar'] == 'alice.png'
    assert connected['b1']['lastSeen'].endswith('Z')


def test_touch_refreshes_last_seen():
    registry = PresenceRegistry()
    entry = registry.register('a1', 'sid-1')
    before = entry.last_seen
    registry.touch('a1')
    assert registry.get_entry('a1').last_seen >= before


def test_concurrent_registration_keeps_one_entry_per_user():
    registry = PresenceRegistry()

    def worker(n):
        for i in range(100):
            registry.register(f'user-{i % 10}', f'sid-{n}-{i}')

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(registry) == 10
    for entry in registry.list_connected():
        assert registry.user_for_sid(registry.lookup(entry['userId'])) == entry['userId']
