import importlib.util
from pathlib import Path

import pytest

SCRIPT = Path(__file__).resolve().parent.parent / 'scripts' / 'add_indexes.py'


@pytest.fixture
def add_indexes():
    spec = importlib.util.spec_from_file_location('add_indexes', SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_creates_message_and_supporting_indexes(add_indexes, mongo_db):
    created = add_indexes.main(mongo_db)

    assert created == len(add_indexes.MESSAGE_INDEXES) + 2
    message_indexes = mongo_db['messages'].index_information()
    assert 'messages_conversation_created_at' in message_indexes
    assert 'messages_group_created_at' in message_indexes
    assert 'groups_members_user' in mongo_db['groups'].index_information()


def test_uses_configured_database_by_default(add_indexes, mongo_db):
    add_indexes.main()
    assert 'users_is_online' in mongo_db['users'].index_information()
