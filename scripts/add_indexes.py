"""Migration script: create the indexes used by message queries.

This script creates:
1. messages: sender/group/conversation/recipient + created_at, mentions
2. users: is_online (online indicators)
3. groups: members.user (membership checks)

Usage:
    python scripts/add_indexes.py

Ensure MONGO_URI and MONGO_DB environment variables are set.
"""
import logging
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pymongo.errors import PyMongoError

from config import config
from hive_server.repository.mongo_helper import MESSAGE_INDEXES, MongoRepositorySingleton

logger = logging.getLogger(__name__)

SUPPORTING_INDEXES = {
    'users': [([('is_online', 1)], 'users_is_online')],
    'groups': [([('members.user', 1)], 'groups_members_user')],
}


def create_index_safe(coll, index_spec, **kwargs):
    """Create an index, handling if it already exists."""
    try:
        index_name = coll.create_index(index_spec, **kwargs)
        logger.info('  Created index: %s', index_name)
        return True
    except PyMongoError as e:
        if 'already exists' in str(e).lower():
            logger.info('  Index already exists: %s', index_spec)
        else:
            logger.error('  Error creating index %s: %s', index_spec, e)
        return False


def add_message_indexes(db):
    logger.info('messages: adding query indexes')
    return sum(1 for keys, name in MESSAGE_INDEXES if create_index_safe(db['messages'], keys, name=name))


def add_supporting_indexes(db):
    created = 0
    for collection_name, specs in SUPPORTING_INDEXES.items():
        logger.info('%s: adding indexes', collection_name)
        for keys, name in specs:
            if create_index_safe(db[collection_name], keys, name=name):
                created += 1
    return created


def main(db=None):
    db = db if db is not None else MongoRepositorySingleton.get_db()
    created = add_message_indexes(db) + add_supporting_indexes(db)
    logger.info('Done: %d indexes created', created)
    return created


if __name__ == '__main__':
    logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
    main()
