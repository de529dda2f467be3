import logging

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, MongoClient

from config import config

logger = logging.getLogger(__name__)

MESSAGE_INDEXES = [
    ([('sender', ASCENDING), ('created_at', DESCENDING)], 'messages_sender_created_at'),
    ([('group', ASCENDING), ('created_at', DESCENDING)], 'messages_group_created_at'),
    ([('conversation', ASCENDING), ('created_at', DESCENDING)], 'messages_conversation_created_at'),
    ([('recipient', ASCENDING), ('created_at', DESCENDING)], 'messages_recipient_created_at'),
    ([('mentions', ASCENDING)], 'messages_mentions'),
]


class MongoRepositorySingleton:
    _db_instance = None

    @classmethod
    def get_db(cls):
        """Singleton utility to get the MongoDB database object.

        Uses config.MONGO_URI and config.MONGO_DB (MONGO_URI / MONGO_DB
        environment variables override the YAML files).
        """
        if cls._db_instance is not None:
            return cls._db_instance
        logger.info("Connecting to MongoDB database '%s'", config.MONGO_DB)
        client = MongoClient(config.MONGO_URI)
        cls._db_instance = client[config.MONGO_DB]
        return cls._db_instance

    @classmethod
    def use_db(cls, db):
        """Bind an already-open database handle (tests, alternative runners)."""
        cls._db_instance = db

    @classmethod
    def reset(cls):
        cls._db_instance = None

    @classmethod
    def get_collection(cls, collection_name, db=None):
        """Get a collection from the database, creating it if it does not exist."""
        if db is None:
            db = cls.get_db()
        try:
            if collection_name not in db.list_collection_names():
                db.create_collection(collection_name)
                logger.info("Created '%s' collection in DB.", collection_name)
        except Exception as e:
            logger.warning("Error ensuring '%s' collection exists: %s", collection_name, e)
        return db[collection_name]


def get_collection(collection_name):
    return MongoRepositorySingleton.get_collection(collection_name)


def id_filter(value):
    """Build an `_id` filter that matches both string and ObjectId keys."""
    value = str(value)
    if ObjectId.is_valid(value):
        return {'_id': {'$in': [value, ObjectId(value)]}}
    return {'_id': value}
