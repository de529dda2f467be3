from hive_server.exception.MessagingError import MessagingError
from hive_server.exception.InvalidTokenError import InvalidTokenError
from hive_server.exception.UnauthorizedError import UnauthorizedError
from hive_server.exception.NotFoundError import NotFoundError
from hive_server.exception.ValidationError import ValidationError
from hive_server.exception.AccessDeniedError import AccessDeniedError
from hive_server.exception.EditWindowExpiredError import EditWindowExpiredError

__all__ = [
    'MessagingError', 'InvalidTokenError', 'UnauthorizedError', 'NotFoundError',
    'ValidationError', 'AccessDeniedError', 'EditWindowExpiredError',
]
