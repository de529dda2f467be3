from hive_server.exception.MessagingError import MessagingError


class InvalidTokenError(MessagingError):
    """Raised when authentication fails due to invalid, expired, or malformed token."""
    code = 'INVALID_TOKEN'
    status = 401
