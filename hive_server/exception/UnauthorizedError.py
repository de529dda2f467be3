from hive_server.exception.InvalidTokenError import InvalidTokenError


class UnauthorizedError(InvalidTokenError):
    """Raised when an action needs an authenticated identity and none is bound."""
    code = 'UNAUTHORIZED'
