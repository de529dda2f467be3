from hive_server.exception.MessagingError import MessagingError


class ValidationError(MessagingError):
    """Raised when a payload breaks a message constraint.

    `errors` maps field names to messages.
    """
    code = 'VALIDATION_FAILED'
    status = 400
