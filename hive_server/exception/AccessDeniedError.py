from hive_server.exception.MessagingError import MessagingError


class AccessDeniedError(MessagingError):
    code = 'ACCESS_DENIED'
    status = 403
