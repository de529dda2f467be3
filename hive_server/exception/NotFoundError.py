from hive_server.exception.MessagingError import MessagingError


class NotFoundError(MessagingError):
    code = 'NOT_FOUND'
    status = 404
