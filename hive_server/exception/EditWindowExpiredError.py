from hive_server.exception.MessagingError import MessagingError


class EditWindowExpiredError(MessagingError):
    code = 'EDIT_WINDOW_EXPIRED'
    status = 400
