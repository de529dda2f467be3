class MessagingError(Exception):
    """Base class for errors raised by the messaging layer.

    `code` is the stable string sent to socket clients, `status` the HTTP
    status used by the REST routes.
    """
    code = 'MESSAGING_ERROR'
    status = 400

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.message = message
        self.errors = errors

    def to_dict(self):
        body = {'code': self.code, 'message': self.message}
        if self.errors:
            body['errors'] = self.errors
        return body
