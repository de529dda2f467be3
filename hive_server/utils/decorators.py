"""Route decorators for common patterns like error handling and authentication.

This module provides reusable decorators to reduce boilerplate in route handlers.
"""
import functools
import logging
from typing import Callable

from flask import request

from hive_server.exception.MessagingError import MessagingError
from hive_server.utils.helpers import respond_error
from hive_server.security.authentication import get_auth_payload

logger = logging.getLogger(__name__)


def handle_errors(func: Callable) -> Callable:
    """Decorator to map messaging errors in route handlers to HTTP responses.

    Catches:
    - MessagingError subclasses -> their own status (401/403/404/400)
    - Other exceptions -> 500 without leaking internals

    Usage:
        @bp.route('/example')
        @handle_errors
        def example_route():
            ...
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except MessagingError as e:
            logger.warning("%s in %s: %s", type(e).__name__, func.__name__, e.message)
            return respond_error(e.message, status=e.status, errors=e.errors)
        except Exception:
            logger.exception("Unexpected error in %s", func.__name__)
            return respond_error('Server error', status=500)
    return wrapper


def require_auth(func: Callable) -> Callable:
    """Decorator to require authentication and inject payload into handler.

    The decorated function receives `auth_payload` as a keyword argument.

    Usage:
        @bp.route('/protected')
        @handle_errors
        @require_auth
        def protected_route(auth_payload):
            user_id = auth_payload['user_id']
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        payload = get_auth_payload(request)
        kwargs['auth_payload'] = payload
        return func(*args, **kwargs)
    return wrapper
