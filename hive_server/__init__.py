from .routes.messages import messages_bp

# Application factory is defined in server.py; the blueprint is re-exported
# here so tests and alternative runners can build an app without importing
# server.py.

__all__ = ["messages_bp"]
