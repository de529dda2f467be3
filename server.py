import argparse
import logging

from flask import Flask
from flask_cors import CORS

from config import config
from hive_server.routes.messages import messages_bp
from hive_server.security.authentication import AuthSecurity
from hive_server.websocket.hub import init_websocket_hub, socketio


def configure_auth_from_env():
    """Configure AuthSecurity from config (JWT_SECRET, JWT_ALGORITHM, ACCESS_TOKEN_MINUTES).

    Tokens are issued by the auth service; this process only verifies them,
    so the secret must match the issuer's.
    """
    secret = config.JWT_SECRET
    if not secret:
        raise RuntimeError('JWT_SECRET environment variable is required')
    AuthSecurity.configure(
        secret_key=secret,
        algorithm=config.JWT_ALGORITHM,
        access_token_expire_minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES,
    )


def configure_logging():
    logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)


def create_app() -> Flask:
    """Application factory used by server.py and tests.

    Registers the messaging blueprint, configures CORS and binds the
    Socket.IO hub. Auth/JWT is configured separately via
    configure_auth_from_env().
    """
    app = Flask(__name__)
    CORS(app, origins='*' if config.CORS_ORIGINS == '*' else config.CORS_ORIGINS_LIST)
    app.register_blueprint(messages_bp)

    init_websocket_hub(app, socketio)

    @app.route('/health')
    def health():
        return {'status': 'ok', 'app': config.APP_NAME, 'version': config.APP_VERSION}

    return app


def parse_args():
    """Parse simple CLI arguments for running the server."""
    parser = argparse.ArgumentParser(description='Run the Hive messaging server')
    parser.add_argument('--port', type=int, default=config.PORT, help='TCP port to bind (default: 5000 or PORT env)')
    parser.add_argument('--host', default='0.0.0.0', help='Interface to bind (default: 0.0.0.0)')
    return parser.parse_args()


if __name__ == "__main__":
    args = parse_args()
    configure_logging()
    config.validate_required()
    configure_auth_from_env()
    app = create_app()
    logging.info('Starting %s (%s) with Socket.IO on port %s', config.APP_NAME, config.ENV, args.port)
    socketio.run(app, host=args.host, port=args.port, debug=config.DEBUG, allow_unsafe_werkzeug=True)
