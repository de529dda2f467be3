import time
from datetime import timedelta, datetime, timezone

from jose import jwt, JWTError

from hive_server.exception.InvalidTokenError import InvalidTokenError


class AuthSecurity:
    """Verifies the JWTs issued by the auth service.

    Token issuance belongs to the auth service; `encode_token` is kept for
    tooling and tests that need a signed token with the same settings.
    """
    secret_key = None
    algorithm = 'HS256'
    access_token_expire_minutes = 7 * 24 * 60

    @classmethod
    def configure(cls, secret_key, algorithm='HS256', access_token_expire_minutes=7 * 24 * 60):
        cls.secret_key = secret_key
        cls.algorithm = algorithm
        cls.access_token_expire_minutes = access_token_expire_minutes

    @classmethod
    def encode_token(cls, data: dict, expires_delta: timedelta = None) -> str:
        to_encode = data.copy()
        expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=cls.access_token_expire_minutes))
        to_encode.update({"exp": int(expire.timestamp())})
        return jwt.encode(to_encode, cls.secret_key, algorithm=cls.algorithm)

    @classmethod
    def decode_token(cls, token: str) -> dict:
        # Well-formed JWTs have exactly two dots
        if not token or not isinstance(token, str) or token.count('.') != 2:
            raise InvalidTokenError("Malformed or missing token.")
        if not cls.secret_key:
            raise InvalidTokenError("Token verification is not configured.")
        try:
            payload = jwt.decode(token, cls.secret_key, algorithms=[cls.algorithm])
        except JWTError as e:
            msg = str(e)
            if 'expired' in msg.lower():
                raise InvalidTokenError("Token expired. Please login again.")
            if 'Signature verification failed' in msg:
                raise InvalidTokenError("Invalid token signature.")
            raise InvalidTokenError(f"Invalid token: {msg}")
        exp = payload.get('exp')
        if exp is not None and int(float(exp)) < int(time.time()):
            raise InvalidTokenError("Token expired. Please login again.")
        return payload

    @classmethod
    def verify(cls, token: str) -> str:
        """Return the user identity carried by a token or raise InvalidTokenError."""
        payload = cls.decode_token(token)
        user_id = payload.get('user_id') or payload.get('userId')
        if not user_id:
            raise InvalidTokenError("Token does not identify a user.")
        return str(user_id)


def get_auth_payload(request):
    """Extract and decode the Bearer token from the Authorization header.

    Raises InvalidTokenError if missing or invalid. Returns the decoded payload
    with `user_id` normalized to a string.
    """
    auth_header = request.headers.get('Authorization')
    if not auth_header or not auth_header.startswith('Bearer '):
        raise InvalidTokenError('Missing or invalid token')
    token = auth_header.split(' ', 1)[1]
    payload = AuthSecurity.decode_token(token)
    user_id = payload.get('user_id') or payload.get('userId')
    if not user_id:
        raise InvalidTokenError("Token does not identify a user.")
    payload['user_id'] = str(user_id)
    return payload
