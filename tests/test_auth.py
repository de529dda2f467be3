from datetime import timedelta

import pytest

from hive_server.exception import InvalidTokenError
from hive_server.security.authentication import AuthSecurity


def test_verify_returns_user_id():
    token = AuthSecurity.encode_token({'user_id': 'a1'})
    assert AuthSecurity.verify(token) == 'a1'


def test_verify_accepts_camel_case_claim():
    token = AuthSecurity.encode_token({'userId': 42})
    assert AuthSecurity.verify(token) == '42'


def test_expired_token():
    token = AuthSecurity.encode_token({'user_id': 'a1'}, expires_delta=timedelta(seconds=-10))
    with pytest.raises(InvalidTokenError):
        AuthSecurity.verify(token)


def test_token_signed_with_other_secret():
    token = AuthSecurity.encode_token({'user_id': 'a1'})
    AuthSecurity.configure(secret_key='another-secret')
    with pytest.raises(InvalidTokenError):
        AuthSecurity.verify(token)


@pytest.mark.parametrize('token', [None, '', 'abc', 'a.b'])
def test_malformed_tokens(token):
    with pytest.raises(InvalidTokenError):
        AuthSecurity.verify(token)


def test_token_without_identity():
    token = AuthSecurity.encode_token({'role': 'admin'})
    with pytest.raises(InvalidTokenError):
        AuthSecurity.verify(token)
