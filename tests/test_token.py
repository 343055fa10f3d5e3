"""Tests for unverified token parsing."""

import base64
import json
import time

import pytest

from sso.errors import MalformedTokenError
from sso.token import extract_claim, get_expiry, get_username, is_expired, parse_token


def make_token(claims) -> str:
    def segment(data) -> str:
        return base64.urlsafe_b64encode(json.dumps(data).encode()).decode().rstrip("=")

    return f"{segment({'alg': 'none'})}.{segment(claims)}.signature"


def test_parse_token_returns_claims():
    token = make_token({"preferred_username": "alice", "sub": "123"})

    assert parse_token(token) == {"preferred_username": "alice", "sub": "123"}


def test_parse_token_handles_unpadded_payload():
    token = make_token({"a": "ab"})

    assert not token.split(".")[1].endswith("=")
    assert parse_token(token)["a"] == "ab"


@pytest.mark.parametrize(
    "token",
    [
        "",
        "not-a-jwt",
        "a.b",
        "a.b.c.d",
        "header.!!!.signature",
        "header." + base64.urlsafe_b64encode(b"not json").decode().rstrip("=") + ".sig",
        "header." + base64.urlsafe_b64encode(b"[1, 2]").decode().rstrip("=") + ".sig",
    ],
)
def test_parse_token_rejects_malformed(token):
    with pytest.raises(MalformedTokenError):
        parse_token(token)


def test_extract_claim_reports_absence():
    claims = {"preferred_username": "alice", "empty": None}

    assert extract_claim(claims, "preferred_username") == ("alice", True)
    assert extract_claim(claims, "empty") == (None, True)
    assert extract_claim(claims, "email") == (None, False)


def test_get_username():
    assert get_username(make_token({"preferred_username": "alice"})) == ("alice", True)


def test_get_username_missing_claim_is_not_an_error():
    assert get_username(make_token({"sub": "123"})) == (None, False)
    assert get_username("garbage") == (None, False)
    assert get_username("") == (None, False)


def test_expiry():
    future = int(time.time()) + 3600
    past = int(time.time()) - 3600

    assert get_expiry(make_token({"exp": future})) == float(future)
    assert get_expiry(make_token({})) is None
    assert not is_expired(make_token({"exp": future}))
    assert is_expired(make_token({"exp": past}))
    assert not is_expired(make_token({}))
    assert is_expired("")
    assert is_expired("garbage")


def test_expiry_leeway():
    almost = int(time.time()) + 2

    assert is_expired(make_token({"exp": almost}), leeway=5.0)
    assert not is_expired(make_token({"exp": almost}), leeway=0.0)
