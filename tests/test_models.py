"""データモデルと例外型のユニットテスト"""

import dataclasses
import time

import pytest
from eve_sso.exceptions import (
    InvalidClaimsError,
    ParseError,
    SsoError,
    SsoErrorCodes,
    TokenExchangeError,
    UnknownKeyError,
)
from eve_sso.models import AccessToken, IdentityClaims, ProviderMetadata


def test_access_token_from_response() -> None:
    """トークンレスポンスから有効期限が計算されること。"""
    before = time.time()
    token = AccessToken.from_response(
        {"access_token": "tok", "token_type": "Bearer", "expires_in": 1199}
    )
    assert token.expires_at >= before + 1199
    assert token.refresh_token == ""
    assert token.is_expired() is False
    assert token.is_expired(buffer_seconds=1200) is True


@pytest.mark.parametrize(
    "response",
    [
        [],
        {},
        {"access_token": ""},
        {"access_token": 123},
        {"access_token": "tok", "expires_in": "soon"},
        {"access_token": "tok", "token_type": 1},
        {"access_token": "tok", "expires_in": float("inf")},
        {"access_token": "tok", "expires_in": float("nan")},
        {"access_token": "tok", "expires_in": True},
        {"access_token": "tok", "expires_in": -1},
    ],
)
def test_access_token_rejects_malformed_response(response) -> None:
    """不正なトークンレスポンスは ParseError になること。"""
    with pytest.raises(ParseError):
        AccessToken.from_response(response)


def test_identity_claims_is_immutable() -> None:
    """IdentityClaims は変更できないこと。"""
    claims = IdentityClaims(
        character_id=1,
        character_name="Pilot",
        owner_hash="hash",
        issuer="https://login.eveonline.com",
        expires_at=0,
    )
    with pytest.raises(dataclasses.FrozenInstanceError):
        claims.owner_hash = "other"  # type: ignore[misc]


def test_provider_metadata_requires_fields() -> None:
    """必須フィールドが無い場合 ParseError になること。"""
    with pytest.raises(ParseError):
        ProviderMetadata.from_dict({"issuer": "login.eveonline.com"})
    with pytest.raises(ParseError):
        ProviderMetadata.from_dict("not a dict")


def test_sso_error_str() -> None:
    """SsoError.__str__ が code: message 形式であること。"""
    err = SsoError(code="TEST_CODE", message="test message")
    assert str(err) == "TEST_CODE: test message"


def test_sso_error_with_cause() -> None:
    """SsoError に cause が設定されること。"""
    cause = ValueError("original error")
    err = SsoError(code="TEST_CODE", message="wrapped", cause=cause)
    assert err.__cause__ is cause


def test_typed_errors_carry_fields() -> None:
    """型付き例外が仕様のフィールドとコードを持つこと。"""
    exchange = TokenExchangeError(status=400, body='{"error":"invalid_grant"}')
    assert exchange.code == SsoErrorCodes.TOKEN_EXCHANGE
    assert (exchange.status, exchange.body) == (400, '{"error":"invalid_grant"}')
    assert str(exchange) == "TOKEN_EXCHANGE: Token endpoint returned HTTP 400"

    claims = InvalidClaimsError("exp")
    assert claims.which == "exp"
    assert claims.code == SsoErrorCodes.INVALID_CLAIMS

    unknown = UnknownKeyError("kid-1")
    assert unknown.key_id == "kid-1"
    assert isinstance(unknown, SsoError)
