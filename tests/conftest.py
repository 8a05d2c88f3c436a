"""テスト共通フィクスチャ（RSA 鍵ペア・トークン生成）"""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from typing import Any

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm

JWKS_URI = "https://login.eveonline.com/oauth/jwks"
TOKEN_URL = "https://login.eveonline.com/v2/oauth/token"
ISSUER = "https://login.eveonline.com"
KID = "JWT-Signature-Key"


def generate_private_key() -> rsa.RSAPrivateKey:
    """テスト用 RSA 秘密鍵を生成する。"""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def make_jwk(private_key: rsa.RSAPrivateKey, kid: str = KID) -> dict[str, Any]:
    """秘密鍵に対応する JWKS エントリ（公開鍵のみ）を生成する。"""
    jwk: dict[str, Any] = json.loads(RSAAlgorithm.to_jwk(private_key.public_key()))
    jwk.update({"kid": kid, "alg": "RS256", "use": "sig"})
    return jwk


def make_claims(**overrides: Any) -> dict[str, Any]:
    """EVE SSO 形式のクレームを生成する。"""
    now = int(time.time())
    claims: dict[str, Any] = {
        "scp": ["esi-skills.read_skills.v1", "publicData"],
        "jti": "998e12c7-3241-43c5-8355-2c48822e0a1b",
        "kid": KID,
        "sub": "CHARACTER:EVE:2112625428",
        "azp": "my3rdpartyclientid",
        "tenant": "tranquility",
        "tier": "live",
        "region": "world",
        "aud": ["my3rdpartyclientid", "EVE Online"],
        "name": "Ashley Kyrogen",
        "owner": "8PmzCeTKb4VFUDrHLc/AeZXDSWM=",
        "exp": now + 1200,
        "iat": now,
        "iss": ISSUER,
    }
    claims.update(overrides)
    return {k: v for k, v in claims.items() if v is not None}


def sign_token(
    private_key: rsa.RSAPrivateKey,
    kid: str = KID,
    **overrides: Any,
) -> str:
    """RS256 で署名したアクセストークンを生成する。"""
    claims = make_claims(**overrides)
    return jwt.encode(claims, private_key, algorithm="RS256", headers={"kid": kid})


@pytest.fixture(scope="session")
def private_key() -> rsa.RSAPrivateKey:
    return generate_private_key()


@pytest.fixture(scope="session")
def other_private_key() -> rsa.RSAPrivateKey:
    return generate_private_key()


@pytest.fixture(scope="session")
def key_set(private_key: rsa.RSAPrivateKey) -> dict[str, Any]:
    """EVE の JWKS 形式（ES256 鍵を含む）。"""
    return {
        "keys": [
            make_jwk(private_key),
            {
                "alg": "ES256",
                "crv": "P-256",
                "kid": "8878a23f-b40c-4b3a-8ab0-8e8a7c1e7d5b",
                "kty": "EC",
                "use": "sig",
                "x": "ITcDYJ8WVpDO4QtZ169xXUt7GB1Y6-oMKIwJ3kK1tFU",
                "y": "ZZhqhcGmJ5tT8bWn5UxZk5Gn0xRm_rPnE7X8Nd3Jv1A",
            },
        ],
        "SkipUnresolvedJsonWebKeys": True,
    }


@pytest.fixture
def token_factory(private_key: rsa.RSAPrivateKey) -> Callable[..., str]:
    def _factory(**overrides: Any) -> str:
        return sign_token(private_key, **overrides)

    return _factory
