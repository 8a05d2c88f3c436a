"""アクセストークン (RS256 JWT) の検証"""

from __future__ import annotations

import json
import math
import re
import time
from collections.abc import Callable
from typing import Any

import jwt
import structlog

from .config import EVE_LOGIN_HOST, SsoConfig
from .exceptions import (
    AlgorithmMismatchError,
    InvalidClaimsError,
    InvalidSignatureError,
    ParseError,
)
from .jwks import KeySetCache
from .models import IdentityClaims, SigningKey

logger = structlog.get_logger(__name__)

ALGORITHM = "RS256"

_SUBJECT_RE = re.compile(r"CHARACTER:EVE:([0-9]+)")

# 署名検証のみを行う。alg は RS256 に固定し、ヘッダーの値は信用しない。
_jws = jwt.PyJWS(algorithms=[ALGORITHM])


def _parse_header(token: str) -> str:
    """ヘッダーを検証なしでパースし、kid を返す。"""
    if not isinstance(token, str) or token.count(".") != 2:
        raise ParseError("Token is not a compact JWS")
    try:
        header = jwt.get_unverified_header(token)
    except jwt.InvalidTokenError as e:
        raise ParseError("Token header is malformed", cause=e) from e
    algorithm = header.get("alg")
    if algorithm != ALGORITHM:
        raise AlgorithmMismatchError(algorithm)
    kid = header.get("kid")
    if not isinstance(kid, str) or not kid:
        raise ParseError("Token header has no kid")
    return kid


def _verify_signature(token: str, key: SigningKey) -> dict[str, Any]:
    """RS256 署名を検証し、ペイロードを返す。"""
    try:
        payload_bytes = _jws.decode(token, key=key.public_key, algorithms=[ALGORITHM])
    except jwt.InvalidSignatureError as e:
        raise InvalidSignatureError(cause=e) from e
    except jwt.InvalidAlgorithmError as e:
        raise AlgorithmMismatchError(ALGORITHM) from e
    except jwt.InvalidTokenError as e:
        raise ParseError("Token structure is malformed", cause=e) from e
    try:
        payload = json.loads(payload_bytes)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseError("Token payload is not valid JSON", cause=e) from e
    if not isinstance(payload, dict):
        raise ParseError("Token payload is not a JSON object")
    return payload


def _as_tuple(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, list):
        if not all(isinstance(v, str) for v in value):
            raise ParseError("Expected a list of strings")
        return tuple(value)
    raise ParseError(f"Expected a string or list, got {type(value).__name__}")


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _optional_str(payload: dict[str, Any], name: str) -> str | None:
    value = payload.get(name)
    return value if isinstance(value, str) else None


class JwtValidator:
    """EVE SSO アクセストークンの検証器。

    検証は次の順序で行い、どこかで失敗した時点で例外を送出する。

    1. ヘッダーのパース（alg が RS256 以外なら AlgorithmMismatchError）
    2. kid から KeySetCache で公開鍵を解決
    3. RS256 署名の検証（クレームはここまで一切読まない）
    4. iss / exp / aud / sub / name / owner の検証
    5. IdentityClaims の生成
    """

    def __init__(
        self,
        key_cache: KeySetCache,
        expected_issuer: str = EVE_LOGIN_HOST,
        expected_audience: str = "EVE Online",
        clock_skew_seconds: float = 0.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if clock_skew_seconds < 0:
            raise ValueError("clock_skew_seconds must not be negative")
        self._key_cache = key_cache
        self._expected_issuer = expected_issuer
        self._expected_audience = expected_audience
        self._clock_skew_seconds = clock_skew_seconds
        self._clock = clock

    @classmethod
    def from_config(cls, config: SsoConfig, key_cache: KeySetCache) -> JwtValidator:
        return cls(
            key_cache=key_cache,
            expected_issuer=config.expected_issuer,
            expected_audience=config.expected_audience,
            clock_skew_seconds=config.clock_skew_seconds,
        )

    def validate(self, token: str) -> IdentityClaims:
        """トークンを同期検証し IdentityClaims を返す。"""
        kid = _parse_header(token)
        key = self._key_cache.get_key(kid)
        payload = _verify_signature(token, key)
        return self._verify_claims(payload)

    async def validate_async(self, token: str) -> IdentityClaims:
        """トークンを非同期検証し IdentityClaims を返す。"""
        kid = _parse_header(token)
        key = await self._key_cache.get_key_async(kid)
        payload = _verify_signature(token, key)
        return self._verify_claims(payload)

    def _verify_claims(self, payload: dict[str, Any]) -> IdentityClaims:
        """署名検証済みペイロードのクレームを検証する。"""
        issuer = payload.get("iss")
        if issuer != self._expected_issuer:
            raise self._reject("iss")

        exp = payload.get("exp")
        if not _is_number(exp):
            raise self._reject("exp")
        if not exp > self._clock() - self._clock_skew_seconds:
            raise self._reject("exp")

        try:
            audience = _as_tuple(payload.get("aud"))
        except ParseError:
            raise self._reject("aud") from None
        if self._expected_audience not in audience:
            raise self._reject("aud")

        subject = payload.get("sub")
        match = _SUBJECT_RE.fullmatch(subject) if isinstance(subject, str) else None
        if match is None:
            raise self._reject("sub")

        name = payload.get("name")
        if not isinstance(name, str) or not name:
            raise self._reject("name")
        owner = payload.get("owner")
        if not isinstance(owner, str) or not owner:
            raise self._reject("owner")

        try:
            scopes = _as_tuple(payload.get("scp"))
        except ParseError:
            raise self._reject("scp") from None

        iat = payload.get("iat")
        claims = IdentityClaims(
            character_id=int(match.group(1)),
            character_name=name,
            owner_hash=owner,
            issuer=issuer,
            expires_at=int(exp),
            scopes=scopes,
            audience=audience,
            issued_at=int(iat) if _is_number(iat) else None,
            token_id=_optional_str(payload, "jti"),
            authorized_party=_optional_str(payload, "azp"),
            tenant=_optional_str(payload, "tenant"),
            tier=_optional_str(payload, "tier"),
            region=_optional_str(payload, "region"),
        )
        logger.info("token validated", character_id=claims.character_id)
        return claims

    @staticmethod
    def _reject(which: str) -> InvalidClaimsError:
        logger.warning("token claim check failed", check=which)
        return InvalidClaimsError(which)
