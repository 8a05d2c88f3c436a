"""SSO データモデル"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey

from .exceptions import ParseError


@dataclass(frozen=True)
class LoginRequest:
    """ログインリダイレクト 1 回分の入力。state は呼び出し側がセッションに保存する。"""

    client_id: str
    redirect_uri: str
    scopes: tuple[str, ...]
    state: str
    code_challenge: str | None = None


@dataclass(frozen=True)
class AccessToken:
    """トークンエンドポイントのレスポンス。

    access_token 自体が RS256 署名された JWT。repr には出さない。
    """

    access_token: str = field(repr=False)
    token_type: str
    expires_in: int
    expires_at: float  # Unix timestamp
    refresh_token: str = field(default="", repr=False)

    def is_expired(self, buffer_seconds: float = 0.0) -> bool:
        """有効期限が切れているか確認する（バッファ付き）。"""
        return time.time() >= (self.expires_at - buffer_seconds)

    @classmethod
    def from_response(cls, response: Any) -> AccessToken:
        """トークンエンドポイントの JSON から AccessToken を生成する。

        Raises:
            ParseError: access_token が文字列でない、または expires_in が
                非負の有限な数値でない場合
        """
        if not isinstance(response, dict):
            raise ParseError("Token response is not a JSON object")
        access_token = response.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ParseError("Token response has no access_token")
        token_type = response.get("token_type", "Bearer")
        if not isinstance(token_type, str):
            raise ParseError("Token response has a non-string token_type")
        raw_expires_in = response.get("expires_in", 0)
        if isinstance(raw_expires_in, bool):
            raise ParseError("Token response has a non-numeric expires_in")
        try:
            expires_in = int(raw_expires_in)
        except (TypeError, ValueError, OverflowError) as e:
            raise ParseError("Token response has a non-numeric expires_in", cause=e) from e
        if expires_in < 0:
            raise ParseError("Token response has a negative expires_in")
        refresh_token = response.get("refresh_token") or ""
        return cls(
            access_token=access_token,
            token_type=token_type,
            expires_in=expires_in,
            expires_at=time.time() + expires_in,
            refresh_token=refresh_token if isinstance(refresh_token, str) else "",
        )


@dataclass(frozen=True)
class SigningKey:
    """検証専用の RSA 公開鍵。"""

    key_id: str
    public_key: RSAPublicKey = field(repr=False)
    algorithm: str = "RS256"


@dataclass(frozen=True)
class IdentityClaims:
    """検証済みアクセストークンから取り出した本人情報。

    owner_hash はキャラクター移譲で変わるため、アカウントの同一性判定には
    character_id ではなく owner_hash を使う。
    """

    character_id: int
    character_name: str
    owner_hash: str
    issuer: str
    expires_at: int
    scopes: tuple[str, ...] = ()
    audience: tuple[str, ...] = ()
    issued_at: int | None = None
    token_id: str | None = None
    authorized_party: str | None = None
    tenant: str | None = None
    tier: str | None = None
    region: str | None = None

    def has_scope(self, scope: str) -> bool:
        """指定されたスコープを持つか確認する。"""
        return scope in self.scopes


@dataclass(frozen=True)
class ProviderMetadata:
    """/.well-known/oauth-authorization-server の内容。"""

    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    jwks_uri: str
    revocation_endpoint: str = ""
    code_challenge_methods_supported: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Any) -> ProviderMetadata:
        """メタデータ JSON から ProviderMetadata を生成する。

        Raises:
            ParseError: 必須フィールドが欠けている場合
        """
        if not isinstance(data, dict):
            raise ParseError("Provider metadata is not a JSON object")
        required = ("issuer", "authorization_endpoint", "token_endpoint", "jwks_uri")
        missing = [k for k in required if not isinstance(data.get(k), str) or not data[k]]
        if missing:
            raise ParseError(f"Provider metadata is missing: {', '.join(missing)}")
        methods = data.get("code_challenge_methods_supported") or []
        return cls(
            issuer=data["issuer"],
            authorization_endpoint=data["authorization_endpoint"],
            token_endpoint=data["token_endpoint"],
            jwks_uri=data["jwks_uri"],
            revocation_endpoint=data.get("revocation_endpoint") or "",
            code_challenge_methods_supported=tuple(str(m) for m in methods),
        )
