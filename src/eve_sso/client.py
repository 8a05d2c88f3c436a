"""EVE Online SSO クライアント"""

from __future__ import annotations

from collections.abc import Iterable

from .authorization import create_login_url
from .config import SsoConfig
from .jwks import KeySetCache
from .metadata import fetch_provider_metadata, fetch_provider_metadata_async
from .models import AccessToken, IdentityClaims
from .token_exchange import TokenExchangeClient
from .validator import JwtValidator


class SsoClient:
    """ログイン URL 生成・コード交換・トークン検証をまとめたクライアント。

    KeySetCache はアプリケーションごとに 1 つ作り、このクライアント（または
    複数のクライアント）に渡して共有する。インスタンスはスレッド・タスク間で
    共有してよい。
    """

    def __init__(
        self,
        config: SsoConfig | None = None,
        key_cache: KeySetCache | None = None,
    ) -> None:
        self._config = config or SsoConfig()
        self._key_cache = key_cache or KeySetCache.from_config(self._config)
        self._exchanger = TokenExchangeClient.from_config(self._config)
        self._validator = JwtValidator.from_config(self._config, self._key_cache)

    @classmethod
    def discover(cls, config: SsoConfig | None = None) -> SsoClient:
        """メタデータからエンドポイントを検出してクライアントを生成する。"""
        config = config or SsoConfig()
        metadata = fetch_provider_metadata(
            config.metadata_url, timeout_seconds=config.http_timeout_seconds
        )
        return cls(config.with_metadata(metadata))

    @classmethod
    async def discover_async(cls, config: SsoConfig | None = None) -> SsoClient:
        """非同期でメタデータを取得してクライアントを生成する。"""
        config = config or SsoConfig()
        metadata = await fetch_provider_metadata_async(
            config.metadata_url, timeout_seconds=config.http_timeout_seconds
        )
        return cls(config.with_metadata(metadata))

    @property
    def config(self) -> SsoConfig:
        return self._config

    @property
    def key_cache(self) -> KeySetCache:
        return self._key_cache

    def create_login_url(
        self,
        client_id: str,
        redirect_uri: str,
        scopes: Iterable[str],
        code_challenge: str | None = None,
    ) -> tuple[str, str]:
        """(login_url, state) を返す。state は呼び出し側が保存して照合すること。"""
        return create_login_url(
            client_id,
            redirect_uri,
            scopes,
            authorize_url=self._config.authorize_url,
            code_challenge=code_challenge,
        )

    def exchange_code(
        self,
        code: str,
        client_id: str,
        client_secret: str,
        code_verifier: str | None = None,
    ) -> AccessToken:
        return self._exchanger.exchange(code, client_id, client_secret, code_verifier)

    async def exchange_code_async(
        self,
        code: str,
        client_id: str,
        client_secret: str,
        code_verifier: str | None = None,
    ) -> AccessToken:
        return await self._exchanger.exchange_async(code, client_id, client_secret, code_verifier)

    def validate_token(self, access_token: str | AccessToken) -> IdentityClaims:
        """アクセストークンを検証して IdentityClaims を返す。"""
        if isinstance(access_token, AccessToken):
            access_token = access_token.access_token
        return self._validator.validate(access_token)

    async def validate_token_async(self, access_token: str | AccessToken) -> IdentityClaims:
        if isinstance(access_token, AccessToken):
            access_token = access_token.access_token
        return await self._validator.validate_async(access_token)
