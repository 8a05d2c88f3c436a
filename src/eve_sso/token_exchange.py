"""Authorization Code をアクセストークンに交換する"""

from __future__ import annotations

import json
from typing import Any

import httpx
import structlog

from .config import DEFAULT_TOKEN_URL, SsoConfig
from .exceptions import ConfigurationError, ParseError, TokenExchangeError
from .models import AccessToken
from .retry import RetryPolicy, call_with_retry, call_with_retry_async

logger = structlog.get_logger(__name__)


def _build_form(code: str, code_verifier: str | None) -> dict[str, str]:
    data = {"grant_type": "authorization_code", "code": code}
    if code_verifier:
        data["code_verifier"] = code_verifier
    return data


def _check_credentials(client_id: str, client_secret: str) -> None:
    if not client_id:
        raise ConfigurationError("client_id must not be empty")
    if not client_secret:
        raise ConfigurationError("client_secret must not be empty")


def _parse_response(resp: httpx.Response) -> AccessToken:
    """トークンエンドポイントのレスポンスを AccessToken に変換する。"""
    if not resp.is_success:
        logger.warning("token exchange rejected", status=resp.status_code)
        raise TokenExchangeError(status=resp.status_code, body=resp.text)
    try:
        data: Any = resp.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseError("Token response is not valid JSON", cause=e) from e
    token = AccessToken.from_response(data)
    logger.info(
        "token exchange succeeded", token_type=token.token_type, expires_in=token.expires_in
    )
    return token


class TokenExchangeClient:
    """トークンエンドポイントへの POST を行うクライアント。

    client_secret は呼び出しごとに受け取り、インスタンスには保持しない。
    インスタンスは不変なので複数の呼び出し元で共有できる。
    """

    def __init__(
        self,
        token_url: str = DEFAULT_TOKEN_URL,
        timeout_seconds: float = 5.0,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        if not token_url.startswith("https://"):
            raise ConfigurationError(f"token endpoint must use https: {token_url!r}")
        self._token_url = token_url
        self._timeout = httpx.Timeout(timeout_seconds)
        self._retry_policy = retry_policy or RetryPolicy()

    @classmethod
    def from_config(cls, config: SsoConfig) -> TokenExchangeClient:
        return cls(token_url=config.token_url, timeout_seconds=config.http_timeout_seconds)

    def exchange(
        self,
        code: str,
        client_id: str,
        client_secret: str,
        code_verifier: str | None = None,
    ) -> AccessToken:
        """コードをアクセストークンに交換する。

        Raises:
            ConfigurationError: client_id / client_secret が空の場合
            NetworkError: リトライ後もトランスポート障害が続いた場合
            TokenExchangeError: 2xx 以外のレスポンス
            ParseError: レスポンス JSON が不正な場合
        """
        _check_credentials(client_id, client_secret)
        data = _build_form(code, code_verifier)
        auth = httpx.BasicAuth(client_id, client_secret)

        def _post() -> httpx.Response:
            with httpx.Client(timeout=self._timeout) as client:
                return client.post(self._token_url, data=data, auth=auth)

        resp = call_with_retry(self._retry_policy, _post, operation="token exchange")
        return _parse_response(resp)

    async def exchange_async(
        self,
        code: str,
        client_id: str,
        client_secret: str,
        code_verifier: str | None = None,
    ) -> AccessToken:
        """非同期でコードをアクセストークンに交換する。

        キャンセルされた場合は AsyncClient のクローズで接続も閉じる。
        """
        _check_credentials(client_id, client_secret)
        data = _build_form(code, code_verifier)
        auth = httpx.BasicAuth(client_id, client_secret)

        async def _post() -> httpx.Response:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                return await client.post(self._token_url, data=data, auth=auth)

        resp = await call_with_retry_async(self._retry_policy, _post, operation="token exchange")
        return _parse_response(resp)
