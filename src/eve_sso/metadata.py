"""プロバイダーメタデータ (/.well-known/oauth-authorization-server) の取得"""

from __future__ import annotations

import json

import httpx
import structlog

from .exceptions import ConfigurationError, HttpStatusError, ParseError
from .models import ProviderMetadata
from .retry import RetryPolicy, call_with_retry, call_with_retry_async

logger = structlog.get_logger(__name__)


def _check_url(metadata_url: str) -> None:
    if not metadata_url.startswith("https://"):
        raise ConfigurationError(f"metadata endpoint must use https: {metadata_url!r}")


def _parse(resp: httpx.Response) -> ProviderMetadata:
    if not resp.is_success:
        raise HttpStatusError(status=resp.status_code, body=resp.text)
    try:
        data = resp.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseError("Provider metadata is not valid JSON", cause=e) from e
    metadata = ProviderMetadata.from_dict(data)
    logger.info("provider metadata loaded", issuer=metadata.issuer, jwks_uri=metadata.jwks_uri)
    return metadata


def fetch_provider_metadata(
    metadata_url: str,
    timeout_seconds: float = 5.0,
    retry_policy: RetryPolicy | None = None,
) -> ProviderMetadata:
    """プロバイダーメタデータを同期で取得する。

    Raises:
        NetworkError: リトライ後もトランスポート障害が続いた場合
        HttpStatusError: 2xx 以外のレスポンス
        ParseError: JSON が不正、または必須フィールドが欠けている場合
    """
    _check_url(metadata_url)

    def _get() -> httpx.Response:
        with httpx.Client(timeout=timeout_seconds) as client:
            return client.get(metadata_url)

    resp = call_with_retry(retry_policy or RetryPolicy(), _get, operation="metadata fetch")
    return _parse(resp)


async def fetch_provider_metadata_async(
    metadata_url: str,
    timeout_seconds: float = 5.0,
    retry_policy: RetryPolicy | None = None,
) -> ProviderMetadata:
    """プロバイダーメタデータを非同期で取得する。"""
    _check_url(metadata_url)

    async def _get() -> httpx.Response:
        async with httpx.AsyncClient(timeout=timeout_seconds) as client:
            return await client.get(metadata_url)

    resp = await call_with_retry_async(
        retry_policy or RetryPolicy(), _get, operation="metadata fetch"
    )
    return _parse(resp)
