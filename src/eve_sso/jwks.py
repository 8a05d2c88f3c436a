"""JWKS キーセットキャッシュ"""

from __future__ import annotations

import asyncio
import json
import re
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
import jwt
import structlog
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey
from jwt.algorithms import RSAAlgorithm

from .config import DEFAULT_JWKS_URI, SsoConfig
from .exceptions import ConfigurationError, KeyFetchError, NetworkError, UnknownKeyError
from .models import SigningKey
from .retry import RetryPolicy, call_with_retry, call_with_retry_async

logger = structlog.get_logger(__name__)

_MAX_AGE_RE = re.compile(r"(?:^|,)\s*max-age\s*=\s*(\d+)", re.IGNORECASE)


@dataclass(frozen=True)
class _Snapshot:
    """ある時点のキーセット全体。リフレッシュ時は丸ごと差し替える。"""

    keys: dict[str, SigningKey] = field(default_factory=dict)
    expires_at: float = 0.0

    def lookup(self, key_id: str, now: float) -> SigningKey | None:
        if now >= self.expires_at:
            return None
        return self.keys.get(key_id)


def parse_key_set(data: Any) -> dict[str, SigningKey]:
    """JWKS JSON から RS256 の SigningKey を key id ごとに取り出す。

    RS256 以外（ES256 など）のエントリは無視する。RS256 エントリが
    1 つでも壊れていればキーセット全体を拒否する。

    Raises:
        KeyFetchError: JSON 構造または RSA 鍵が不正な場合
    """
    if not isinstance(data, dict) or not isinstance(data.get("keys"), list):
        raise KeyFetchError("Key set has no 'keys' list")
    keys: dict[str, SigningKey] = {}
    for entry in data["keys"]:
        if not isinstance(entry, dict):
            raise KeyFetchError("Key set entry is not an object")
        if entry.get("alg") != "RS256" or entry.get("kty") != "RSA":
            logger.debug("skipping non-RS256 key", kid=entry.get("kid"), alg=entry.get("alg"))
            continue
        if entry.get("use", "sig") != "sig":
            continue
        kid = entry.get("kid")
        if not isinstance(kid, str) or not kid:
            raise KeyFetchError("RS256 key has no kid")
        try:
            public_key = RSAAlgorithm.from_jwk(entry)
        except (jwt.InvalidKeyError, ValueError, KeyError, TypeError) as e:
            raise KeyFetchError(f"Malformed RSA key {kid!r}", cause=e) from e
        # 公開鍵のみ保持する（署名には使わない）
        if not isinstance(public_key, RSAPublicKey):
            raise KeyFetchError(f"Key {kid!r} is not an RSA public key")
        keys[kid] = SigningKey(key_id=kid, public_key=public_key)
    return keys


def _max_age(resp: httpx.Response) -> float | None:
    match = _MAX_AGE_RE.search(resp.headers.get("cache-control", ""))
    if match is None:
        return None
    seconds = int(match.group(1))
    return float(seconds) if seconds > 0 else None


class KeySetCache:
    """プロバイダーの署名鍵をキャッシュする。

    キャッシュ済みで TTL 内の鍵はロックなしで返す。見つからない・期限切れの
    場合はキーセット全体を取得し直して一括で差し替える。同時に複数の呼び出し元が
    リフレッシュを必要とした場合、ネットワーク取得は 1 回だけ行う。
    取得失敗時は古いキャッシュにフォールバックしない。
    """

    def __init__(
        self,
        jwks_uri: str = DEFAULT_JWKS_URI,
        ttl_seconds: float = 3600.0,
        timeout_seconds: float = 5.0,
        retry_policy: RetryPolicy | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not jwks_uri.startswith("https://"):
            raise ConfigurationError(f"key set endpoint must use https: {jwks_uri!r}")
        self._jwks_uri = jwks_uri
        self._ttl_seconds = ttl_seconds
        self._timeout = httpx.Timeout(timeout_seconds)
        self._retry_policy = retry_policy or RetryPolicy()
        self._clock = clock
        self._snapshot = _Snapshot()
        self._lock = threading.Lock()
        self._inflight: asyncio.Task[_Snapshot] | None = None
        self._waiters = 0

    @classmethod
    def from_config(cls, config: SsoConfig) -> KeySetCache:
        return cls(
            jwks_uri=config.jwks_uri,
            ttl_seconds=config.key_cache_ttl_seconds,
            timeout_seconds=config.http_timeout_seconds,
        )

    @property
    def key_ids(self) -> frozenset[str]:
        """現在キャッシュされている key id の集合（期限切れを含む）。"""
        return frozenset(self._snapshot.keys)

    def _build_snapshot(self, resp: httpx.Response) -> _Snapshot:
        if not resp.is_success:
            raise KeyFetchError(f"Key set endpoint returned HTTP {resp.status_code}")
        try:
            data = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise KeyFetchError("Key set response is not valid JSON", cause=e) from e
        keys = parse_key_set(data)
        ttl = _max_age(resp) or self._ttl_seconds
        logger.info("key set refreshed", jwks_uri=self._jwks_uri, key_count=len(keys), ttl=ttl)
        return _Snapshot(keys=keys, expires_at=self._clock() + ttl)

    def refresh(self) -> None:
        """キーセットを同期で取得し直す。"""
        with self._lock:
            self._snapshot = self._fetch()

    def _fetch(self) -> _Snapshot:
        def _get() -> httpx.Response:
            with httpx.Client(timeout=self._timeout) as client:
                return client.get(self._jwks_uri)

        try:
            resp = call_with_retry(self._retry_policy, _get, operation="key set fetch")
        except NetworkError as e:
            raise KeyFetchError(f"Failed to fetch key set from {self._jwks_uri}", cause=e) from e
        return self._build_snapshot(resp)

    def get_key(self, key_id: str) -> SigningKey:
        """key id に対応する SigningKey を返す（同期）。

        Raises:
            KeyFetchError: キーセットの取得に失敗した場合
            UnknownKeyError: リフレッシュ後も key id が存在しない場合
        """
        observed = self._snapshot
        key = observed.lookup(key_id, self._clock())
        if key is not None:
            return key
        with self._lock:
            # 待っている間に他スレッドがリフレッシュ済みならその結果を使う
            if self._snapshot is observed:
                self._snapshot = self._fetch()
            current = self._snapshot
        key = current.lookup(key_id, self._clock())
        if key is None:
            logger.warning("signing key not found after refresh", kid=key_id)
            raise UnknownKeyError(key_id)
        return key

    async def refresh_async(self) -> None:
        """キーセットを非同期で取得し直す。進行中のリフレッシュがあればそれを待つ。"""
        await self._await_refresh()

    def _refresh_task(self) -> asyncio.Task[_Snapshot]:
        task = self._inflight
        if task is None or task.done():
            task = asyncio.get_running_loop().create_task(self._fetch_async())
            task.add_done_callback(self._clear_inflight)
            self._inflight = task
            self._waiters = 0
        return task

    async def _await_refresh(self) -> _Snapshot:
        """共有リフレッシュを待つ。

        待機者がキャンセルされても他の待機者がいればリフレッシュは続ける。
        最後の待機者が抜けた時点でタスクをキャンセルし、接続を閉じる。
        """
        task = self._refresh_task()
        self._waiters += 1
        try:
            return await asyncio.shield(task)
        finally:
            if self._inflight is task:
                self._waiters -= 1
                if self._waiters == 0 and not task.done():
                    logger.debug("cancelling key set refresh with no waiters")
                    self._inflight = None
                    task.cancel()

    def _clear_inflight(self, task: asyncio.Task[_Snapshot]) -> None:
        if self._inflight is task:
            self._inflight = None
        if not task.cancelled():
            # 待機者が全員キャンセルされた場合も例外を回収済みにする
            task.exception()

    async def _fetch_async(self) -> _Snapshot:
        async def _get() -> httpx.Response:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                return await client.get(self._jwks_uri)

        try:
            resp = await call_with_retry_async(
                self._retry_policy, _get, operation="key set fetch"
            )
        except NetworkError as e:
            raise KeyFetchError(f"Failed to fetch key set from {self._jwks_uri}", cause=e) from e
        snapshot = self._build_snapshot(resp)
        self._snapshot = snapshot
        return snapshot

    async def get_key_async(self, key_id: str) -> SigningKey:
        """key id に対応する SigningKey を返す（非同期、シングルフライト）。"""
        key = self._snapshot.lookup(key_id, self._clock())
        if key is not None:
            return key
        current = await self._await_refresh()
        key = current.lookup(key_id, self._clock())
        if key is None:
            logger.warning("signing key not found after refresh", kid=key_id)
            raise UnknownKeyError(key_id)
        return key
