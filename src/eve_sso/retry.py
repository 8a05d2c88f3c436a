"""一時的なトランスポート障害に対するリトライ"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import httpx
import structlog

from .exceptions import NetworkError

T = TypeVar("T")

logger = structlog.get_logger(__name__)

# 接続断・タイムアウトのみ。HTTP ステータスエラーはリトライ対象外。
TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


@dataclass(frozen=True)
class RetryPolicy:
    """リトライポリシー設定。max_attempts は初回を含む試行回数。"""

    max_attempts: int = 2
    delay: float = 0.1

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay < 0:
            raise ValueError("delay must not be negative")


def _log_attempt(operation: str, attempt: int, error: Exception) -> None:
    logger.warning(
        "transient transport failure",
        operation=operation,
        attempt=attempt,
        error_type=type(error).__name__,
    )


def call_with_retry(
    policy: RetryPolicy,
    fn: Callable[[], T],
    operation: str,
) -> T:
    """同期関数を一時的障害に限りリトライ付きで実行する。

    一時的でない httpx の例外（プロキシ・デコード・プロトコル未対応など）は
    リトライせずに NetworkError に変換する。

    Raises:
        NetworkError: トランスポート障害で失敗した場合
    """
    last_error: Exception | None = None
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return fn()
        except TRANSIENT_ERRORS as e:
            last_error = e
            _log_attempt(operation, attempt, e)
            if attempt < policy.max_attempts:
                time.sleep(policy.delay)
        except httpx.HTTPError as e:
            raise NetworkError(f"{operation} failed: {type(e).__name__}", cause=e) from e
    raise NetworkError(
        f"{operation} failed after {policy.max_attempts} attempts", cause=last_error
    ) from last_error


async def call_with_retry_async(
    policy: RetryPolicy,
    fn: Callable[[], Awaitable[T]],
    operation: str,
) -> T:
    """非同期関数を一時的障害に限りリトライ付きで実行する。"""
    last_error: Exception | None = None
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await fn()
        except TRANSIENT_ERRORS as e:
            last_error = e
            _log_attempt(operation, attempt, e)
            if attempt < policy.max_attempts:
                await asyncio.sleep(policy.delay)
        except httpx.HTTPError as e:
            raise NetworkError(f"{operation} failed: {type(e).__name__}", cause=e) from e
    raise NetworkError(
        f"{operation} failed after {policy.max_attempts} attempts", cause=last_error
    ) from last_error
