"""CSRF 対策用 state 値の生成"""

from __future__ import annotations

import hmac
import secrets

from .exceptions import ConfigurationError

MIN_STATE_BYTES = 16


def generate_state(nbytes: int = 32) -> str:
    """推測不能な state 値を生成する（1 回限り使用）。

    Args:
        nbytes: ランダムバイト数（最小 16）

    Returns:
        URL-safe base64 エンコードされた state 値
    """
    if nbytes < MIN_STATE_BYTES:
        raise ConfigurationError(f"state needs at least {MIN_STATE_BYTES} random bytes")
    return secrets.token_urlsafe(nbytes)


def states_match(expected: str | None, received: str | None) -> bool:
    """保存済み state とコールバックで戻った state を定数時間で比較する。"""
    if not expected or not received:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))
