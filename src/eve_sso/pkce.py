"""OAuth2 PKCE (S256) ヘルパー"""

from __future__ import annotations

import base64
import hashlib
import secrets

CODE_CHALLENGE_METHOD = "S256"


def generate_code_verifier(length: int = 64) -> str:
    """PKCE コードベリファイアを生成する（RFC 7636）。

    Args:
        length: ランダムバイト数（32〜96）

    Returns:
        URL-safe base64 エンコードされたコードベリファイア
    """
    if not 32 <= length <= 96:
        raise ValueError("code verifier length must be between 32 and 96 bytes")
    return base64.urlsafe_b64encode(secrets.token_bytes(length)).rstrip(b"=").decode("ascii")


def generate_code_challenge(verifier: str) -> str:
    """コードベリファイアから S256 コードチャレンジを生成する。"""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
