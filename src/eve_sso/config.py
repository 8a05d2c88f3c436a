"""SSO 設定（pydantic BaseModel）と YAML 読み込み"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigurationError
from .models import ProviderMetadata

EVE_LOGIN_HOST = "https://login.eveonline.com"
DEFAULT_AUTHORIZE_URL = f"{EVE_LOGIN_HOST}/v2/oauth/authorize"
DEFAULT_TOKEN_URL = f"{EVE_LOGIN_HOST}/v2/oauth/token"
DEFAULT_JWKS_URI = f"{EVE_LOGIN_HOST}/oauth/jwks"


class SsoConfig(BaseModel):
    """EVE Online SSO の接続・検証設定。"""

    authorize_url: str = DEFAULT_AUTHORIZE_URL
    token_url: str = DEFAULT_TOKEN_URL
    jwks_uri: str = DEFAULT_JWKS_URI
    metadata_url: str = f"{EVE_LOGIN_HOST}/.well-known/oauth-authorization-server"
    expected_issuer: str = EVE_LOGIN_HOST
    expected_audience: str = "EVE Online"
    clock_skew_seconds: float = Field(default=0.0, ge=0)
    key_cache_ttl_seconds: float = Field(default=3600.0, gt=0)
    http_timeout_seconds: float = Field(default=5.0, gt=0)

    model_config = {"frozen": True}

    @field_validator("authorize_url", "token_url", "jwks_uri", "metadata_url")
    @classmethod
    def _require_https(cls, value: str) -> str:
        if not value.startswith("https://"):
            raise ValueError(f"endpoint must use https: {value!r}")
        return value

    @field_validator("expected_issuer", "expected_audience")
    @classmethod
    def _require_non_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("must not be empty")
        return value

    def with_metadata(self, metadata: ProviderMetadata) -> SsoConfig:
        """検出したプロバイダーメタデータでエンドポイントと issuer を差し替えた設定を返す。"""
        try:
            return SsoConfig.model_validate(
                {
                    **self.model_dump(),
                    "authorize_url": metadata.authorization_endpoint,
                    "token_url": metadata.token_endpoint,
                    "jwks_uri": metadata.jwks_uri,
                    "expected_issuer": metadata.issuer,
                }
            )
        except ValidationError as e:
            raise ConfigurationError(f"Provider metadata rejected: {e}", cause=e) from e


def _read_yaml(path: Path) -> dict[str, Any]:
    """YAML ファイルを読み込む。"""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Failed to read config file: {path}", cause=e) from e
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML: {path}", cause=e) from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config root must be a mapping: {path}")
    return data


def load_config(path: Path) -> SsoConfig:
    """YAML 設定ファイルを読み込んで SsoConfig を返す。

    トップレベルに ``sso:`` セクションがあればその中身を、なければファイル全体を使う。
    """
    data = _read_yaml(path)
    section = data.get("sso", data)
    if not isinstance(section, dict):
        raise ConfigurationError(f"'sso' section must be a mapping: {path}")
    try:
        return SsoConfig.model_validate(section)
    except ValidationError as e:
        raise ConfigurationError(f"Config validation failed: {e}", cause=e) from e
