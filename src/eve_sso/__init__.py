"""EVE Online SSO library."""

from .authorization import AuthorizationURLBuilder, create_login_url
from .client import SsoClient
from .config import SsoConfig, load_config
from .exceptions import (
    AlgorithmMismatchError,
    ConfigurationError,
    HttpStatusError,
    InvalidClaimsError,
    InvalidSignatureError,
    KeyFetchError,
    NetworkError,
    ParseError,
    SsoError,
    SsoErrorCodes,
    TokenExchangeError,
    UnknownKeyError,
)
from .jwks import KeySetCache, parse_key_set
from .logger import new_logger, redact_secrets
from .metadata import fetch_provider_metadata, fetch_provider_metadata_async
from .models import AccessToken, IdentityClaims, LoginRequest, ProviderMetadata, SigningKey
from .pkce import generate_code_challenge, generate_code_verifier
from .retry import RetryPolicy
from .state import generate_state, states_match
from .token_exchange import TokenExchangeClient
from .validator import JwtValidator

__all__ = [
    "SsoClient",
    "SsoConfig",
    "load_config",
    "AuthorizationURLBuilder",
    "create_login_url",
    "TokenExchangeClient",
    "KeySetCache",
    "parse_key_set",
    "JwtValidator",
    "fetch_provider_metadata",
    "fetch_provider_metadata_async",
    "LoginRequest",
    "AccessToken",
    "SigningKey",
    "IdentityClaims",
    "ProviderMetadata",
    "RetryPolicy",
    "generate_state",
    "states_match",
    "generate_code_verifier",
    "generate_code_challenge",
    "new_logger",
    "redact_secrets",
    "SsoError",
    "SsoErrorCodes",
    "ConfigurationError",
    "NetworkError",
    "HttpStatusError",
    "TokenExchangeError",
    "ParseError",
    "KeyFetchError",
    "UnknownKeyError",
    "AlgorithmMismatchError",
    "InvalidSignatureError",
    "InvalidClaimsError",
]
