"""eve_sso ライブラリの例外型定義"""

from __future__ import annotations


class SsoError(Exception):
    """eve_sso ライブラリのエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class SsoErrorCodes:
    """SsoError のエラーコード定数。"""

    CONFIGURATION: str = "CONFIGURATION"
    NETWORK: str = "NETWORK"
    HTTP_STATUS: str = "HTTP_STATUS"
    TOKEN_EXCHANGE: str = "TOKEN_EXCHANGE"
    PARSE: str = "PARSE"
    KEY_FETCH: str = "KEY_FETCH"
    UNKNOWN_KEY: str = "UNKNOWN_KEY"
    ALGORITHM_MISMATCH: str = "ALGORITHM_MISMATCH"
    INVALID_SIGNATURE: str = "INVALID_SIGNATURE"
    INVALID_CLAIMS: str = "INVALID_CLAIMS"


class ConfigurationError(SsoError):
    """設定値またはビルダー入力が不正。"""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(SsoErrorCodes.CONFIGURATION, message, cause)


class NetworkError(SsoError):
    """接続断・タイムアウトなどのトランスポート障害（リトライ後）。"""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(SsoErrorCodes.NETWORK, message, cause)


class HttpStatusError(SsoError):
    """プロバイダーが 2xx 以外のステータスを返した。リトライしない。"""

    def __init__(
        self,
        status: int,
        body: str,
        message: str | None = None,
        code: str = SsoErrorCodes.HTTP_STATUS,
    ) -> None:
        super().__init__(code, message or f"HTTP {status}")
        self.status = status
        self.body = body


class TokenExchangeError(HttpStatusError):
    """トークンエンドポイントが 2xx 以外を返した。status と body をそのまま保持する。"""

    def __init__(self, status: int, body: str) -> None:
        super().__init__(
            status,
            body,
            message=f"Token endpoint returned HTTP {status}",
            code=SsoErrorCodes.TOKEN_EXCHANGE,
        )


class ParseError(SsoError):
    """JSON やトークン構造が不正。"""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(SsoErrorCodes.PARSE, message, cause)


class KeyFetchError(SsoError):
    """JWKS の取得またはパースに失敗した。古いキャッシュへのフォールバックはしない。"""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(SsoErrorCodes.KEY_FETCH, message, cause)


class UnknownKeyError(SsoError):
    """リフレッシュ後も key id が JWKS に存在しない。"""

    def __init__(self, key_id: str) -> None:
        super().__init__(SsoErrorCodes.UNKNOWN_KEY, f"Unknown signing key: {key_id!r}")
        self.key_id = key_id


class AlgorithmMismatchError(SsoError):
    """ヘッダーの alg が RS256 ではない。"""

    def __init__(self, algorithm: object) -> None:
        super().__init__(
            SsoErrorCodes.ALGORITHM_MISMATCH,
            f"Unsupported token algorithm: {algorithm!r}",
        )
        self.algorithm = algorithm


class InvalidSignatureError(SsoError):
    """RS256 署名の検証に失敗した。"""

    def __init__(self, cause: Exception | None = None) -> None:
        super().__init__(
            SsoErrorCodes.INVALID_SIGNATURE, "Token signature verification failed", cause
        )


class InvalidClaimsError(SsoError):
    """クレーム検証に失敗した。which は失敗したチェック名（"iss", "exp" など）。"""

    def __init__(self, which: str, message: str | None = None) -> None:
        super().__init__(
            SsoErrorCodes.INVALID_CLAIMS,
            message or f"Claim check failed: {which}",
        )
        self.which = which
