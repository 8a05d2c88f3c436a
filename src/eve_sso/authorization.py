"""ログインリダイレクト URL の組み立て（ネットワーク I/O なし）"""

from __future__ import annotations

from collections.abc import Iterable
from urllib.parse import quote, urlencode

from .config import DEFAULT_AUTHORIZE_URL
from .exceptions import ConfigurationError
from .models import LoginRequest
from .pkce import CODE_CHALLENGE_METHOD
from .state import generate_state


class AuthorizationURLBuilder:
    """authorize エンドポイントへのリダイレクト URL を組み立てる。"""

    def __init__(self, authorize_url: str = DEFAULT_AUTHORIZE_URL) -> None:
        if not authorize_url:
            raise ConfigurationError("authorize_url must not be empty")
        self._authorize_url = authorize_url

    def build(self, request: LoginRequest) -> str:
        """LoginRequest から authorize URL を返す。

        Raises:
            ConfigurationError: client_id / redirect_uri / state が空、または scopes が空の場合
        """
        if not request.client_id:
            raise ConfigurationError("client_id must not be empty")
        if not request.redirect_uri:
            raise ConfigurationError("redirect_uri must not be empty")
        if not request.state:
            raise ConfigurationError("state must not be empty")
        if isinstance(request.scopes, str):
            raise ConfigurationError("scopes must be a sequence of scope names, not a string")
        scopes = [s for s in request.scopes if s]
        if not scopes:
            raise ConfigurationError("at least one scope is required")

        params = {
            "response_type": "code",
            "client_id": request.client_id,
            "redirect_uri": request.redirect_uri,
            "scope": " ".join(scopes),
            "state": request.state,
        }
        if request.code_challenge:
            params["code_challenge"] = request.code_challenge
            params["code_challenge_method"] = CODE_CHALLENGE_METHOD
        # quote_via=quote でスペースを "+" ではなく "%20" にする
        return f"{self._authorize_url}?{urlencode(params, quote_via=quote)}"


def create_login_url(
    client_id: str,
    redirect_uri: str,
    scopes: Iterable[str],
    authorize_url: str = DEFAULT_AUTHORIZE_URL,
    code_challenge: str | None = None,
) -> tuple[str, str]:
    """新しい state を生成し、(login_url, state) を返す。

    state は呼び出し側がセッションに保存し、コールバック時に
    :func:`eve_sso.state.states_match` で比較してからコード交換に進むこと。
    """
    if isinstance(scopes, str):
        raise ConfigurationError("scopes must be a sequence of scope names, not a string")
    state = generate_state()
    request = LoginRequest(
        client_id=client_id,
        redirect_uri=redirect_uri,
        scopes=tuple(scopes),
        state=state,
        code_challenge=code_challenge,
    )
    return AuthorizationURLBuilder(authorize_url).build(request), state
