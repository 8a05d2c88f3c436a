"""AuthorizationURLBuilder のユニットテスト"""

from urllib.parse import parse_qs, urlsplit

import pytest
from eve_sso.authorization import AuthorizationURLBuilder, create_login_url
from eve_sso.exceptions import ConfigurationError
from eve_sso.models import LoginRequest

REDIRECT_URI = "http://localhost:8000/callback"


def make_request(**overrides) -> LoginRequest:
    values = {
        "client_id": "my-client",
        "redirect_uri": REDIRECT_URI,
        "scopes": ("publicData", "esi-skills.read_skills.v1"),
        "state": "opaque-state",
    }
    values.update(overrides)
    return LoginRequest(**values)


def test_build_query_parameters() -> None:
    """必要なクエリパラメータがすべて含まれること。"""
    url = AuthorizationURLBuilder().build(make_request())
    parts = urlsplit(url)
    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == (
        "https://login.eveonline.com/v2/oauth/authorize"
    )
    query = parse_qs(parts.query)
    assert query == {
        "response_type": ["code"],
        "client_id": ["my-client"],
        "redirect_uri": [REDIRECT_URI],
        "scope": ["publicData esi-skills.read_skills.v1"],
        "state": ["opaque-state"],
    }


def test_scope_is_percent_encoded() -> None:
    """スコープ区切りのスペースが %20 でエンコードされること。"""
    url = AuthorizationURLBuilder().build(make_request())
    assert "scope=publicData%20esi-skills.read_skills.v1" in url
    assert "redirect_uri=http%3A%2F%2Flocalhost%3A8000%2Fcallback" in url


def test_build_with_code_challenge() -> None:
    """code_challenge 指定時に S256 パラメータが付与されること。"""
    url = AuthorizationURLBuilder().build(make_request(code_challenge="abc"))
    query = parse_qs(urlsplit(url).query)
    assert query["code_challenge"] == ["abc"]
    assert query["code_challenge_method"] == ["S256"]


@pytest.mark.parametrize(
    "overrides",
    [
        {"client_id": ""},
        {"state": ""},
        {"redirect_uri": ""},
        {"scopes": ()},
        {"scopes": ("",)},
    ],
)
def test_build_rejects_missing_values(overrides) -> None:
    """client_id / state / redirect_uri / scopes が空なら ConfigurationError になること。"""
    with pytest.raises(ConfigurationError):
        AuthorizationURLBuilder().build(make_request(**overrides))


def test_builder_uses_custom_endpoint() -> None:
    """指定した authorize エンドポイントが使われること。"""
    url = AuthorizationURLBuilder("https://sso.example.com/authorize").build(make_request())
    assert url.startswith("https://sso.example.com/authorize?")


def test_create_login_url_returns_fresh_state() -> None:
    """create_login_url が URL に埋め込んだ state を返し、毎回異なること。"""
    url1, state1 = create_login_url("my-client", REDIRECT_URI, ["publicData"])
    url2, state2 = create_login_url("my-client", REDIRECT_URI, ["publicData"])
    assert parse_qs(urlsplit(url1).query)["state"] == [state1]
    assert state1 != state2
    assert url1 != url2


def test_create_login_url_rejects_empty_client_id() -> None:
    """client_id が空の場合 ConfigurationError になること。"""
    with pytest.raises(ConfigurationError):
        create_login_url("", REDIRECT_URI, ["publicData"])


def test_create_login_url_rejects_plain_string_scopes() -> None:
    """scopes に文字列をそのまま渡すと文字単位に分割せず ConfigurationError になること。"""
    with pytest.raises(ConfigurationError):
        create_login_url("my-client", REDIRECT_URI, "publicData")


def test_build_rejects_plain_string_scopes() -> None:
    """LoginRequest.scopes が文字列の場合も ConfigurationError になること。"""
    with pytest.raises(ConfigurationError):
        AuthorizationURLBuilder().build(make_request(scopes="publicData"))
