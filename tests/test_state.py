"""state 値生成のユニットテスト"""

import re

import pytest
from eve_sso.exceptions import ConfigurationError
from eve_sso.state import generate_state, states_match


def test_state_is_url_safe() -> None:
    """state が URL-safe 文字のみで構成されること。"""
    assert re.match(r"^[A-Za-z0-9\-_]+$", generate_state())


def test_state_has_at_least_16_bytes_of_entropy() -> None:
    """16 バイト以上のエントロピー（base64 で 22 文字以上）を持つこと。"""
    assert len(generate_state(16)) >= 22
    assert len(generate_state()) >= 43


def test_state_unique() -> None:
    """連続呼び出しで一意の値が生成されること。"""
    states = {generate_state() for _ in range(100)}
    assert len(states) == 100


def test_state_rejects_short_entropy() -> None:
    """16 バイト未満の指定は ConfigurationError になること。"""
    with pytest.raises(ConfigurationError):
        generate_state(8)


def test_states_match() -> None:
    """同じ値なら True、異なる・空なら False になること。"""
    state = generate_state()
    assert states_match(state, state) is True
    assert states_match(state, generate_state()) is False
    assert states_match(state, None) is False
    assert states_match("", "") is False
