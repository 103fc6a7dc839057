"""Tests for environment helpers."""

import logging

import pytest

from authlite.utils.environment import env_flag, env_float, env_str


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("true", True), ("1", True), ("YES", True), (" on ", True), ("false", False), ("0", False)],
)
def test_env_flag_values(monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool) -> None:
    monkeypatch.setenv("AUTHLITE_TEST_FLAG", raw)
    assert env_flag("AUTHLITE_TEST_FLAG", default=not expected) is expected


def test_env_flag_unset_uses_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("AUTHLITE_TEST_FLAG", raising=False)
    assert env_flag("AUTHLITE_TEST_FLAG") is False
    assert env_flag("AUTHLITE_TEST_FLAG", default=True) is True


def test_env_flag_unrecognised_is_logged(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    monkeypatch.setenv("AUTHLITE_TEST_FLAG", "maybe")
    with caplog.at_level(logging.WARNING, logger="authlite.utils.environment"):
        assert env_flag("AUTHLITE_TEST_FLAG", default=True) is True
    assert "AUTHLITE_TEST_FLAG" in caplog.text


def test_env_str_blank_is_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTHLITE_TEST_STR", "   ")
    assert env_str("AUTHLITE_TEST_STR", "fallback") == "fallback"


def test_env_float(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTHLITE_TEST_FLOAT", "3")
    assert env_float("AUTHLITE_TEST_FLOAT", 1.0) == 3.0
