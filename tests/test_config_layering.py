"""Tests for configuration layering."""

from __future__ import annotations

from pathlib import Path

from neo_core.config_layering import (
    load_layered_config,
    _deep_merge,
    _extract_env_overrides,
    _parse_env_value,
)


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.toml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_layered_config_file_only(tmp_path: Path) -> None:
    path = _write(tmp_path, '[beacon]\ncallsign = "FILE"\n')

    result = load_layered_config(path)

    assert result == {"beacon": {"callsign": "FILE"}}


def test_env_overrides_file(tmp_path: Path, monkeypatch) -> None:
    path = _write(tmp_path, '[beacon]\ncallsign = "FILE"\nnote = "kept"\n')
    monkeypatch.setenv("NEO_APRS_BEACON__CALLSIGN", "ENV")

    result = load_layered_config(path)

    assert result == {"beacon": {"callsign": "ENV", "note": "kept"}}


def test_cli_overrides_all(tmp_path: Path, monkeypatch) -> None:
    path = _write(tmp_path, '[beacon]\ncallsign = "FILE"\n')
    monkeypatch.setenv("NEO_APRS_BEACON__CALLSIGN", "ENV")

    result = load_layered_config(path, cli_overrides={"beacon": {"callsign": "CLI"}})

    assert result == {"beacon": {"callsign": "CLI"}}


def test_missing_file_yields_overrides_only(tmp_path: Path) -> None:
    result = load_layered_config(tmp_path / "absent.toml", cli_overrides={"mqtt": {"port": 1}})
    assert result == {"mqtt": {"port": 1}}


def test_connections_array_is_replaced_not_merged(tmp_path: Path) -> None:
    path = _write(tmp_path, '[[connections]]\nhost = "a"\nport = 1\n')

    result = load_layered_config(path, cli_overrides={"connections": [{"host": "b", "port": 2}]})

    assert result["connections"] == [{"host": "b", "port": 2}]


def test_deep_merge_replaces_scalars() -> None:
    base = {"a": 1, "b": 2}
    override = {"b": 3, "c": 4}
    result = _deep_merge(base, override)
    assert result == {"a": 1, "b": 3, "c": 4}


def test_deep_merge_merges_nested_dicts() -> None:
    base = {"section": {"key1": "v1", "key2": "v2"}}
    override = {"section": {"key2": "v2_override", "key3": "v3"}}
    result = _deep_merge(base, override)
    assert result == {"section": {"key1": "v1", "key2": "v2_override", "key3": "v3"}}
    assert base == {"section": {"key1": "v1", "key2": "v2"}}


def test_extract_env_overrides_skips_reserved(monkeypatch) -> None:
    monkeypatch.setenv("NEO_APRS_CONFIG_PATH", "/tmp/x.toml")
    monkeypatch.setenv("NEO_APRS_LOG_LEVEL", "debug")
    monkeypatch.setenv("NEO_APRS_MQTT__HOST", "broker")
    monkeypatch.setenv("NEO_APRS_VERSION", "1")

    overrides = _extract_env_overrides()

    assert overrides["mqtt"] == {"host": "broker"}
    assert overrides["version"] == 1
    assert "config_path" not in overrides
    assert "log_level" not in overrides


def test_parse_env_value_types() -> None:
    assert _parse_env_value("true") is True
    assert _parse_env_value("FALSE") is False
    assert _parse_env_value("42") == 42
    assert _parse_env_value("1.5") == 1.5
    assert _parse_env_value("N0CALL") == "N0CALL"
