from __future__ import annotations

from pathlib import Path

import pytest

from chargectl.core.config_loader import default_config_path, normalize_address, read_config, write_config
from chargectl.core.errors import ConfigValidationError
from chargectl.core.model import AccessoryConfig, Timings


def _write_config(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def test_load_full_config(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path / "config.yaml",
        """
address: "aa-bb-cc-11-22-33"
low_threshold: 25
high_threshold: 75
pair: false
assume_paired: "true"
reassert_interval_s: 1800
timings:
  scan_timeout_s: 20
  max_retries: 5
""",
    )

    config = read_config(path)
    assert config is not None
    assert config.address == "AA:BB:CC:11:22:33"
    assert (config.low_threshold, config.high_threshold) == (25, 75)
    assert config.pair is False
    assert config.assume_paired is True
    assert config.reassert_interval_s == 1800.0
    assert config.timings.scan_timeout_s == 20.0
    assert config.timings.max_retries == 5
    assert config.timings.connect_timeout_s == Timings().connect_timeout_s


def test_defaults_applied(tmp_path: Path) -> None:
    path = _write_config(tmp_path / "config.yaml", 'address: "AA:BB:CC:11:22:33"\n')

    config = read_config(path)
    assert config == AccessoryConfig(address="AA:BB:CC:11:22:33")


def test_missing_file_returns_none(tmp_path: Path) -> None:
    assert read_config(tmp_path / "absent.yaml") is None


@pytest.mark.parametrize(
    "content",
    [
        'address: "AA:BB:CC:11:22"\n',
        'address: "GG:BB:CC:11:22:33"\n',
        'address: "AA:BB:CC:11:22:33"\nlow_threshold: 80\nhigh_threshold: 20\n',
        'address: "AA:BB:CC:11:22:33"\nlow_threshold: 50\nhigh_threshold: 50\n',
        'address: "AA:BB:CC:11:22:33"\nhigh_threshold: 120\n',
        'address: "AA:BB:CC:11:22:33"\npair: yes\n',
        'address: "AA:BB:CC:11:22:33"\ncolour: blue\n',
        "low_threshold: 20\n",
        "- not\n- a mapping\n",
    ],
)
def test_invalid_config_rejected(tmp_path: Path, content: str) -> None:
    path = _write_config(tmp_path / "config.yaml", content)

    with pytest.raises(ConfigValidationError):
        read_config(path)


def test_duplicate_yaml_keys_rejected(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path / "config.yaml",
        """
address: "AA:BB:CC:11:22:33"
low_threshold: 20
low_threshold: 30
""",
    )

    with pytest.raises(ConfigValidationError):
        read_config(path)


def test_written_config_reloads(tmp_path: Path) -> None:
    config = AccessoryConfig(address="11:22:33:44:55:00", low_threshold=30, high_threshold=90, pair=False)
    path = write_config(config, tmp_path / "nested" / "config.yaml")

    assert read_config(path) == config


def test_invalid_config_never_written(tmp_path: Path) -> None:
    config = AccessoryConfig(address="AA:BB:CC:11:22:33", low_threshold=90, high_threshold=10)
    path = tmp_path / "config.yaml"

    with pytest.raises(ConfigValidationError):
        write_config(config, path)
    assert not path.exists()


def test_config_path_follows_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("CHARGECTL_CONFIG", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    assert default_config_path() == tmp_path / "cfg" / "chargectl" / "config.yaml"

    monkeypatch.setenv("CHARGECTL_CONFIG", str(tmp_path / "other.yaml"))
    assert default_config_path() == tmp_path / "other.yaml"


def test_normalize_address() -> None:
    assert normalize_address(" aa:bb:cc:dd:ee:ff ") == "AA:BB:CC:DD:EE:FF"
    with pytest.raises(ConfigValidationError):
        normalize_address("AABBCCDDEEFF")
