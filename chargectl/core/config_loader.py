"""Config loading and validation for the YAML accessory configuration."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import asdict
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from chargectl.core.errors import ConfigLoadError, ConfigValidationError
from chargectl.core.model import AccessoryConfig, Timings

_MAC_RE = re.compile(r"^([0-9A-Fa-f]{2}[:-]){5}[0-9A-Fa-f]{2}$")
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

# Only literal true/false count as booleans; "on", "yes" and friends stay strings.
for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


def _load_schema_validator() -> Any:
    schema_text = resources.files("chargectl.schemas").joinpath("config.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def default_config_path() -> Path:
    override = os.environ.get("CHARGECTL_CONFIG")
    if override:
        return Path(override)
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "chargectl/config.yaml"


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigValidationError(f"Config file {path} must contain a mapping at root")
    return loaded


def normalize_address(value: str) -> str:
    """Validate a 6-octet MAC address and return it upper-case and colon-separated."""
    stripped = value.strip()
    if not _MAC_RE.match(stripped):
        raise ConfigValidationError(
            f"Invalid address '{value}': expected six hex octets separated by ':' or '-'"
        )
    return stripped.upper().replace("-", ":")


def _normalize_bool(value: Any, *, context: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise ConfigValidationError(f"{context} must be boolean true/false")


def build_config(doc: dict[str, Any], source: Path | str = "<config>") -> AccessoryConfig:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    low = int(doc.get("low_threshold", 20))
    high = int(doc.get("high_threshold", 80))
    if low >= high:
        raise ConfigValidationError(
            f"low_threshold ({low}) must be lower than high_threshold ({high}) in {source}"
        )

    defaults = Timings()
    raw_timings = doc.get("timings", {})
    timings = Timings(
        scan_timeout_s=float(raw_timings.get("scan_timeout_s", defaults.scan_timeout_s)),
        connect_timeout_s=float(raw_timings.get("connect_timeout_s", defaults.connect_timeout_s)),
        discovery_timeout_s=float(raw_timings.get("discovery_timeout_s", defaults.discovery_timeout_s)),
        write_timeout_s=float(raw_timings.get("write_timeout_s", defaults.write_timeout_s)),
        retry_delay_s=float(raw_timings.get("retry_delay_s", defaults.retry_delay_s)),
        max_retries=int(raw_timings.get("max_retries", defaults.max_retries)),
        pair_grace_s=float(raw_timings.get("pair_grace_s", defaults.pair_grace_s)),
    )

    reassert = doc.get("reassert_interval_s")
    return AccessoryConfig(
        address=normalize_address(doc["address"]),
        low_threshold=low,
        high_threshold=high,
        timings=timings,
        pair=_normalize_bool(doc.get("pair", True), context="pair"),
        assume_paired=_normalize_bool(doc.get("assume_paired", False), context="assume_paired"),
        reassert_interval_s=float(reassert) if reassert is not None else None,
        poll_interval_s=float(doc.get("poll_interval_s", 60.0)),
    )


def read_config(path: Path | None = None) -> AccessoryConfig | None:
    """Load the accessory config, returning None when no file exists yet."""
    config_path = path or default_config_path()
    if not config_path.exists():
        LOGGER.debug("No config file at %s", config_path)
        return None
    return build_config(_read_yaml(config_path), config_path)


def write_config(config: AccessoryConfig, path: Path | None = None) -> Path:
    config_path = path or default_config_path()
    doc = asdict(config)
    if doc["reassert_interval_s"] is None:
        del doc["reassert_interval_s"]
    # Round-trip through validation so a bad config never lands on disk.
    build_config(doc, config_path)
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(yaml.safe_dump(doc, sort_keys=False), encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(f"Could not write config file {config_path}: {exc}") from exc
    return config_path
