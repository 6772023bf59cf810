"""Reading, writing and updating the relayer's YAML configuration."""

from __future__ import annotations

import os
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from roller.chain import (
    DEFAULT_RELAYER_PATH,
    RELAYER_EXECUTABLE,
    RollappConfig,
    relayer_home,
)
from roller.nested import set_nested_value


@dataclass
class ChainConfig:
    """Connection details of one chain known to the relayer."""

    id: str
    rpc: str
    denom: str
    address_prefix: str
    gas_prices: str


def _detach(value: Any) -> Any:
    """Rebuild nested containers so no two places share one object.

    Shared containers would otherwise be written as YAML anchors and aliases.
    """
    if isinstance(value, dict):
        return {key: _detach(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_detach(item) for item in value]
    return value


def rly_config_path(home_dir: str | os.PathLike[str]) -> Path:
    """Return the path of the relayer configuration file."""
    return relayer_home(home_dir) / "config" / "config.yaml"


def create_path(rlp_cfg: RollappConfig) -> None:
    """Create the relayer path between the hub and the rollapp."""
    print(f"creating new ibc path from {rlp_cfg.hub_data.id} to {rlp_cfg.rollapp_id}")
    subprocess.run(
        [
            RELAYER_EXECUTABLE,
            "paths",
            "new",
            rlp_cfg.hub_data.id,
            rlp_cfg.rollapp_id,
            DEFAULT_RELAYER_PATH,
            "--home",
            str(relayer_home(rlp_cfg.home)),
        ],
        check=True,
        capture_output=True,
    )


def read_rly_config(home_dir: str | os.PathLike[str]) -> dict[Any, Any]:
    """Load the relayer configuration as a dictionary."""
    path = rly_config_path(home_dir)
    text = path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValueError(f"failed to unmarshal yaml: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"failed to unmarshal yaml: {path} does not hold a mapping")
    return data


def write_rly_config(home_dir: str | os.PathLike[str], rly_cfg: dict[Any, Any]) -> None:
    """Write the relayer configuration back to its file."""
    path = rly_config_path(home_dir)
    text = yaml.safe_dump(_detach(rly_cfg), default_flow_style=False, sort_keys=True)
    path.write_text(text, encoding="utf-8")
    os.chmod(path, 0o644)


def update_rly_config_value(
    rlp_cfg: RollappConfig, key_path: Sequence[Any], new_value: Any
) -> None:
    """Set one value in the relayer configuration and save it."""
    rly_cfg = read_rly_config(rlp_cfg.home)
    set_nested_value(rly_cfg, key_path, new_value)
    write_rly_config(rlp_cfg.home, rly_cfg)