"""Editing the rollapp's dymint, app and node TOML configuration files."""

from __future__ import annotations

import os
from collections.abc import MutableMapping
from pathlib import Path
from typing import Any

import tomlkit
from tomlkit import TOMLDocument

from roller.chain import (
    DA_CELESTIA,
    DA_LOCAL,
    HUB_DENOM,
    HUB_KEYS_DIR,
    HUB_SEQUENCER_KEY,
    MOCK_HUB_ID,
    RollappConfig,
    rollapp_home,
)


def sequencer_config_dir(home: str | os.PathLike[str]) -> Path:
    """Return the rollapp node's configuration directory."""
    return rollapp_home(home) / "config"


def dymint_file_path(home: str | os.PathLike[str]) -> Path:
    """Return the path of the dymint configuration file."""
    return sequencer_config_dir(home) / "dymint.toml"


def get_port_from_address(addr: str) -> str:
    """Return the part of an address after its last colon."""
    return addr.rsplit(":", 1)[-1]


def load_toml(path: str | os.PathLike[str]) -> TOMLDocument:
    """Parse a TOML file, keeping its layout and comments."""
    return tomlkit.parse(Path(path).read_text(encoding="utf-8"))


def write_toml(doc: TOMLDocument, path: str | os.PathLike[str]) -> None:
    """Write a TOML document to ``path``."""
    Path(path).write_text(tomlkit.dumps(doc), encoding="utf-8")


def _plain(value: Any) -> Any:
    unwrap = getattr(value, "unwrap", None)
    return unwrap() if callable(unwrap) else value


def set_value(doc: MutableMapping[str, Any], dotted_key: str, value: Any) -> None:
    """Set a value by dotted key, creating missing tables on the way."""
    *parents, last = dotted_key.split(".")
    current: Any = doc
    for part in parents:
        child = current.get(part)
        if child is None:
            child = tomlkit.table()
            current[part] = child
        elif not isinstance(child, MutableMapping):
            raise TypeError(f"cannot descend into {part!r} of {dotted_key!r}: not a table")
        current = child
    current[last] = value


def get_value(doc: MutableMapping[str, Any], dotted_key: str) -> Any:
    """Return the plain value at a dotted key, or None when it is absent."""
    current: Any = doc
    for part in dotted_key.split("."):
        if not isinstance(current, MutableMapping) or part not in current:
            return None
        current = current[part]
    return _plain(current)


def _update_da_config(rlp_cfg: RollappConfig, dymint_cfg: TOMLDocument) -> None:
    set_value(dymint_cfg, "da_layer", "mock")
    if rlp_cfg.da.backend == DA_CELESTIA:
        set_value(dymint_cfg, "namespace_id", rlp_cfg.da.namespace_id)
    if rlp_cfg.da.backend == DA_LOCAL:
        set_value(dymint_cfg, "da_layer", "mock")


def set_default_dymint_config(rlp_cfg: RollappConfig) -> None:
    """Write the default dymint settings for this rollapp."""
    path = dymint_file_path(rlp_cfg.home)
    dymint_cfg = load_toml(path)
    _update_da_config(rlp_cfg, dymint_cfg)

    hub_keys_dir = Path(rlp_cfg.home) / HUB_KEYS_DIR
    settlement = "mock" if rlp_cfg.hub_data.id == MOCK_HUB_ID else "dymension"
    settings: list[tuple[str, Any]] = [
        ("max_idle_time", "1h0m0s"),
        ("max_proof_time", "10s"),
        ("settlement_layer", settlement),
        ("block_batch_size", "500"),
        ("block_time", "0.2s"),
        ("empty_blocks_max_time", "3600s"),
        ("rollapp_id", rlp_cfg.rollapp_id),
        ("settlement_node_address", rlp_cfg.hub_data.rpc_url),
        ("dym_account_name", HUB_SEQUENCER_KEY),
        ("keyring_home_dir", str(hub_keys_dir)),
        ("gas_prices", rlp_cfg.hub_data.gas_price + HUB_DENOM),
        ("instrumentation.prometheus", True),
        ("instrumentation.prometheus_listen_addr", ":2112"),
        ("batch_submit_max_time", "1h0m0s"),
    ]
    for key, value in settings:
        set_value(dymint_cfg, key, value)
    write_toml(dymint_cfg, path)


def update_dymint_da_config(rlp_cfg: RollappConfig) -> None:
    """Refresh only the data availability settings in the dymint file."""
    path = dymint_file_path(rlp_cfg.home)
    dymint_cfg = load_toml(path)
    _update_da_config(rlp_cfg, dymint_cfg)
    write_toml(dymint_cfg, path)


def set_app_config(rlp_cfg: RollappConfig) -> None:
    """Write gas, API and JSON-RPC settings into the node's app.toml."""
    path = sequencer_config_dir(rlp_cfg.home) / "app.toml"
    app_cfg = load_toml(path)
    set_value(app_cfg, "minimum-gas-prices", "2000000000" + rlp_cfg.base_denom)
    set_value(app_cfg, "gas-adjustment", 1.3)
    set_value(app_cfg, "api.enable", True)
    set_value(app_cfg, "api.enabled-unsafe-cors", True)
    if get_value(app_cfg, "json-rpc") is not None:
        set_value(app_cfg, "json-rpc.address", "0.0.0.0:8545")
        set_value(app_cfg, "json-rpc.ws-address", "0.0.0.0:8546")
    write_toml(app_cfg, path)


def set_tm_config(rlp_cfg: RollappConfig) -> None:
    """Write RPC and logging settings into the node's config.toml."""
    path = sequencer_config_dir(rlp_cfg.home) / "config.toml"
    tm_cfg = load_toml(path)
    set_value(tm_cfg, "rpc.laddr", "tcp://0.0.0.0:26657")
    set_value(tm_cfg, "rpc.timeout_broadcast_tx_commit", "30s")
    set_value(tm_cfg, "rpc.max_subscriptions_per_client", "10")
    set_value(tm_cfg, "log_level", "debug")
    set_value(tm_cfg, "rpc.cors_allowed_origins", ["*"])
    write_toml(tm_cfg, path)