"""Chain descriptions, shared names and the directory layout under the roller home."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

RELAYER_DIR = "relayer"
ROLLAPP_DIR = "rollapp"
HUB_KEYS_DIR = "hub-keys"

DEFAULT_RELAYER_PATH = "hub-rollapp"

RELAYER_EXECUTABLE = "rly"
DYMENSION_EXECUTABLE = "dymd"
ROLLAPP_EVM_EXECUTABLE = "rollappd"

HUB_DENOM = "adym"

HUB_RELAYER_KEY = "relayer-hub-key"
HUB_SEQUENCER_KEY = "hub_sequencer"
ROLLAPP_SEQUENCER_KEY = "rollapp_sequencer"

MOCK_HUB_ID = "mock"

DA_CELESTIA = "celestia"
DA_LOCAL = "local"


@dataclass
class HubData:
    """Identity and endpoint of the settlement hub."""

    id: str
    rpc_url: str
    gas_price: str = ""


@dataclass
class RollappData:
    """Identity and endpoint of a rollapp."""

    id: str
    rpc_url: str


@dataclass
class DAConfig:
    """Data availability settings of a rollapp."""

    backend: str = DA_LOCAL
    namespace_id: str = ""


@dataclass
class RollappConfig:
    """The roller configuration of one rollapp."""

    home: str
    rollapp_id: str
    hub_data: HubData
    da: DAConfig = field(default_factory=DAConfig)
    denom: str = ""
    base_denom: str = ""
    rollapp_binary: str = ROLLAPP_EVM_EXECUTABLE


def relayer_home(home: str | os.PathLike[str]) -> Path:
    """Return the relayer's home directory inside the roller home."""
    return Path(home) / RELAYER_DIR


def rollapp_home(home: str | os.PathLike[str]) -> Path:
    """Return the rollapp's home directory inside the roller home."""
    return Path(home) / ROLLAPP_DIR