"""The rollapp sequencer node: its commands, ports, health and status."""

from __future__ import annotations

import json
import logging
import threading
import time
import urllib.error
import urllib.request
from typing import Any, Protocol

from roller.chain import (
    DYMENSION_EXECUTABLE,
    ROLLAPP_EVM_EXECUTABLE,
    ROLLAPP_SEQUENCER_KEY,
    RollappConfig,
    rollapp_home,
)
from roller.relayer import CommandError, run_command
from roller.sequencer_config import (
    get_port_from_address,
    get_value,
    load_toml,
    sequencer_config_dir,
)

_log = logging.getLogger(__name__)


class SequencerError(RuntimeError):
    """The sequencer could not be reached or reported a problem."""


def _format(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _get_json(url: str) -> Any:
    try:
        with urllib.request.urlopen(url, timeout=10) as response:
            body = response.read()
    except urllib.error.HTTPError as exc:
        body = exc.read()
    except OSError as exc:
        raise SequencerError(f"failed to reach {url}: {exc}") from exc
    return json.loads(body)


def _section(data: Any, key: str) -> dict[str, Any]:
    value = data.get(key) if isinstance(data, dict) else None
    return value if isinstance(value, dict) else {}


class Sequencer:
    """The local sequencer node of one rollapp."""

    def __init__(self, rlp_cfg: RollappConfig) -> None:
        self.rlp_cfg = rlp_cfg
        self.rpc_port = ""
        self.api_port = ""
        self.json_rpc_port = ""
        self.logger = logging.getLogger(__name__)

    def read_ports(self) -> None:
        """Read the RPC, API and JSON-RPC ports from the node's configuration."""
        self.rpc_port = get_port_from_address(self.get_config_value("rpc.laddr"))
        app_cfg = load_toml(sequencer_config_dir(self.rlp_cfg.home) / "app.toml")
        json_rpc_addr = get_value(app_cfg, "json-rpc.address")
        api_addr = get_value(app_cfg, "api.address")
        self.json_rpc_port = "" if json_rpc_addr is None else get_port_from_address(_format(json_rpc_addr))
        self.api_port = "" if api_addr is None else get_port_from_address(_format(api_addr))

    def get_config_value(self, key: str) -> str:
        """Return a value from the node's config.toml as text."""
        doc = load_toml(sequencer_config_dir(self.rlp_cfg.home) / "config.toml")
        value = get_value(doc, key)
        if value is None:
            raise SequencerError(f"failed to get value for key: {key}")
        return _format(value)

    def get_rpc_endpoint(self) -> str:
        """Return the URL of the node's RPC endpoint."""
        return "http://localhost:" + self.rpc_port

    def get_local_endpoint(self, port: str) -> str:
        """Return a localhost URL for ``port``."""
        return "http://localhost:" + port

    def get_send_cmd(self, dest_address: str) -> list[str]:
        """Command that sends one base unit from the sequencer key to ``dest_address``."""
        config_dir = str(rollapp_home(self.rlp_cfg.home))
        return [
            self.rlp_cfg.rollapp_binary,
            "tx", "bank", "send",
            ROLLAPP_SEQUENCER_KEY, dest_address, "1" + self.rlp_cfg.denom,
            "--home", config_dir,
            "--broadcast-mode", "block",
            "--keyring-backend", "test",
            "--yes",
        ]

    def get_start_cmd(self, log_level: str) -> list[str]:
        """Command that starts the rollapp node."""
        config_dir = rollapp_home(self.rlp_cfg.home)
        return [
            ROLLAPP_EVM_EXECUTABLE,
            "start",
            "--home", str(config_dir),
            "--log-file", str(config_dir / "rollapp.log"),
            "--log_level", log_level,
        ]

    def get_rollapp_height(self) -> str:
        """Return the latest block height reported by the running node."""
        response = _get_json(f"{self.get_rpc_endpoint()}/status")
        result = _section(response, "result")
        network = _section(result, "node_info").get("network", "")
        if network != self.rlp_cfg.rollapp_id:
            raise SequencerError(
                "wrong sequencer is running on the machine. "
                f"Expected network ID {self.rlp_cfg.rollapp_id}, got {network}"
            )
        return str(_section(result, "sync_info").get("latest_block_height", ""))

    def get_hub_height(self) -> str:
        """Return the last rollapp height the hub has a state update for."""
        hub = self.rlp_cfg.hub_data
        output = run_command(
            [
                DYMENSION_EXECUTABLE,
                "q", "rollapp", "state", self.rlp_cfg.rollapp_id,
                "--output", "json",
                "--node", hub.rpc_url,
                "--chain-id", hub.id,
            ]
        )
        state = _section(json.loads(output), "stateInfo")
        try:
            start_height = int(state.get("startHeight", ""))
        except (TypeError, ValueError) as exc:
            raise ValueError(f"unable to convert start height to int: {exc}") from exc
        try:
            num_blocks = int(state.get("numBlocks", ""))
        except (TypeError, ValueError) as exc:
            raise ValueError(f"unable to convert num blocks to int: {exc}") from exc
        return str(start_height + num_blocks - 1)

    def get_sequencer_health(self) -> None:
        """Raise SequencerError unless the node reports itself healthy."""
        response = _get_json(f"{self.get_local_endpoint(self.rpc_port)}/health")
        result = _section(response, "result")
        if not result.get("isHealthy", False):
            raise SequencerError(str(result.get("error", "")))

    def get_sequencer_status(self) -> str:
        """Describe the node's state and its height on the rollapp and the hub."""
        try:
            rol_height = self.get_rollapp_height()
        except SequencerError as exc:
            self.logger.info("%s", exc)
            return "Stopped, Restarting..."
        except ValueError as exc:
            self.logger.info("%s", exc)
            rol_height = "-2"

        try:
            self.get_sequencer_health()
        except (SequencerError, ValueError) as exc:
            return f"\nstatus: Unhealthy\nerror: {exc}\n"

        try:
            hub_height = self.get_hub_height()
        except (CommandError, ValueError) as exc:
            self.logger.info("%s", exc)
            try:
                self.read_ports()
            except (OSError, ValueError, SequencerError) as port_exc:
                print("failed to retrieve ports: ", port_exc)
            return f"RollApp\nstatus: Healthy\nheight: {rol_height}\n"

        return f"RollApp:\nstatus: Healthy\nheight: {rol_height}\n\nHub:\nheight: {hub_height}"


_instance: Sequencer | None = None
_instance_lock = threading.Lock()


def get_instance(rlp_cfg: RollappConfig) -> Sequencer:
    """Return the process-wide sequencer, creating it on first use."""
    global _instance
    with _instance_lock:
        if _instance is None:
            seq = Sequencer(rlp_cfg)
            seq.read_ports()
            _instance = seq
        return _instance


class _HeightSource(Protocol):
    def get_rollapp_height(self) -> str: ...


def wait_for_valid_rollapp_height(
    seq: _HeightSource, timeout: float = 20.0, interval: float = 2.0
) -> None:
    """Wait until the rollapp reaches height 1, raising TimeoutError otherwise."""
    message = "timeout waiting for rollapp height to reach 1"
    deadline = time.monotonic() + timeout
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TimeoutError(message)
        if remaining < interval:
            time.sleep(remaining)
            raise TimeoutError(message)
        time.sleep(interval)
        try:
            height_text = seq.get_rollapp_height()
        except (SequencerError, OSError, ValueError) as exc:
            _log.info("getting rollapp height, %s", exc)
            continue
        try:
            height = int(height_text)
        except ValueError as exc:
            _log.info("converting rollapp height to int, %s", exc)
            continue
        if height >= 1:
            return