"""The IBC relayer between the hub and a rollapp: its commands, status and channel setup."""

from __future__ import annotations

import logging
import os
import subprocess
import time
from collections.abc import Sequence
from pathlib import Path

from roller.chain import (
    DEFAULT_RELAYER_PATH,
    DYMENSION_EXECUTABLE,
    RELAYER_EXECUTABLE,
    ROLLAPP_EVM_EXECUTABLE,
    HubData,
    RollappConfig,
    RollappData,
    relayer_home,
)
from roller.ibc import (
    STATE_OPEN,
    ConnectionChannels,
    ConnectionInfo,
    find_open_channel,
    parse_channels,
    parse_connections,
)
from roller.nested import KeyNotFoundError, get_nested_value
from roller.relayer_config import read_rly_config

_CLIENT_SETTLE_SECONDS = 10
_CONNECTION_SETTLE_SECONDS = 15


class CommandError(RuntimeError):
    """An external command could not be started or exited with an error."""

    def __init__(self, argv: Sequence[str], returncode: int | None, stderr: str) -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        command = " ".join(self.argv)
        if returncode is None:
            message = f"failed to run {command}: {stderr}"
        else:
            message = f"{command} exited with status {returncode}: {stderr.strip()}"
        super().__init__(message)


def run_command(argv: Sequence[str]) -> str:
    """Run a command and return what it wrote to standard output."""
    args = list(argv)
    try:
        result = subprocess.run(args, capture_output=True, text=True, check=False)
    except OSError as exc:
        raise CommandError(args, None, str(exc)) from exc
    if result.returncode != 0:
        raise CommandError(args, result.returncode, result.stderr or "")
    return result.stdout or ""


def _run_logged(argv: Sequence[str], log_file: str | os.PathLike[str] | None) -> None:
    """Run a command, sending its output to ``log_file`` when one is given."""
    if log_file is None:
        run_command(argv)
        return
    args = list(argv)
    with open(log_file, "a", encoding="utf-8") as log:
        try:
            result = subprocess.run(args, stdout=log, stderr=subprocess.STDOUT, check=False)
        except OSError as exc:
            raise CommandError(args, None, str(exc)) from exc
    if result.returncode != 0:
        raise CommandError(args, result.returncode, f"see {os.fspath(log_file)}")


class Relayer:
    """The relayer that links the hub with one rollapp."""

    def __init__(self, home: str | os.PathLike[str], rollapp_id: str, hub_id: str) -> None:
        self.home = os.fspath(home)
        self.rollapp_id = rollapp_id
        self.hub_id = hub_id
        self.src_channel = ""
        self.dst_channel = ""
        self.logger = logging.getLogger(__name__)

    # status

    def status_file_path(self) -> Path:
        """Return the path of the file holding the relayer's status text."""
        return relayer_home(self.home) / "relayer_status.txt"

    def channel_ready(self) -> bool:
        """Return whether both channel ends are known."""
        return bool(self.src_channel) and bool(self.dst_channel)

    def get_relayer_status(self, rlp_cfg: RollappConfig | None = None) -> str:
        """Describe the relayer's current state."""
        if self.channel_ready():
            return (
                f"Active Channels:\nrollapp: {self.src_channel}\n<->\nhub: {self.dst_channel}"
            )
        try:
            return self.status_file_path().read_text(encoding="utf-8")
        except FileNotFoundError:
            return "Starting..."
        except OSError:
            return ""

    def write_relayer_status(self, status: str) -> None:
        """Save the relayer's status text."""
        path = self.status_file_path()
        path.write_text(status, encoding="utf-8")
        os.chmod(path, 0o644)

    # relayer commands

    def _default_args(self) -> list[str]:
        return [DEFAULT_RELAYER_PATH, "--home", str(relayer_home(self.home))]

    def _args_with_src_channel(self) -> list[str]:
        return [DEFAULT_RELAYER_PATH, self.dst_channel, "--home", str(relayer_home(self.home))]

    def get_update_clients_cmd(self) -> list[str]:
        """Command that updates both light clients."""
        return [RELAYER_EXECUTABLE, "tx", "update-clients", *self._default_args()]

    def get_relay_acks_cmd(self) -> list[str]:
        """Command that relays pending acknowledgements."""
        return [RELAYER_EXECUTABLE, "tx", "relay-acks", *self._args_with_src_channel()]

    def get_relay_packets_cmd(self) -> list[str]:
        """Command that relays pending packets."""
        return [RELAYER_EXECUTABLE, "tx", "relay-packets", *self._args_with_src_channel()]

    def get_start_cmd(self) -> list[str]:
        """Command that starts the relayer process."""
        return [
            RELAYER_EXECUTABLE,
            "start",
            "--max-msgs",
            "100",
            "--time-threshold",
            "2h",
            "--no-flush",
            "--log-format",
            "json",
            *self._default_args(),
        ]

    def get_create_clients_cmd(self, override: bool) -> list[str]:
        """Command that creates the light clients."""
        args = [RELAYER_EXECUTABLE, "tx", "clients", *self._default_args(), "--log-level", "debug"]
        if override:
            args.append("--override")
        return args

    def get_create_connection_cmd(self, override: bool) -> list[str]:
        """Command that opens a connection."""
        args = [RELAYER_EXECUTABLE, "tx", "connection", "--max-clock-drift", "70m"]
        if override:
            args.append("--override")
        return [*args, *self._default_args()]

    def get_tx_link_cmd(self, override: bool) -> list[str]:
        """Command that creates clients, connection and channel in one go."""
        args = [
            RELAYER_EXECUTABLE,
            "tx",
            "link",
            DEFAULT_RELAYER_PATH,
            "--src-port",
            "transfer",
            "--dst-port",
            "transfer",
            "--version",
            "ics20-1",
            "--max-clock-drift",
            "70m",
        ]
        if override:
            args.append("--override")
        return [*args, *self._default_args()]

    def get_create_channel_cmd(self, override: bool) -> list[str]:
        """Command that opens a channel."""
        args = [RELAYER_EXECUTABLE, "tx", "channel", "--timeout", "60s", "--debug"]
        if override:
            args.append("--override")
        return [*args, *self._default_args()]

    # chain queries

    def _query_connection_rollapp_cmd(self, ra_data: RollappData) -> list[str]:
        return [
            ROLLAPP_EVM_EXECUTABLE,
            "q", "ibc", "connection", "connections",
            "--node", ra_data.rpc_url,
            "--chain-id", ra_data.id,
            "-o", "json",
        ]

    def _query_connection_hub_cmd(self, hd: HubData) -> list[str]:
        return [
            DYMENSION_EXECUTABLE,
            "q", "ibc", "connection", "connections",
            "--chain-id", hd.id,
            "--node", hd.rpc_url,
            "-o", "json",
            "--limit", "100000",
        ]

    def _query_connections_hub_rly_cmd(self) -> list[str]:
        return [
            RELAYER_EXECUTABLE, "q", "connections", self.hub_id,
            "--home", str(relayer_home(self.home)),
        ]

    def _query_channels_rollapp_cmd(self, ra_data: RollappData) -> list[str]:
        return [
            ROLLAPP_EVM_EXECUTABLE,
            "q", "ibc", "channel", "channels",
            "--node", ra_data.rpc_url,
            "--chain-id", ra_data.id,
            "-o", "json",
        ]

    def _query_channels_hub_cmd(self, hd: HubData) -> list[str]:
        return [
            DYMENSION_EXECUTABLE,
            "q", "ibc", "channel", "channels",
            "--node", hd.rpc_url,
            "--chain-id", hd.id,
            "-o", "json",
            "--limit", "100000",
        ]

    # clients, connections, channels

    def check_clients_exist(self) -> bool:
        """Return whether the relayer path has client ids on both sides."""
        rly_cfg = read_rly_config(self.home)
        rollapp_client = get_nested_value(
            rly_cfg, ["paths", DEFAULT_RELAYER_PATH, "dst", "client-id"]
        )
        hub_client = get_nested_value(
            rly_cfg, ["paths", DEFAULT_RELAYER_PATH, "src", "client-id"]
        )
        if not rollapp_client or not hub_client:
            self.logger.info("can't find clients in the config for both rollapp and hub")
            return False
        return True

    def get_active_connections(
        self, ra_data: RollappData, hd: HubData
    ) -> tuple[ConnectionInfo | None, ConnectionInfo | None]:
        """Return the open rollapp connection and its hub counterpart, if any."""
        try:
            output = run_command(self._query_connection_rollapp_cmd(ra_data))
        except CommandError as exc:
            self.logger.info(
                "failed to find connection on the rollapp side for %s: %s", self.rollapp_id, exc
            )
            raise

        try:
            rollapp_connections = parse_connections(output).connections
        except ValueError as exc:
            self.logger.info("error while decoding JSON: %s", exc)
            rollapp_connections = []

        if not rollapp_connections:
            self.logger.info("no connections found on the rollapp side for %s", self.rollapp_id)
            return None, None

        rollapp_connection = rollapp_connections[0]
        if rollapp_connection.state != STATE_OPEN:
            return None, None
        hub_connection_id = rollapp_connection.counterparty.connection_id

        hub_output = run_command(self._query_connection_hub_cmd(hd))
        hub_connections = parse_connections(hub_output).connections
        hub_connection = next(
            (conn for conn in hub_connections if conn.id == hub_connection_id), None
        )
        if hub_connection is None:
            raise KeyNotFoundError(hub_connection_id)
        return rollapp_connection, hub_connection

    def get_active_connection_ids(self, ra_data: RollappData, hd: HubData) -> tuple[str, str]:
        """Return the ids of the open rollapp connection and its hub counterpart."""
        rollapp_connection, hub_connection = self.get_active_connections(ra_data, hd)
        if rollapp_connection is None or hub_connection is None:
            return "", ""
        return rollapp_connection.id, hub_connection.id

    def load_active_channel(self, ra_data: RollappData, hd: HubData) -> tuple[str, str]:
        """Find the open channels of the active connection and remember them."""
        try:
            ra_connection_id, hub_connection_id = self.get_active_connection_ids(ra_data, hd)
        except KeyNotFoundError as exc:
            self.logger.info("No active connection found. Key not found: %s", exc)
            return "", ""
        if not ra_connection_id:
            self.logger.info("no active connection found")
            return "", ""

        print("active connection found on the hub side: ", hub_connection_id)
        print("active connection found on the rollapp side: ", ra_connection_id)

        ra_channels = parse_channels(run_command(self._query_channels_rollapp_cmd(ra_data)))
        if not ra_channels.channels:
            return "", ""
        hub_channels = parse_channels(run_command(self._query_channels_hub_cmd(hd)))
        if not hub_channels.channels:
            return "", ""

        ra_channel = find_open_channel(ra_channels.channels, ra_connection_id)
        if ra_channel is None:
            raise LookupError(f"no open channel on rollapp connection {ra_connection_id}")
        hub_channel = find_open_channel(hub_channels.channels, hub_connection_id)
        if hub_channel is None:
            raise LookupError(f"no open channel on hub connection {hub_connection_id}")

        print("active channel found on the hub side: ", hub_channel.channel_id)
        print("active channel found on the rollapp side: ", ra_channel.channel_id)

        self.src_channel = hub_channel.channel_id
        self.dst_channel = ra_channel.channel_id
        return self.src_channel, self.dst_channel

    def create_ibc_channel(
        self,
        override: bool,
        log_file: str | os.PathLike[str] | None,
        ra_data: RollappData,
        hd: HubData,
    ) -> ConnectionChannels:
        """Open a connection when needed, then a channel, and return its two ends."""
        status = ""
        # Give freshly created clients time to settle before opening a connection.
        time.sleep(_CLIENT_SETTLE_SECONDS)

        connection_id, _ = self.get_active_connection_ids(ra_data, hd)
        if not connection_id or override:
            print("💈 Creating connection...")
            self.write_relayer_status(status)
            _run_logged(self.get_create_connection_cmd(override), log_file)

        time.sleep(_CONNECTION_SETTLE_SECONDS)
        print("💈 Creating channel (this may take a while)...")
        self.write_relayer_status(status)
        _run_logged(self.get_create_channel_cmd(True), log_file)

        print("💈 Validating channel established...")
        self.write_relayer_status(status)
        self.load_active_channel(ra_data, hd)
        if not self.channel_ready():
            raise RuntimeError("could not load channels")

        print(
            "💈 The relayer is running successfully on you local machine!\n"
            f"Channels:\nrollapp: {self.dst_channel}\n<->\nhub: {self.src_channel}"
        )
        self.write_relayer_status(status)
        return ConnectionChannels(src=self.src_channel, dst=self.dst_channel)