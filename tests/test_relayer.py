import json
import subprocess
from unittest import mock

import pytest
import yaml

from roller.chain import (
    DEFAULT_RELAYER_PATH,
    DYMENSION_EXECUTABLE,
    RELAYER_EXECUTABLE,
    ROLLAPP_EVM_EXECUTABLE,
    HubData,
    RollappData,
    relayer_home,
)
from roller.ibc import ConnectionChannels
from roller.nested import KeyNotFoundError
from roller.relayer import CommandError, Relayer, run_command

RA = RollappData(id="myrollapp_1-1", rpc_url="http://localhost:26657")
HUB = HubData(id="hub_1-1", rpc_url="http://hub.example.com:443")

RA_CONNECTIONS = {
    "connections": [
        {
            "id": "connection-0",
            "state": "STATE_OPEN",
            "client_id": "07-tendermint-0",
            "counterparty": {"connection_id": "connection-5", "client_id": "07-tendermint-9"},
        }
    ]
}
HUB_CONNECTIONS = {
    "connections": [
        {"id": "connection-4", "state": "STATE_OPEN"},
        {"id": "connection-5", "state": "STATE_OPEN"},
    ]
}
RA_CHANNELS = {
    "channels": [
        {"state": "STATE_OPEN", "connection_hops": ["connection-0"], "channel_id": "channel-0"}
    ]
}
HUB_CHANNELS = {
    "channels": [
        {"state": "STATE_OPEN", "connection_hops": ["connection-4"], "channel_id": "channel-7"},
        {"state": "STATE_INIT", "connection_hops": ["connection-5"], "channel_id": "channel-8"},
        {"state": "STATE_OPEN", "connection_hops": ["connection-5"], "channel_id": "channel-9"},
    ]
}


class FakeRun:
    def __init__(self, responses=None, fail=()):
        self.responses = {
            (ROLLAPP_EVM_EXECUTABLE, "connections"): json.dumps(RA_CONNECTIONS),
            (DYMENSION_EXECUTABLE, "connections"): json.dumps(HUB_CONNECTIONS),
            (ROLLAPP_EVM_EXECUTABLE, "channels"): json.dumps(RA_CHANNELS),
            (DYMENSION_EXECUTABLE, "channels"): json.dumps(HUB_CHANNELS),
        }
        self.responses.update(responses or {})
        self.fail = set(fail)
        self.calls = []

    def __call__(self, argv, **kwargs):
        self.calls.append(list(argv))
        key = (argv[0], argv[4] if len(argv) > 4 else "")
        if key in self.fail:
            return subprocess.CompletedProcess(argv, 1, "", "boom")
        out = self.responses.get(key, "relayed\n")
        sink = kwargs.get("stdout")
        if sink is not None and hasattr(sink, "write"):
            sink.write(out)
            return subprocess.CompletedProcess(argv, 0, None, None)
        return subprocess.CompletedProcess(argv, 0, out, "")


@pytest.fixture
def home(tmp_path):
    (relayer_home(tmp_path) / "config").mkdir(parents=True)
    return tmp_path


@pytest.fixture
def relayer(home):
    return Relayer(home, RA.id, HUB.id)


def _home_args(home):
    return [DEFAULT_RELAYER_PATH, "--home", str(relayer_home(home))]


def test_status_file_path(relayer, home):
    assert relayer.status_file_path() == relayer_home(home) / "relayer_status.txt"


def test_channel_ready_needs_both_ends(relayer):
    assert relayer.channel_ready() is False
    relayer.src_channel = "channel-1"
    assert relayer.channel_ready() is False
    relayer.dst_channel = "channel-2"
    assert relayer.channel_ready() is True


def test_status_starting_without_file(relayer):
    assert relayer.get_relayer_status(None) == "Starting..."


def test_status_round_trip(relayer):
    relayer.write_relayer_status("creating channel")
    assert relayer.get_relayer_status(None) == "creating channel"


def test_status_with_active_channels(relayer):
    relayer.src_channel = "channel-9"
    relayer.dst_channel = "channel-0"
    assert relayer.get_relayer_status(None) == (
        "Active Channels:\nrollapp: channel-9\n<->\nhub: channel-0"
    )


def test_update_clients_cmd(relayer, home):
    assert relayer.get_update_clients_cmd() == [
        RELAYER_EXECUTABLE, "tx", "update-clients", *_home_args(home)
    ]


def test_relay_cmds_use_dst_channel(relayer, home):
    relayer.dst_channel = "channel-3"
    expected_tail = [DEFAULT_RELAYER_PATH, "channel-3", "--home", str(relayer_home(home))]
    assert relayer.get_relay_acks_cmd() == [RELAYER_EXECUTABLE, "tx", "relay-acks", *expected_tail]
    assert relayer.get_relay_packets_cmd() == [
        RELAYER_EXECUTABLE, "tx", "relay-packets", *expected_tail
    ]


def test_start_cmd(relayer, home):
    assert relayer.get_start_cmd() == [
        RELAYER_EXECUTABLE, "start", "--max-msgs", "100", "--time-threshold", "2h",
        "--no-flush", "--log-format", "json", *_home_args(home),
    ]


def test_create_clients_cmd_override_last(relayer, home):
    base = [RELAYER_EXECUTABLE, "tx", "clients", *_home_args(home), "--log-level", "debug"]
    assert relayer.get_create_clients_cmd(False) == base
    assert relayer.get_create_clients_cmd(True) == [*base, "--override"]


def test_create_connection_cmd(relayer, home):
    head = [RELAYER_EXECUTABLE, "tx", "connection", "--max-clock-drift", "70m"]
    assert relayer.get_create_connection_cmd(False) == [*head, *_home_args(home)]
    assert relayer.get_create_connection_cmd(True) == [*head, "--override", *_home_args(home)]


def test_create_channel_and_link_cmds(relayer, home):
    assert relayer.get_create_channel_cmd(True) == [
        RELAYER_EXECUTABLE, "tx", "channel", "--timeout", "60s", "--debug", "--override",
        *_home_args(home),
    ]
    link = relayer.get_tx_link_cmd(False)
    assert link[:4] == [RELAYER_EXECUTABLE, "tx", "link", DEFAULT_RELAYER_PATH]
    assert "--override" not in link
    assert link[-3:] == _home_args(home)


def _write_rly(home, src_client, dst_client):
    cfg = {
        "paths": {
            DEFAULT_RELAYER_PATH: {
                "src": {"client-id": src_client},
                "dst": {"client-id": dst_client},
            }
        }
    }
    (relayer_home(home) / "config" / "config.yaml").write_text(yaml.safe_dump(cfg))


def test_check_clients_exist(relayer, home):
    _write_rly(home, "07-tendermint-1", "07-tendermint-0")
    assert relayer.check_clients_exist() is True
    _write_rly(home, "", "07-tendermint-0")
    assert relayer.check_clients_exist() is False


def test_check_clients_missing_key(relayer, home):
    (relayer_home(home) / "config" / "config.yaml").write_text(yaml.safe_dump({"paths": {}}))
    with pytest.raises(KeyNotFoundError):
        relayer.check_clients_exist()


def test_run_command_returns_stdout():
    fake = FakeRun()
    with mock.patch("roller.relayer.subprocess.run", fake):
        assert run_command([RELAYER_EXECUTABLE, "tx"]) == "relayed\n"


def test_run_command_failure():
    fake = FakeRun(fail={(DYMENSION_EXECUTABLE, "connections")})
    with mock.patch("roller.relayer.subprocess.run", fake):
        with pytest.raises(CommandError) as info:
            run_command([DYMENSION_EXECUTABLE, "q", "ibc", "connection", "connections"])
    assert info.value.returncode == 1
    assert info.value.stderr == "boom"


def test_active_connection_ids(relayer):
    with mock.patch("roller.relayer.subprocess.run", FakeRun()):
        assert relayer.get_active_connection_ids(RA, HUB) == ("connection-0", "connection-5")


def test_active_connections_objects(relayer):
    with mock.patch("roller.relayer.subprocess.run", FakeRun()):
        ra_conn, hub_conn = relayer.get_active_connections(RA, HUB)
    assert ra_conn.client_id == "07-tendermint-0"
    assert hub_conn.id == ra_conn.counterparty.connection_id


def test_connection_not_open(relayer):
    closed = {"connections": [dict(RA_CONNECTIONS["connections"][0], state="STATE_INIT")]}
    fake = FakeRun({(ROLLAPP_EVM_EXECUTABLE, "connections"): json.dumps(closed)})
    with mock.patch("roller.relayer.subprocess.run", fake):
        assert relayer.get_active_connection_ids(RA, HUB) == ("", "")
    assert len(fake.calls) == 1


def test_bad_rollapp_json_means_no_connection(relayer):
    fake = FakeRun({(ROLLAPP_EVM_EXECUTABLE, "connections"): "not json"})
    with mock.patch("roller.relayer.subprocess.run", fake):
        assert relayer.get_active_connections(RA, HUB) == (None, None)


def test_connection_query_failure(relayer):
    fake = FakeRun(fail={(ROLLAPP_EVM_EXECUTABLE, "connections")})
    with mock.patch("roller.relayer.subprocess.run", fake):
        with pytest.raises(CommandError):
            relayer.get_active_connection_ids(RA, HUB)


def test_load_active_channel(relayer):
    with mock.patch("roller.relayer.subprocess.run", FakeRun()):
        assert relayer.load_active_channel(RA, HUB) == ("channel-9", "channel-0")
    assert relayer.src_channel == "channel-9"
    assert relayer.dst_channel == "channel-0"


def test_load_active_channel_missing_hub_connection(relayer):
    fake = FakeRun({(DYMENSION_EXECUTABLE, "connections"): json.dumps({"connections": []})})
    with mock.patch("roller.relayer.subprocess.run", fake):
        assert relayer.load_active_channel(RA, HUB) == ("", "")
    assert relayer.channel_ready() is False


def test_load_active_channel_no_rollapp_channels(relayer):
    fake = FakeRun({(ROLLAPP_EVM_EXECUTABLE, "channels"): json.dumps({"channels": []})})
    with mock.patch("roller.relayer.subprocess.run", fake):
        assert relayer.load_active_channel(RA, HUB) == ("", "")


def test_create_ibc_channel_existing_connection(relayer, home, tmp_path):
    log_path = tmp_path / "relayer.log"
    fake = FakeRun()
    with mock.patch("roller.relayer.subprocess.run", fake), mock.patch(
        "roller.relayer.time.sleep"
    ):
        result = relayer.create_ibc_channel(False, log_path, RA, HUB)
    assert result == ConnectionChannels(src="channel-9", dst="channel-0")
    relayer_calls = [call for call in fake.calls if call[0] == RELAYER_EXECUTABLE]
    assert relayer_calls == [relayer.get_create_channel_cmd(True)]
    assert log_path.read_text() == "relayed\n"
    assert relayer.status_file_path().read_text() == ""


def test_create_ibc_channel_override_creates_connection(relayer):
    fake = FakeRun()
    with mock.patch("roller.relayer.subprocess.run", fake), mock.patch(
        "roller.relayer.time.sleep"
    ):
        relayer.create_ibc_channel(True, None, RA, HUB)
    relayer_calls = [call for call in fake.calls if call[0] == RELAYER_EXECUTABLE]
    assert relayer_calls == [
        relayer.get_create_connection_cmd(True),
        relayer.get_create_channel_cmd(True),
    ]


def test_create_ibc_channel_fails_without_channels(relayer):
    fake = FakeRun({(DYMENSION_EXECUTABLE, "channels"): json.dumps({"channels": []})})
    with mock.patch("roller.relayer.subprocess.run", fake), mock.patch(
        "roller.relayer.time.sleep"
    ):
        with pytest.raises(RuntimeError, match="could not load channels"):
            relayer.create_ibc_channel(False, None, RA, HUB)