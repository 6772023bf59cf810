from pathlib import Path

from roller.chain import (
    DA_LOCAL,
    RELAYER_DIR,
    ROLLAPP_DIR,
    ROLLAPP_EVM_EXECUTABLE,
    DAConfig,
    HubData,
    RollappConfig,
    RollappData,
    relayer_home,
    rollapp_home,
)


def test_relayer_home_is_inside_home(tmp_path):
    path = relayer_home(tmp_path)
    assert path.parent == tmp_path
    assert path.name == RELAYER_DIR


def test_rollapp_home_is_inside_home(tmp_path):
    path = rollapp_home(tmp_path)
    assert path.parent == tmp_path
    assert path.name == ROLLAPP_DIR


def test_homes_accept_strings(tmp_path):
    assert relayer_home(str(tmp_path)) == relayer_home(tmp_path)
    assert rollapp_home(str(tmp_path)) == rollapp_home(tmp_path)


def test_relayer_and_rollapp_homes_differ(tmp_path):
    assert relayer_home(tmp_path) != rollapp_home(tmp_path)
    assert isinstance(relayer_home("x"), Path)


def test_rollapp_config_defaults():
    hub = HubData(id="hub_1-1", rpc_url="http://localhost:36657")
    cfg = RollappConfig(home="/tmp/roller", rollapp_id="ra_1-1", hub_data=hub)
    assert cfg.hub_data.id == "hub_1-1"
    assert cfg.da.backend == DA_LOCAL
    assert cfg.rollapp_binary == ROLLAPP_EVM_EXECUTABLE
    assert cfg.hub_data.gas_price == ""


def test_rollapp_data_and_da_config_fields():
    ra = RollappData(id="ra_1-1", rpc_url="http://localhost:26657")
    da = DAConfig(backend="celestia", namespace_id="ns")
    assert (ra.id, ra.rpc_url) == ("ra_1-1", "http://localhost:26657")
    assert (da.backend, da.namespace_id) == ("celestia", "ns")