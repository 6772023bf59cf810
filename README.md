# roller

A library for running a rollapp sequencer alongside an IBC relayer that
connects it to the hub. It edits the sequencer's TOML files and the relayer's
YAML file, builds the command lines for the `rly`, `dymd` and `rollappd`
binaries, runs the query and setup commands, and reports status.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Layout and chain descriptions

A roller home directory holds a subdirectory for each component:
`roller.chain.relayer_home(home)` returns `<home>/relayer` and
`roller.chain.rollapp_home(home)` returns `<home>/rollapp`. The dataclasses
`RollappConfig`, `HubData`, `RollappData` and `DAConfig` in `roller.chain`
describe a deployment.

## Relayer

`roller.relayer.Relayer(home, rollapp_id, hub_id)` builds relayer command
lines as argv lists and runs the chain queries:

```python
from roller.chain import HubData, RollappData
from roller.relayer import Relayer

rly = Relayer(home="/srv/roller", rollapp_id="myapp_1-1", hub_id="hub_100-1")
print(rly.get_start_cmd())          # argv for `rly start ...`
print(rly.check_clients_exist())    # reads <home>/relayer/config/config.yaml

ra_data = RollappData(id="myapp_1-1", rpc_url="http://localhost:26657")
hub_data = HubData(id="hub_100-1", rpc_url="http://localhost:36657")
src, dst = rly.load_active_channel(ra_data, hub_data)
```

Other command builders: `get_update_clients_cmd`, `get_relay_acks_cmd`,
`get_relay_packets_cmd`, `get_create_clients_cmd(override)`,
`get_create_connection_cmd(override)`, `get_tx_link_cmd(override)` and
`get_create_channel_cmd(override)`.

`get_active_connections` and `get_active_connection_ids` query both chains for
the open rollapp connection and its hub counterpart. `load_active_channel`
stores the open channels in `src_channel` (hub) and `dst_channel` (rollapp)
and raises `LookupError` when a side has channels but none open on the
connection. `create_ibc_channel(override, log_file, ra_data, hd)` opens a
connection when needed, then a channel, and returns a
`roller.ibc.ConnectionChannels`; command output goes to `log_file` when one
is given. The status text is kept in `<home>/relayer/relayer_status.txt`
(`write_relayer_status`, `get_relayer_status`).

`roller.relayer.run_command(argv)` runs a command and returns its standard
output. A command that cannot start or exits with a non-zero status raises
`roller.relayer.CommandError`.

## Relayer configuration

```python
from roller.relayer_config import read_rly_config, write_rly_config
from roller.nested import get_nested_value, set_nested_value

cfg = read_rly_config("/srv/roller")
set_nested_value(cfg, ["paths", "hub-rollapp", "dst", "chain-id"], "myapp_1-1")
write_rly_config("/srv/roller", cfg)
```

`update_rly_config_value(rlp_cfg, key_path, new_value)` does the same in one
call, and `create_path(rlp_cfg)` runs `rly paths new` for the hub and rollapp.
`get_nested_value` raises `roller.nested.KeyNotFoundError` for a missing key.

## IBC query output

`roller.ibc.parse_channels` and `roller.ibc.parse_connections` turn the JSON
output of the chain query commands into dataclasses.
`roller.ibc.find_open_channel(channels, connection_id)` returns the first open
channel whose first hop is the given connection, or `None`.

## Sequencer

`roller.sequencer_config` edits the files under `<home>/rollapp/config`:
`set_default_dymint_config`, `update_dymint_da_config`, `set_app_config` and
`set_tm_config`. The helpers `load_toml`, `write_toml`, `get_value` and
`set_value` work with dotted keys and keep the files' layout and comments.

```python
from roller.sequencer import get_instance

seq = get_instance(rollapp_config)
print(seq.get_rpc_endpoint())
print(seq.get_sequencer_status())
```

`get_instance` reads the ports once and then returns the same `Sequencer`.
A `Sequencer` also gives `get_start_cmd(log_level)`, `get_send_cmd(address)`,
`get_rollapp_height()` (from the node's `/status`), `get_hub_height()` (from
`dymd q rollapp state`) and `get_sequencer_health()`, which raises
`SequencerError` when the node reports itself unhealthy.

`wait_for_valid_rollapp_height(seq, timeout=20.0, interval=2.0)` polls until
the rollapp reports a height of at least 1 and raises `TimeoutError` if that
does not happen in time.

## What this package does not do

It has no command-line program of its own; it is a library to be called from
Python. It does not create roller home directories, generate or import keys,
fund accounts, or query balances, and it does not start or supervise
long-running relayer or sequencer processes — it returns their command lines
for the caller to run.