import json

import pytest

from assistant.config import load_groups, load_wallet
from common.test_utils import FALLBACK_WALLET, ROOT_WALLET, SHARD_WALLET
from common.utils.exceptions import ConfigError
from common.utils.formulas import ROOT_ALLOWANCE, SHARD_ALLOWANCES


def write_ini(path, wallet):
    path.write_text(f"[Ethash]\nwallet = {wallet}\nthreads = 4\n", encoding="utf-8")
    return path


def target_entry(path, **overrides):
    entry = {"spawn_args": ["-c", str(path)], "path": str(path), "mine_at_free_allowances_from_max": 2}
    entry.update(overrides)
    return entry


@pytest.fixture
def config_file(tmp_path):
    write_ini(tmp_path / "root.ini", ROOT_WALLET)
    write_ini(tmp_path / "shard.ini", SHARD_WALLET)
    write_ini(tmp_path / "fallback.ini", FALLBACK_WALLET)
    groups = [
        {
            "rpc": "http://localhost:38391",
            "miner_dir": str(tmp_path),
            "miner_exe": "./miner",
            "fallback_config": target_entry("fallback.ini"),
            "config_files": [
                target_entry("root.ini", root_chain=True, allowances_to_use=5),
                target_entry("shard.ini"),
            ],
        }
    ]
    path = tmp_path / "config.json"
    path.write_text(json.dumps(groups), encoding="utf-8")
    return path


def test_load_groups_assigns_priority_from_order(config_file):
    (group,) = load_groups(config_file)

    root, shard = group.targets
    assert root.priority == 2
    assert shard.priority == 1
    assert group.fallback.priority == 0
    assert group.fallback.is_fallback


def test_load_groups_reads_wallets_and_settings(config_file):
    (group,) = load_groups(config_file)
    root, shard = group.targets

    assert root.identity == ROOT_WALLET
    assert root.root_chain
    assert root.shard_key is None
    assert root.allowances_to_use == 5
    assert root.allowance_unit == ROOT_ALLOWANCE
    assert shard.shard_key == "0x00010000"
    assert shard.allowance_unit == SHARD_ALLOWANCES[1]
    assert shard.margin == 2
    assert shard.spawn_args == ("-c", "shard.ini")
    assert group.miner_exe == "./miner"


def test_load_wallet_requires_ethash_section(tmp_path):
    path = tmp_path / "miner.ini"
    path.write_text("[Other]\nwallet = 0x00\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_wallet(path)


def test_load_wallet_rejects_malformed_address(tmp_path):
    with pytest.raises(ConfigError):
        load_wallet(write_ini(tmp_path / "miner.ini", "0x1234"))


def test_missing_config_file_is_a_config_error(tmp_path):
    with pytest.raises(ConfigError):
        load_groups(tmp_path / "missing.json")


def test_invalid_json_is_a_config_error(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_groups(path)


def test_missing_required_field_is_a_config_error(config_file):
    groups = json.loads(config_file.read_text())
    del groups[0]["config_files"][1]["mine_at_free_allowances_from_max"]
    config_file.write_text(json.dumps(groups))

    with pytest.raises(ConfigError):
        load_groups(config_file)


def test_missing_ini_file_is_a_config_error(config_file):
    groups = json.loads(config_file.read_text())
    groups[0]["config_files"][1]["path"] = "nowhere.ini"
    config_file.write_text(json.dumps(groups))

    with pytest.raises(ConfigError):
        load_groups(config_file)


def test_shard_target_on_chain_without_allowance_unit_is_rejected(tmp_path, config_file):
    write_ini(tmp_path / "shard.ini", "0x" + "22" * 20 + "00000000")

    with pytest.raises(ConfigError):
        load_groups(config_file)
