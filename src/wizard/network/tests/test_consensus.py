"""
测试 consensus.py：RLP 编码与各共识的创世文件。
"""

import asyncio
import json

import pytest

from src.wizard.network.services import consensus
from src.wizard.network.services.keygen import generate_keys


@pytest.mark.parametrize(
    "item, expected",
    [
        (b"dog", "83646f67"),
        (b"", "80"),
        (b"\x0f", "0f"),
        ([], "c0"),
        ([b"cat", b"dog"], "c88363617483646f67"),
        ([[], [[]], [[], [[]]]], "c7c0c1c0c3c0c1c0"),
    ],
)
def test_rlp_encode(item, expected):
    assert consensus.rlp_encode(item).hex() == expected


def test_rlp_long_string():
    data = b"a" * 56
    assert consensus.rlp_encode(data)[:2] == bytes([0xB8, 56])


@pytest.fixture
def bundles(tmp_path, make_spec):
    return asyncio.run(generate_keys(make_spec(count=3), tmp_path / "keys"))


def test_raft_genesis(make_spec, bundles):
    genesis = consensus.build_genesis(make_spec(networkId=1337), bundles)

    assert genesis["config"]["chainId"] == 1337
    assert genesis["config"]["isQuorum"] is True
    assert "istanbul" not in genesis["config"]
    assert "clique" not in genesis["config"]
    assert set(genesis["alloc"]) == {b.account_address for b in bundles}


def test_istanbul_genesis_lists_validators(make_spec, bundles):
    genesis = consensus.build_genesis(make_spec(consensus="istanbul"), bundles)

    assert genesis["mixhash"] == consensus.ISTANBUL_MIXHASH
    assert genesis["config"]["istanbul"]["epoch"] == consensus.EPOCH
    extra = genesis["extraData"]
    assert extra.startswith("0x" + "00" * 32)
    for bundle in bundles:
        assert bundle.node_address[2:] in extra


def test_clique_genesis_lists_signers(make_spec, bundles):
    genesis = consensus.build_genesis(make_spec(consensus="clique"), bundles)

    signers = "".join(b.account_address[2:] for b in bundles)
    assert genesis["extraData"] == "0x" + "00" * 32 + signers + "00" * 65
    assert genesis["config"]["clique"] == {"period": 1, "epoch": consensus.EPOCH}


def test_generate_consensus_config_writes_file(tmp_path, make_spec, bundles):
    path = consensus.generate_consensus_config(tmp_path, make_spec(), bundles)
    assert path == tmp_path / consensus.GENESIS_FILE
    assert json.loads(path.read_text())["config"]["chainId"] == 10


def test_validate_consensus_requires_raft_port(make_spec):
    from src.wizard.network.errors import MissingConsensusField

    spec = make_spec(
        nodes=[{"quorum": {"ip": "127.0.0.1", "devP2pPort": 21000}}],
    )
    with pytest.raises(MissingConsensusField):
        consensus.validate_consensus(spec)

    consensus.validate_consensus(make_spec(consensus="clique"))
