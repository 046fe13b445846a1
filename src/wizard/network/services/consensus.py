"""
共识配置生成：根据共识类型生成 genesis.json。

- raft: 标准创世块，无额外字段
- istanbul: extraData 中以 RLP 编码写入验证者（节点地址）列表
- clique: extraData 中依次写入签名者（账户地址）列表
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, Sequence

from loguru import logger

from ..errors import MissingConsensusField, UnsupportedConsensusKind
from ..schemas import ConsensusKind, KeyBundle, NetworkSpec

GENESIS_FILE = "genesis.json"

ZERO_HASH = "0x" + "00" * 32
ZERO_ADDRESS = "0x" + "00" * 20
ISTANBUL_MIXHASH = "0x63746963616c2062797a616e74696e65206661756c7420746f6c6572616e6365"
DEFAULT_BALANCE = "1000000000000000000000000000"
EPOCH = 30000
_VANITY = "00" * 32
_CLIQUE_SEAL = "00" * 65


def _rlp_length_prefix(length: int, offset: int) -> bytes:
    if length <= 55:
        return bytes([offset + length])
    length_bytes = length.to_bytes((length.bit_length() + 7) // 8, "big")
    return bytes([offset + 55 + len(length_bytes)]) + length_bytes


def rlp_encode(item: bytes | list) -> bytes:
    if isinstance(item, bytes):
        if len(item) == 1 and item[0] < 0x80:
            return item
        return _rlp_length_prefix(len(item), 0x80) + item
    payload = b"".join(rlp_encode(x) for x in item)
    return _rlp_length_prefix(len(payload), 0xC0) + payload


def _base_genesis(spec: NetworkSpec, key_bundles: Sequence[KeyBundle]) -> dict:
    return {
        "alloc": {
            bundle.account_address: {"balance": DEFAULT_BALANCE} for bundle in key_bundles
        },
        "coinbase": ZERO_ADDRESS,
        "config": {
            "homesteadBlock": 0,
            "byzantiumBlock": 0,
            "constantinopleBlock": 0,
            "chainId": spec.network_id,
            "eip150Block": 0,
            "eip155Block": 0,
            "eip150Hash": ZERO_HASH,
            "eip158Block": 0,
            "maxCodeSizeConfig": [{"block": 0, "size": 35}],
            "isQuorum": True,
        },
        "difficulty": "0x0",
        "extraData": "0x" + _VANITY,
        "gasLimit": "0xE0000000",
        "mixhash": ZERO_HASH,
        "nonce": "0x0",
        "parentHash": ZERO_HASH,
        "timestamp": "0x00",
    }


def _raft_genesis(spec: NetworkSpec, key_bundles: Sequence[KeyBundle]) -> dict:
    return _base_genesis(spec, key_bundles)


def _istanbul_genesis(spec: NetworkSpec, key_bundles: Sequence[KeyBundle]) -> dict:
    genesis = _base_genesis(spec, key_bundles)
    validators = [bytes.fromhex(b.node_address.removeprefix("0x")) for b in key_bundles]
    extra = rlp_encode([validators, b"", []])
    genesis["config"]["istanbul"] = {"epoch": EPOCH, "policy": 0, "ceil2Nby3Block": 0}
    genesis["difficulty"] = "0x1"
    genesis["mixhash"] = ISTANBUL_MIXHASH
    genesis["extraData"] = "0x" + _VANITY + extra.hex()
    return genesis


def _clique_genesis(spec: NetworkSpec, key_bundles: Sequence[KeyBundle]) -> dict:
    genesis = _base_genesis(spec, key_bundles)
    signers = "".join(b.account_address.removeprefix("0x") for b in key_bundles)
    genesis["config"]["clique"] = {"period": 1, "epoch": EPOCH}
    genesis["difficulty"] = "0x1"
    genesis["extraData"] = "0x" + _VANITY + signers + _CLIQUE_SEAL
    return genesis


_GENESIS_BUILDERS: dict[ConsensusKind, Callable[[NetworkSpec, Sequence[KeyBundle]], dict]] = {
    ConsensusKind.RAFT: _raft_genesis,
    ConsensusKind.ISTANBUL: _istanbul_genesis,
    ConsensusKind.CLIQUE: _clique_genesis,
}


def validate_consensus(spec: NetworkSpec) -> None:
    """在任何文件写入之前校验共识相关字段。"""
    if spec.consensus not in _GENESIS_BUILDERS:
        raise UnsupportedConsensusKind(spec.consensus)
    if spec.is_raft:
        for node_number, node in enumerate(spec.nodes, start=1):
            if node.quorum.raft_port is None:
                raise MissingConsensusField(node_number, "raftPort")


def build_genesis(spec: NetworkSpec, key_bundles: Sequence[KeyBundle]) -> dict:
    builder = _GENESIS_BUILDERS.get(spec.consensus)
    if builder is None:
        raise UnsupportedConsensusKind(spec.consensus)
    return builder(spec, key_bundles)


def generate_consensus_config(config_dir: Path, spec: NetworkSpec, key_bundles: Sequence[KeyBundle]) -> Path:
    """生成 genesis.json 并写入共享配置目录。"""
    genesis = build_genesis(spec, key_bundles)
    path = config_dir / GENESIS_FILE
    path.write_text(json.dumps(genesis, indent=2) + "\n", encoding="utf-8")
    logger.info(f"已生成 {spec.consensus.value} 创世文件：{path}")
    return path
