"""
节点地址解析：生成 static-nodes / permissioned-nodes 列表与 tessera 节点列表。
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Sequence

from ..errors import MissingConsensusField, MissingKeyMaterial, MissingTransactionManagerField
from ..schemas import (
    ConsensusKind,
    KeyBundle,
    NodeSpec,
    TransactionManagerKind,
    transaction_manager_kind,
)

PERMISSIONED_NODES_FILE = "permissioned-nodes.json"


def build_static_nodes(
    nodes: Sequence[NodeSpec],
    consensus: ConsensusKind,
    key_bundles: Sequence[KeyBundle],
) -> list[str]:
    """
    生成 enode 列表，第 i 项与第 i 个节点对齐。
    :raises MissingConsensusField: raft 共识下节点缺少 raftPort。
    """
    bundles = {bundle.node_number: bundle for bundle in key_bundles}
    static_nodes: list[str] = []
    for node_number, node in enumerate(nodes, start=1):
        bundle = bundles.get(node_number)
        if bundle is None:
            raise MissingKeyMaterial(node_number, f"key{node_number}")
        address = f"enode://{bundle.enode_id}@{node.quorum.ip}:{node.quorum.dev_p2p_port}?discport=0"
        if consensus is ConsensusKind.RAFT:
            if node.quorum.raft_port is None:
                raise MissingConsensusField(node_number, "raftPort")
            address += f"&raftport={node.quorum.raft_port}"
        static_nodes.append(address)
    return static_nodes


def build_peer_list(nodes: Sequence[NodeSpec], transaction_manager: str) -> list[dict[str, str]]:
    """未配置交易管理器时返回空列表，否则每个节点一项 {"url": ...}。"""
    if transaction_manager_kind(transaction_manager) is TransactionManagerKind.NONE:
        return []
    peers: list[dict[str, str]] = []
    for node_number, node in enumerate(nodes, start=1):
        if node.tm is None:
            raise MissingTransactionManagerField(node_number)
        peers.append({"url": f"http://{node.tm.ip}:{node.tm.p2p_port}"})
    return peers


def write_static_nodes(config_dir: Path, static_nodes: Sequence[str]) -> Path:
    path = config_dir / PERMISSIONED_NODES_FILE
    path.write_text(json.dumps(list(static_nodes), indent=2) + "\n", encoding="utf-8")
    return path


def read_static_nodes(config_dir: Path) -> list[str]:
    return json.loads((config_dir / PERMISSIONED_NODES_FILE).read_text(encoding="utf-8"))
