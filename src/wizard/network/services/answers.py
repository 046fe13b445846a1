"""
将问答环节的答案转换为 NetworkSpec。

未自定义端口时按部署方式生成默认节点：
    - bash: 所有节点在 127.0.0.1，端口按节点编号递增
    - docker-compose / kubernetes: 每个节点独立的容器地址，端口固定
"""

from __future__ import annotations

from ...config import config
from ..schemas import (
    ConsensusKind,
    DeploymentKind,
    NetworkSpec,
    NodeSpec,
    QuorumNode,
    TesseraNode,
    WizardAnswers,
    transaction_manager_kind,
    TransactionManagerKind,
)


def _bash_node(index: int, raft: bool, tessera: bool) -> NodeSpec:
    quorum = QuorumNode(
        ip="127.0.0.1",
        dev_p2p_port=21000 + index,
        rpc_port=22000 + index,
        ws_port=23000 + index,
        raft_port=50401 + index if raft else None,
    )
    tm = None
    if tessera:
        tm = TesseraNode(ip="127.0.0.1", third_party_port=9081 + index, p2p_port=9001 + index)
    return NodeSpec(quorum=quorum, tm=tm)


def _container_node(index: int, raft: bool, tessera: bool) -> NodeSpec:
    node_number = index + 1
    quorum = QuorumNode(
        ip=f"{config.docker_network_prefix}{node_number}",
        dev_p2p_port=21000,
        rpc_port=8545,
        ws_port=8546,
        raft_port=50400 if raft else None,
    )
    tm = None
    if tessera:
        tm = TesseraNode(
            ip=f"{config.docker_network_prefix}0{node_number}",
            third_party_port=9080,
            p2p_port=9000,
        )
    return NodeSpec(quorum=quorum, tm=tm)


def default_nodes(
    number_nodes: int,
    consensus: ConsensusKind,
    transaction_manager: str,
    deployment: DeploymentKind,
) -> list[NodeSpec]:
    raft = consensus is ConsensusKind.RAFT
    tessera = transaction_manager_kind(transaction_manager) is not TransactionManagerKind.NONE
    build = _bash_node if deployment is DeploymentKind.BASH else _container_node
    return [build(i, raft, tessera) for i in range(number_nodes)]


def create_config_from_answers(answers: WizardAnswers) -> NetworkSpec:
    nodes = answers.nodes or default_nodes(
        answers.number_nodes,
        answers.consensus,
        answers.transaction_manager,
        answers.deployment,
    )
    return NetworkSpec(
        name=answers.name,
        consensus=answers.consensus,
        transaction_manager=answers.transaction_manager,
        deployment=answers.deployment,
        network_id=answers.network_id,
        generate_keys=answers.generate_keys,
        config_dir=answers.config_dir,
        quorum_version=answers.quorum_version,
        cakeshop=answers.cakeshop,
        remote_generation=answers.remote_generation,
        nodes=tuple(nodes),
    )
