"""
文件功能：
    定义网络生成相关的公开数据模型（Pydantic）。

公开接口：
    - ConsensusKind / DeploymentKind / TransactionManagerKind: 封闭的类型枚举
    - NetworkSpec / NodeSpec: 经过校验、不可变的网络描述
    - KeyBundle: 单个节点的密钥材料
    - RuntimePaths: 显式传入的工作目录与缓存目录
    - GeneratedResources / ArtifactTree / BuildResult: 流水线各阶段的产出
    - WizardAnswers: 问答环节的原始答案

说明：
    - JSON 序列化使用 camelCase 别名（devP2pPort、networkId 等），与快照文件保持一致。
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..config import config


class ConsensusKind(str, Enum):
    RAFT = "raft"
    ISTANBUL = "istanbul"
    CLIQUE = "clique"


class DeploymentKind(str, Enum):
    BASH = "bash"
    DOCKER_COMPOSE = "docker-compose"
    KUBERNETES = "kubernetes"


class TransactionManagerKind(str, Enum):
    NONE = "none"
    TESSERA = "tessera"
    PATH = "PATH"


def transaction_manager_kind(transaction_manager: str) -> TransactionManagerKind:
    """将 transactionManager 取值归类：'none'、'PATH' 或某个 tessera 版本号。"""
    if transaction_manager == "none":
        return TransactionManagerKind.NONE
    if transaction_manager == "PATH":
        return TransactionManagerKind.PATH
    return TransactionManagerKind.TESSERA


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class QuorumNode(_CamelModel):
    ip: str
    dev_p2p_port: int = Field(alias="devP2pPort")
    raft_port: int | None = None
    rpc_port: int | None = None
    ws_port: int | None = None


class TesseraNode(_CamelModel):
    ip: str
    third_party_port: int
    p2p_port: int = Field(alias="p2pPort")


class NodeSpec(_CamelModel):
    quorum: QuorumNode
    tm: TesseraNode | None = None


class NetworkSpec(_CamelModel):
    """网络描述。nodes 的顺序决定从 1 开始的节点编号，下游不得重排。"""

    name: str
    consensus: ConsensusKind
    transaction_manager: str = "none"
    deployment: DeploymentKind = DeploymentKind.BASH
    network_id: int = 10
    generate_keys: bool = True
    config_dir: str | None = Field(default=None, description="相对工作目录的密钥与配置目录")
    quorum_version: str = "2.6.0"
    cakeshop: str = "none"
    remote_generation: bool = False
    nodes: tuple[NodeSpec, ...] = Field(min_length=1)

    @property
    def tm_kind(self) -> TransactionManagerKind:
        return transaction_manager_kind(self.transaction_manager)

    @property
    def is_tessera(self) -> bool:
        return self.tm_kind is not TransactionManagerKind.NONE

    @property
    def is_raft(self) -> bool:
        return self.consensus is ConsensusKind.RAFT

    @property
    def is_istanbul(self) -> bool:
        return self.consensus is ConsensusKind.ISTANBUL

    @property
    def is_clique(self) -> bool:
        return self.consensus is ConsensusKind.CLIQUE

    @property
    def is_bash(self) -> bool:
        return self.deployment is DeploymentKind.BASH

    @property
    def is_docker(self) -> bool:
        return self.deployment is DeploymentKind.DOCKER_COMPOSE

    @property
    def is_kubernetes(self) -> bool:
        return self.deployment is DeploymentKind.KUBERNETES

    @property
    def uses_remote_generation(self) -> bool:
        return self.remote_generation or self.is_kubernetes


class KeyBundle(BaseModel):
    """单个节点的密钥材料，读取自 key{N} 目录，之后只读。"""

    model_config = ConfigDict(frozen=True)

    node_number: int
    key_dir: Path
    enode_id: str
    node_key: str
    account_address: str
    node_address: str
    password: str
    tm_key: str | None = None
    tm_pub: str | None = None

    def path(self, file_name: str) -> Path:
        return self.key_dir / file_name


class RuntimePaths(BaseModel):
    """流水线使用的根目录，替代对 cwd 与 home 的隐式查找。"""

    model_config = ConfigDict(frozen=True)

    working_dir: Path
    cache_home: Path

    @classmethod
    def from_config(cls) -> "RuntimePaths":
        return cls(
            working_dir=config.resolved_working_dir(),
            cache_home=config.resolved_cache_home(),
        )


class GeneratedResources(BaseModel):
    """本地或远程生成后的共享配置目录内容，两种方式产出相同结构。"""

    config_dir: Path
    key_bundles: list[KeyBundle]
    static_nodes: list[str]
    genesis_path: Path
    permissioned_nodes_path: Path
    tessera_template_path: Path | None = None


class NodeArtifacts(BaseModel):
    node_number: int
    quorum_dir: Path
    geth_dir: Path
    keystore_dir: Path
    tm_dir: Path | None = None
    tessera_config: Path | None = None


class ArtifactTree(BaseModel):
    network_path: Path
    qdata: Path
    logs: Path
    nodes: list[NodeArtifacts] = Field(default_factory=list)


class BuildResult(BaseModel):
    network_path: Path
    config_dir: Path
    remote: bool
    artifacts: ArtifactTree
    binaries: dict[str, str] = Field(default_factory=dict, description="外部脚本使用的可执行文件路径")


class WizardAnswers(_CamelModel):
    """问答环节收集到的原始答案。"""

    name: str
    number_nodes: int = Field(default=3, ge=1)
    consensus: ConsensusKind = ConsensusKind.RAFT
    transaction_manager: str = "none"
    deployment: DeploymentKind = DeploymentKind.BASH
    network_id: int = 10
    generate_keys: bool = True
    config_dir: str | None = None
    quorum_version: str = "2.6.0"
    cakeshop: str = "none"
    remote_generation: bool = False
    nodes: list[NodeSpec] | None = Field(default=None, description="自定义端口时由问答环节给出的节点列表")
