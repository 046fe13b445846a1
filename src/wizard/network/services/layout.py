"""
文件功能：
    网络目录布局：清洗网络名称、计算规范路径、重建网络根目录，并将共享配置与节点密钥
    物化为每个节点的 qdata 目录。

公开接口：
    - sanitize_name(name) -> str
    - get_full_network_path(spec, paths) -> Path
    - get_config_path(paths, *parts) -> Path
    - get_key_config_dir(spec, paths) -> Path
    - list_available_configs(paths) -> list[str]
    - create_network(spec, paths) -> Path
    - materialize(spec, paths, resources) -> ArtifactTree

说明：
    - 节点编号从 1 开始，dd{N}、c{N}、key{N} 中的 N 与 nodes 中的位置严格一致。
    - 网络根目录每次构建前销毁重建，不做增量合并。
"""

from __future__ import annotations

import json
import re
import shutil
from pathlib import Path

from loguru import logger

from ..errors import InvalidNetworkName, MaterializationFailed, MissingKeyMaterial
from ..schemas import (
    ArtifactTree,
    GeneratedResources,
    KeyBundle,
    NetworkSpec,
    NodeArtifacts,
    NodeSpec,
    RuntimePaths,
)
from .peers import PERMISSIONED_NODES_FILE, build_peer_list
from .tessera import create_tessera_config, tessera_config_name

_ILLEGAL_RE = re.compile(r'[/?<>\\:*|"]')
_CONTROL_RE = re.compile(r"[\x00-\x1f\x80-\x9f]")
_RESERVED_RE = re.compile(r"^\.+$")
_WINDOWS_RESERVED_RE = re.compile(r"^(con|prn|aux|nul|com[0-9]|lpt[0-9])(\..*)?$", re.IGNORECASE)
_WINDOWS_TRAILING_RE = re.compile(r"[. ]+$")
_MAX_NAME_BYTES = 255


def sanitize_name(name: str) -> str:
    """将网络名称清洗为可用作目录名的字符串（与 sanitize-filename 的规则一致）。"""
    sanitized = _ILLEGAL_RE.sub("", name)
    sanitized = _CONTROL_RE.sub("", sanitized)
    sanitized = _RESERVED_RE.sub("", sanitized)
    sanitized = _WINDOWS_RESERVED_RE.sub("", sanitized)
    sanitized = _WINDOWS_TRAILING_RE.sub("", sanitized)
    encoded = sanitized.encode("utf-8")[:_MAX_NAME_BYTES]
    return encoded.decode("utf-8", errors="ignore")


def get_network_name(spec: NetworkSpec) -> str:
    folder_name = sanitize_name(spec.name)
    if folder_name == "":
        raise InvalidNetworkName(spec.name)
    return folder_name


def get_full_network_path(spec: NetworkSpec, paths: RuntimePaths) -> Path:
    return paths.working_dir / "network" / get_network_name(spec)


def get_config_path(paths: RuntimePaths, *relative_paths: str) -> Path:
    return paths.working_dir.joinpath("configs", *relative_paths)


def get_key_config_dir(spec: NetworkSpec, paths: RuntimePaths) -> Path:
    if spec.config_dir:
        return paths.working_dir / spec.config_dir
    return get_config_path(paths, get_network_name(spec))


def list_available_configs(paths: RuntimePaths) -> list[str]:
    config_path = get_config_path(paths)
    if not config_path.is_dir():
        return []
    return sorted(p.name for p in config_path.glob("*-config.json") if p.is_file())


def create_network(spec: NetworkSpec, paths: RuntimePaths) -> Path:
    """销毁并重建网络根目录，写入 {name}-config.json 快照。"""
    logger.info("正在构建网络目录...")
    network_path = get_full_network_path(spec, paths)
    if network_path.exists():
        shutil.rmtree(network_path)
    network_path.mkdir(parents=True)

    config_path = get_config_path(paths)
    config_path.mkdir(parents=True, exist_ok=True)
    snapshot = config_path / f"{get_network_name(spec)}-config.json"
    snapshot.write_text(
        json.dumps(spec.model_dump(mode="json", by_alias=True), indent=2) + "\n",
        encoding="utf-8",
    )
    return network_path


def _copy(source: Path, destination: Path, node_number: int) -> None:
    if not source.is_file():
        raise MissingKeyMaterial(node_number, source)
    shutil.copyfile(source, destination)


def _materialize_node(
    spec: NetworkSpec,
    node: NodeSpec,
    node_number: int,
    bundle: KeyBundle,
    qdata: Path,
    resources: GeneratedResources,
    peer_list: list[dict[str, str]],
) -> NodeArtifacts:
    quorum_dir = qdata / f"dd{node_number}"
    geth_dir = quorum_dir / "geth"
    key_dir = quorum_dir / "keystore"
    tm_dir = qdata / f"c{node_number}"
    quorum_dir.mkdir()
    geth_dir.mkdir()
    key_dir.mkdir()

    # 新旧两个文件名都需要，不同版本的 geth 读取不同的文件
    _copy(resources.permissioned_nodes_path, quorum_dir / PERMISSIONED_NODES_FILE, node_number)
    _copy(resources.permissioned_nodes_path, quorum_dir / "static-nodes.json", node_number)
    _copy(bundle.path("key"), key_dir / "key", node_number)
    _copy(bundle.path("nodekey"), geth_dir / "nodekey", node_number)
    _copy(bundle.path("password.txt"), key_dir / "password.txt", node_number)
    _copy(resources.genesis_path, quorum_dir / "genesis.json", node_number)

    artifacts = NodeArtifacts(
        node_number=node_number,
        quorum_dir=quorum_dir,
        geth_dir=geth_dir,
        keystore_dir=key_dir,
    )
    if not spec.is_tessera:
        return artifacts

    tm_dir.mkdir()
    _copy(bundle.path("tm.key"), tm_dir / "tm.key", node_number)
    _copy(bundle.path("tm.pub"), tm_dir / "tm.pub", node_number)

    if spec.is_bash:
        tessera_config = create_tessera_config(
            tm_dir,
            node_number,
            node.tm.ip,
            node.tm.third_party_port,
            node.tm.p2p_port,
            peer_list,
        )
        destination = tm_dir / tessera_config_name(node_number)
        destination.write_text(json.dumps(tessera_config, indent=2) + "\n", encoding="utf-8")
    else:
        template = resources.tessera_template_path
        if template is None:
            raise MissingKeyMaterial(node_number, resources.config_dir / "tessera-config-9.0.json")
        destination = tm_dir / "tessera-config-09.json"
        _copy(template, destination, node_number)

    return artifacts.model_copy(update={"tm_dir": tm_dir, "tessera_config": destination})


def materialize(spec: NetworkSpec, paths: RuntimePaths, resources: GeneratedResources) -> ArtifactTree:
    """
    在已重建的网络根目录下生成 qdata 目录。
    :raises MissingKeyMaterial: 节点缺少密钥或共享文件。
    :raises MaterializationFailed: 其它文件系统错误，附带失败的节点编号。
    """
    logger.info("正在构建 qdata 目录...")
    network_path = get_full_network_path(spec, paths)
    qdata = network_path / "qdata"
    logs = qdata / "logs"
    # 先创建日志目录，出错时外部工具仍可写日志
    logs.mkdir(parents=True, exist_ok=True)

    peer_list = build_peer_list(spec.nodes, spec.transaction_manager)
    bundles = {bundle.node_number: bundle for bundle in resources.key_bundles}
    tree = ArtifactTree(network_path=network_path, qdata=qdata, logs=logs)

    for node_number, node in enumerate(spec.nodes, start=1):
        bundle = bundles.get(node_number)
        if bundle is None:
            raise MissingKeyMaterial(node_number, resources.config_dir / f"key{node_number}")
        try:
            tree.nodes.append(
                _materialize_node(spec, node, node_number, bundle, qdata, resources, peer_list)
            )
        except OSError as e:
            logger.error(f"构建节点 {node_number} 的目录失败: {e}")
            raise MaterializationFailed(node_number, str(e)) from e

    logger.info(f"qdata 目录已就绪：{qdata}（{len(tree.nodes)} 个节点）")
    return tree
