"""
网络资源生成：本地生成（进程内生成密钥与创世文件）或远程生成（qubernetes 容器）。

两种方式最终都把资源归一到同一个密钥配置目录，返回相同结构的 GeneratedResources，
下游的 qdata 物化不关心资源来自哪里。
"""

from __future__ import annotations

import json
import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

import yaml
from loguru import logger

from ...config import config
from ..errors import MissingKeyMaterial, RemoteGenerationFailed, StaticNodesMismatch
from ..schemas import GeneratedResources, NetworkSpec, RuntimePaths, TransactionManagerKind
from .consensus import GENESIS_FILE, generate_consensus_config
from .keygen import copy_fixture_keys, generate_keys, load_key_bundles
from .layout import get_full_network_path, get_key_config_dir
from .peers import PERMISSIONED_NODES_FILE, build_static_nodes, read_static_nodes, write_static_nodes
from .tessera import TESSERA_TEMPLATE_FILE, create_tessera_template

_SERVICE_HOST_RE = re.compile(r"%QUORUM-NODE([0-9])_SERVICE_HOST%")


@dataclass(frozen=True)
class CommandResult:
    exit_code: int
    stdout: str
    stderr: str


CommandRunner = Callable[[Sequence[str], Path], CommandResult]


def run_command(cmd: Sequence[str], cwd: Path) -> CommandResult:
    """同步执行外部命令并捕获输出；不设超时，由被调用工具自身决定生命周期。"""
    logger.debug(f"执行命令: {' '.join(cmd)}")
    try:
        result = subprocess.run(list(cmd), cwd=str(cwd), capture_output=True, text=True)
    except FileNotFoundError as e:
        return CommandResult(exit_code=127, stdout="", stderr=str(e))
    return CommandResult(exit_code=result.returncode, stdout=result.stdout, stderr=result.stderr)


async def generate_resources_locally(spec: NetworkSpec, paths: RuntimePaths) -> GeneratedResources:
    logger.info("正在本地生成网络资源...")
    config_dir = get_key_config_dir(spec, paths)
    config_dir.mkdir(parents=True, exist_ok=True)

    if spec.generate_keys:
        key_bundles = await generate_keys(spec, config_dir)
    else:
        copy_fixture_keys(config_dir, paths)
        key_bundles = load_key_bundles(spec, config_dir)

    genesis_path = generate_consensus_config(config_dir, spec, key_bundles)
    static_nodes = build_static_nodes(spec.nodes, spec.consensus, key_bundles)
    permissioned_nodes_path = write_static_nodes(config_dir, static_nodes)

    tessera_template_path = None
    if spec.is_tessera:
        tessera_template_path = config_dir / TESSERA_TEMPLATE_FILE
        tessera_template_path.write_text(
            json.dumps(create_tessera_template(), indent=2) + "\n", encoding="utf-8"
        )

    return GeneratedResources(
        config_dir=config_dir,
        key_bundles=key_bundles,
        static_nodes=static_nodes,
        genesis_path=genesis_path,
        permissioned_nodes_path=permissioned_nodes_path,
        tessera_template_path=tessera_template_path,
    )


def build_kubernetes_resource(spec: NetworkSpec) -> str:
    """生成 qubernetes.yaml 内容。"""
    tm_version = "latest" if spec.tm_kind is TransactionManagerKind.PATH else spec.transaction_manager
    nodes = []
    for node_number, node in enumerate(spec.nodes, start=1):
        quorum: dict = {
            "consensus": spec.consensus.value,
            "Quorum_Version": spec.quorum_version,
        }
        if spec.is_raft:
            quorum["Raft_Port"] = node.quorum.raft_port
        entry: dict = {
            "Node_UserIdent": f"quorum-node{node_number}",
            "Key_Dir": f"key{node_number}",
            "quorum": {"quorum": quorum},
            "geth": {
                "network": {"id": spec.network_id, "public": False},
                "verbosity": 9,
            },
        }
        if spec.is_tessera and node.tm is not None:
            entry["quorum"]["tm"] = {
                "Name": "tessera",
                "Tm_Version": tm_version,
                "Port": node.tm.p2p_port,
                "Tessera_Config_Dir": f"key{node_number}",
            }
        nodes.append(entry)

    resource = {
        "sep_deployment_files": True,
        "genesis": {
            "consensus": spec.consensus.value,
            "Quorum_Version": spec.quorum_version,
            "Tm_Version": tm_version if spec.is_tessera else None,
            "Chain_Id": spec.network_id,
        },
        "nodes": nodes,
        "k8s": {
            "service": {"type": "NodePort"},
            "storage": {"Type": "PVC", "Capacity": "200Mi"},
        },
    }
    return yaml.safe_dump(resource, sort_keys=False)


def _rename_keystore_files(output_dir: Path) -> None:
    # geth 生成的 keystore 文件名形如 UTC--<time>--<address>，统一改名为 key
    for path in output_dir.rglob("UTC*"):
        if path.is_file():
            path.rename(path.with_name("key"))


def patch_docker_service_hosts(permissioned_nodes: Path) -> None:
    """
    仅用于 docker-compose：将 %QUORUM-NODE{d}_SERVICE_HOST% 替换为固定的容器网络地址。
    该规则依赖 compose 网络的地址分配（172.16.239.1{d}），且只匹配一位节点编号。
    """
    text = permissioned_nodes.read_text(encoding="utf-8")
    patched = _SERVICE_HOST_RE.sub(lambda m: f"{config.docker_network_prefix}{m.group(1)}", text)
    permissioned_nodes.write_text(patched, encoding="utf-8")


def generate_resources_remote(
    spec: NetworkSpec,
    paths: RuntimePaths,
    runner: CommandRunner = run_command,
) -> GeneratedResources:
    """
    通过 qubernetes 容器生成资源。
    :raises RemoteGenerationFailed: 任意一步 docker 命令以非零状态退出，不重试。
    """
    logger.info("正在拉取最新的 qubernetes 容器并生成网络资源...")
    network_path = get_full_network_path(spec, paths)
    config_dir = get_key_config_dir(spec, paths)
    out_dir = network_path / "out"
    remote_output_dir = out_dir / "config"

    manifest = network_path / "qubernetes.yaml"
    manifest.write_text(build_kubernetes_resource(spec), encoding="utf-8")

    if not spec.generate_keys:
        remote_output_dir.mkdir(parents=True, exist_ok=True)
        copy_fixture_keys(remote_output_dir, paths)

    init_script = "qube-init" if spec.is_kubernetes else "quorum-init"
    commands = [
        ["docker", "ps"],
        ["docker", "pull", config.qubernetes_image],
        [
            "docker", "run",
            "-v", f"{manifest}:/qubernetes/qubernetes.yaml",
            "-v", f"{out_dir}:/qubernetes/out",
            config.qubernetes_image,
            f"./{init_script}", "--action=update", "qubernetes.yaml",
        ],
    ]
    for cmd in commands:
        result = runner(cmd, network_path)
        if result.exit_code != 0:
            logger.error(f"远程生成失败: {' '.join(cmd)}\n{result.stderr or result.stdout}")
            raise RemoteGenerationFailed(result.exit_code, result.stdout, result.stderr)

    if not remote_output_dir.is_dir():
        raise MissingKeyMaterial(None, remote_output_dir)
    _rename_keystore_files(remote_output_dir)
    if spec.is_docker:
        patch_docker_service_hosts(remote_output_dir / PERMISSIONED_NODES_FILE)

    config_dir.mkdir(parents=True, exist_ok=True)
    shutil.copytree(remote_output_dir, config_dir, dirs_exist_ok=True)

    key_bundles = load_key_bundles(spec, config_dir)
    permissioned_nodes_path = config_dir / PERMISSIONED_NODES_FILE
    if not permissioned_nodes_path.is_file():
        raise MissingKeyMaterial(None, permissioned_nodes_path)
    static_nodes = read_static_nodes(config_dir)
    if len(static_nodes) != len(spec.nodes):
        logger.error(f"远程生成的节点列表数量 ({len(static_nodes)}) 与配置的节点数 ({len(spec.nodes)}) 不一致")
        raise StaticNodesMismatch(len(spec.nodes), len(static_nodes), permissioned_nodes_path)

    tessera_template_path = config_dir / TESSERA_TEMPLATE_FILE
    return GeneratedResources(
        config_dir=config_dir,
        key_bundles=key_bundles,
        static_nodes=static_nodes,
        genesis_path=config_dir / GENESIS_FILE,
        permissioned_nodes_path=permissioned_nodes_path,
        tessera_template_path=tessera_template_path if tessera_template_path.is_file() else None,
    )
