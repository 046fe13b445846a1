"""
网络生成流水线：校验 -> 重建网络目录 -> （下载依赖 ∥ 生成资源）-> 物化 qdata。

依赖下载只阻塞外部工具的后续调用，不阻塞目录物化；流水线结束前等待其完成。
"""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path

from loguru import logger

from ..errors import MissingTransactionManagerField, NetworkBusy
from ..schemas import BuildResult, NetworkSpec, RuntimePaths
from .binaries import download_and_copy_binaries, resolve_binary_paths
from .consensus import validate_consensus
from .layout import create_network, get_full_network_path, get_network_name, materialize
from .resources import CommandRunner, generate_resources_locally, generate_resources_remote, run_command

_BUILDING: set[Path] = set()
_BUILDING_LOCK = threading.Lock()


def _claim_network(network_path: Path) -> None:
    with _BUILDING_LOCK:
        if network_path in _BUILDING:
            raise NetworkBusy(network_path)
        _BUILDING.add(network_path)


def _release_network(network_path: Path) -> None:
    with _BUILDING_LOCK:
        _BUILDING.discard(network_path)


def validate_network_spec(spec: NetworkSpec) -> None:
    """所有在文件系统变更前必须通过的校验。"""
    get_network_name(spec)
    validate_consensus(spec)
    if spec.is_tessera:
        for node_number, node in enumerate(spec.nodes, start=1):
            if node.tm is None:
                raise MissingTransactionManagerField(node_number)


async def build_network(
    spec: NetworkSpec,
    paths: RuntimePaths | None = None,
    remote: bool | None = None,
    runner: CommandRunner = run_command,
    transport=None,
) -> BuildResult:
    """
    构建完整网络。
    :param remote: 为 None 时由网络描述决定（remote_generation 或 kubernetes 部署）。
    :param runner: 远程生成时执行外部命令的函数。
    :param transport: 下载依赖使用的 httpx 传输层。
    """
    paths = paths or RuntimePaths.from_config()
    validate_network_spec(spec)
    use_remote = spec.uses_remote_generation if remote is None else remote

    network_path = get_full_network_path(spec, paths)
    _claim_network(network_path)
    try:
        create_network(spec, paths)

        downloads = None
        if spec.is_bash:
            downloads = asyncio.create_task(download_and_copy_binaries(spec, paths, transport))
        try:
            if use_remote:
                resources = await asyncio.to_thread(generate_resources_remote, spec, paths, runner)
            else:
                resources = await generate_resources_locally(spec, paths)
            artifacts = materialize(spec, paths, resources)
        except BaseException:
            if downloads is not None:
                downloads.cancel()
                await asyncio.gather(downloads, return_exceptions=True)
            raise
        if downloads is not None:
            await downloads
    finally:
        _release_network(network_path)

    logger.info(f"网络 {get_network_name(spec)} 构建完成：{network_path}")
    return BuildResult(
        network_path=network_path,
        config_dir=resources.config_dir,
        remote=use_remote,
        artifacts=artifacts,
        binaries=resolve_binary_paths(spec, paths) if spec.is_bash else {},
    )


def build_network_sync(
    spec: NetworkSpec,
    paths: RuntimePaths | None = None,
    remote: bool | None = None,
) -> BuildResult:
    return asyncio.run(build_network(spec, paths, remote))
