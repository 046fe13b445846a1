"""
外部可执行文件的下载与缓存。

缓存布局：{cache_home}/bin/{tool}/{version}/{binary_name}。
每个工具的下载写入各自独立的路径，因此可以并发执行。
"""

from __future__ import annotations

import asyncio
import os
import sys
import tarfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import httpx
from loguru import logger

from ...config import config
from ..errors import BinaryDownloadFailed
from ..schemas import NetworkSpec, RuntimePaths, TransactionManagerKind


class Platform(str, Enum):
    LINUX = "linux"
    MACOS = "darwin"


@dataclass(frozen=True)
class BinaryInfo:
    tool: str
    name: str
    url_template: str
    archive: bool = False


def current_platform() -> Platform:
    if sys.platform.startswith("linux"):
        return Platform.LINUX
    if sys.platform == "darwin":
        return Platform.MACOS
    raise ValueError(f"不支持的平台: {sys.platform}")


def binary_info(tool: str, version: str) -> BinaryInfo:
    if tool == "quorum":
        return BinaryInfo(tool, "geth", config.quorum_download_url, archive=True)
    elif tool == "tessera":
        return BinaryInfo(tool, f"tessera-app-{version}-app.jar", config.tessera_download_url)
    elif tool == "cakeshop":
        return BinaryInfo(tool, "cakeshop.war", config.cakeshop_download_url)
    else:
        raise ValueError(f"未知的工具: {tool}")


def binary_path(tool: str, version: str, paths: RuntimePaths) -> Path:
    return paths.cache_home / "bin" / tool / version / binary_info(tool, version).name


def path_to_quorum_binary(quorum_version: str, paths: RuntimePaths) -> str:
    if quorum_version == "PATH":
        return "geth"
    return str(binary_path("quorum", quorum_version, paths))


def path_to_tessera_jar(transaction_manager: str, paths: RuntimePaths) -> str:
    if transaction_manager == "PATH":
        return "$TESSERA_JAR"
    return str(binary_path("tessera", transaction_manager, paths))


def path_to_cakeshop(version: str, paths: RuntimePaths) -> str:
    return str(binary_path("cakeshop", version, paths))


def resolve_binary_paths(spec: NetworkSpec, paths: RuntimePaths) -> dict[str, str]:
    """外部脚本渲染器使用的可执行文件路径。"""
    resolved = {"quorum": path_to_quorum_binary(spec.quorum_version, paths)}
    if spec.is_tessera:
        resolved["tessera"] = path_to_tessera_jar(spec.transaction_manager, paths)
    if spec.cakeshop != "none":
        resolved["cakeshop"] = path_to_cakeshop(spec.cakeshop, paths)
    return resolved


def required_binaries(spec: NetworkSpec) -> list[tuple[str, str]]:
    required: list[tuple[str, str]] = []
    if spec.quorum_version != "PATH":
        required.append(("quorum", spec.quorum_version))
    if spec.tm_kind is TransactionManagerKind.TESSERA:
        required.append(("tessera", spec.transaction_manager))
    if spec.cakeshop != "none":
        required.append(("cakeshop", spec.cakeshop))
    return required


def _extract_binary(archive: Path, member_name: str, target: Path) -> None:
    extracting = target.with_name(target.name + ".extracting")
    with tarfile.open(archive, "r:gz") as tar:
        member = next(
            (m for m in tar.getmembers() if m.isfile() and Path(m.name).name == member_name),
            None,
        )
        if member is None:
            raise RuntimeError(f"压缩包中未找到 {member_name}: {archive}")
        source = tar.extractfile(member)
        with source, open(extracting, "wb") as f:
            f.write(source.read())
    extracting.rename(target)


async def download_if_missing(
    client: httpx.AsyncClient,
    tool: str,
    version: str,
    paths: RuntimePaths,
) -> Path:
    """若缓存中不存在则下载并赋予可执行权限，返回缓存路径。"""
    info = binary_info(tool, version)
    target = binary_path(tool, version, paths)
    if target.exists():
        logger.debug(f"使用缓存的 {tool} {version}：{target}")
        return target

    target.parent.mkdir(parents=True, exist_ok=True)
    url = info.url_template.format(version=version, platform=current_platform().value)
    tmp_path = target.with_name(target.name + ".downloading")
    logger.info(f"开始下载 {tool} {version}：{url}")
    try:
        async with client.stream("GET", url, follow_redirects=True) as r:
            r.raise_for_status()
            with open(tmp_path, "wb") as f:
                async for chunk in r.aiter_bytes():
                    if chunk:
                        f.write(chunk)
        if info.archive:
            _extract_binary(tmp_path, info.name, target)
            tmp_path.unlink()
        else:
            tmp_path.rename(target)
        os.chmod(target, 0o755)
    except Exception:
        tmp_path.unlink(missing_ok=True)
        raise
    logger.info(f"{tool} {version} 下载完成：{target}")
    return target


async def download_and_copy_binaries(
    spec: NetworkSpec,
    paths: RuntimePaths,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, Path]:
    """
    并发检查并下载所需的全部工具，等待全部完成。
    :raises BinaryDownloadFailed: 汇总所有失败的下载。
    """
    required = required_binaries(spec)
    if not required:
        return {}
    logger.info("正在下载依赖...")
    async with httpx.AsyncClient(timeout=config.download_timeout, transport=transport) as client:
        results = await asyncio.gather(
            *(download_if_missing(client, tool, version, paths) for tool, version in required),
            return_exceptions=True,
        )

    failures: list[tuple[str, BaseException]] = []
    downloaded: dict[str, Path] = {}
    for (tool, version), result in zip(required, results):
        if isinstance(result, BaseException):
            logger.error(f"下载 {tool} {version} 失败：{result}")
            failures.append((f"{tool}@{version}", result))
        else:
            downloaded[tool] = result
    if failures:
        raise BinaryDownloadFailed(failures)
    return downloaded
