"""
网络生成流水线的异常定义。

所有异常均继承自 NetworkBuildError；输入类错误同时继承 ValueError，
执行类错误同时继承 RuntimeError，便于路由层按类型映射 HTTP 状态码。
"""

from __future__ import annotations

from typing import Sequence


class NetworkBuildError(Exception):
    """网络生成失败的基类。"""


class InvalidNetworkName(NetworkBuildError, ValueError):
    """网络名称经过清洗后为空。"""

    def __init__(self, name: str) -> None:
        super().__init__(f"网络名称为空或包含非法字符: {name!r}")
        self.name = name


class UnsupportedConsensusKind(NetworkBuildError, ValueError):
    """不支持的共识类型。"""

    def __init__(self, consensus: object) -> None:
        super().__init__(f"不支持的共识类型: {consensus}")
        self.consensus = consensus


class MissingConsensusField(NetworkBuildError, ValueError):
    """所选共识缺少必需字段（例如 raft 下缺少 raftPort）。"""

    def __init__(self, node_number: int, field: str) -> None:
        super().__init__(f"节点 {node_number} 缺少共识字段: {field}")
        self.node_number = node_number
        self.field = field


class MissingTransactionManagerField(NetworkBuildError, ValueError):
    """已配置交易管理器，但节点缺少 tm 配置。"""

    def __init__(self, node_number: int) -> None:
        super().__init__(f"节点 {node_number} 缺少交易管理器（tm）配置")
        self.node_number = node_number


class MissingKeyMaterial(NetworkBuildError):
    """节点缺少预期的密钥文件；node_number 为 None 表示整套密钥目录缺失。"""

    def __init__(self, node_number: int | None, path: object) -> None:
        if node_number is None:
            super().__init__(f"缺少密钥材料: {path}")
        else:
            super().__init__(f"节点 {node_number} 缺少密钥材料: {path}")
        self.node_number = node_number
        self.path = path


class MaterializationFailed(NetworkBuildError, RuntimeError):
    """写入节点目录时发生文件系统错误。"""

    def __init__(self, node_number: int, reason: str) -> None:
        super().__init__(f"构建节点 {node_number} 的目录失败: {reason}")
        self.node_number = node_number


class RemoteGenerationFailed(NetworkBuildError, RuntimeError):
    """远程（容器化）生成工具以非零状态退出。"""

    def __init__(self, exit_code: int, stdout: str, stderr: str) -> None:
        super().__init__(f"远程生成失败 (exit={exit_code}): {stderr.strip() or stdout.strip()}")
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr


class BinaryDownloadFailed(NetworkBuildError, RuntimeError):
    """一个或多个二进制下载失败，failures 中保存全部失败原因。"""

    def __init__(self, failures: Sequence[tuple[str, BaseException]]) -> None:
        detail = "; ".join(f"{tool}: {err}" for tool, err in failures)
        super().__init__(f"下载依赖失败: {detail}")
        self.failures = list(failures)


class NetworkBusy(NetworkBuildError, RuntimeError):
    """同一网络目录正在被另一次构建占用。"""

    def __init__(self, network_path: object) -> None:
        super().__init__(f"网络目录正在构建中: {network_path}")
        self.network_path = network_path


class StaticNodesMismatch(NetworkBuildError, RuntimeError):
    """远程生成的节点列表与配置的节点数不一致，无法按编号对应。"""

    def __init__(self, expected: int, actual: int, path: object) -> None:
        super().__init__(f"节点列表 {path} 含 {actual} 项，配置的节点数为 {expected}")
        self.expected = expected
        self.actual = actual
        self.path = path
