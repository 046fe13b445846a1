"""
网络生成服务模块集合。

此包包含网络生成流水线的各个环节，按功能拆分以提高可维护性。
"""

from .answers import create_config_from_answers
from .layout import list_available_configs
from .pipeline import build_network, build_network_sync, validate_network_spec

__all__ = [
    "build_network",
    "build_network_sync",
    "create_config_from_answers",
    "list_available_configs",
    "validate_network_spec",
]
