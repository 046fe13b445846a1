"""
命令行入口：根据配置快照（{name}-config.json）或问答答案文件生成网络。

用法：
    python -m src.wizard.cli build configs/demo-config.json
    python -m src.wizard.cli build answers.json --answers --remote
    python -m src.wizard.cli configs

任何致命错误都会输出错误信息并以状态码 1 退出。
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Sequence

from loguru import logger

from src.wizard.config import config
from src.wizard.network.errors import NetworkBuildError
from src.wizard.network.schemas import NetworkSpec, RuntimePaths, WizardAnswers
from src.wizard.network.services import (
    build_network_sync,
    create_config_from_answers,
    list_available_configs,
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="quorum-wizard", description="生成多节点 Quorum 网络的部署产物")
    parser.add_argument("--working-dir", help="工作目录，默认为当前目录")
    parser.add_argument("--cache-home", help="二进制缓存目录，默认为 ~/.quorum-wizard")
    sub = parser.add_subparsers(dest="command", required=True)

    build = sub.add_parser("build", help="生成网络目录")
    build.add_argument("config_file", type=Path, help="网络描述或问答答案的 JSON 文件")
    build.add_argument("--answers", action="store_true", help="输入文件为问答答案")
    mode = build.add_mutually_exclusive_group()
    mode.add_argument("--remote", dest="remote", action="store_true", default=None, help="使用 qubernetes 容器生成资源")
    mode.add_argument("--local", dest="remote", action="store_false", help="在本地生成资源")

    sub.add_parser("configs", help="列出已生成的配置快照")
    return parser


def _runtime_paths(args: argparse.Namespace) -> RuntimePaths:
    return RuntimePaths(
        working_dir=Path(args.working_dir).absolute() if args.working_dir else config.resolved_working_dir(),
        cache_home=Path(args.cache_home).absolute() if args.cache_home else config.resolved_cache_home(),
    )


def _load_spec(config_file: Path, from_answers: bool) -> NetworkSpec:
    data = json.loads(config_file.read_text(encoding="utf-8"))
    if from_answers:
        return create_config_from_answers(WizardAnswers.model_validate(data))
    return NetworkSpec.model_validate(data)


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logger.remove()
    logger.add(sys.stderr, level=config.log_level.upper())
    paths = _runtime_paths(args)

    if args.command == "configs":
        for name in list_available_configs(paths):
            print(name)
        return 0

    try:
        spec = _load_spec(args.config_file, args.answers)
        result = build_network_sync(spec, paths, args.remote)
    except (NetworkBuildError, ValueError, OSError) as e:
        logger.error(f"网络生成失败: {e}")
        return 1

    print(result.model_dump_json(indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
