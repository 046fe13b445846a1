"""
网络生成测试的公共夹具：隔离的运行目录、节点描述工厂、禁用真实下载。
"""

from __future__ import annotations

import asyncio

import pytest
from pydantic.alias_generators import to_camel

import src.wizard.network.services.pipeline as pipeline
from src.wizard.config import config
from src.wizard.network.schemas import NetworkSpec, RuntimePaths
from src.wizard.network.services.keygen import generate_keys


def make_nodes(count: int, raft: bool = True, tessera: bool = False) -> list[dict]:
    nodes = []
    for i in range(count):
        quorum = {"ip": "127.0.0.1", "devP2pPort": 21000 + i}
        if raft:
            quorum["raftPort"] = 50401 + i
        node: dict = {"quorum": quorum}
        if tessera:
            node["tm"] = {"ip": "127.0.0.1", "thirdPartyPort": 9081 + i, "p2pPort": 9001 + i}
        nodes.append(node)
    return nodes


@pytest.fixture
def make_spec():
    def _make(
        count: int = 3,
        consensus: str = "raft",
        transaction_manager: str = "none",
        deployment: str = "bash",
        **overrides,
    ) -> NetworkSpec:
        data = {
            "name": "demo",
            "consensus": consensus,
            "transactionManager": transaction_manager,
            "deployment": deployment,
            "networkId": 10,
            "nodes": make_nodes(
                count,
                raft=consensus == "raft",
                tessera=transaction_manager != "none",
            ),
        }
        # 覆盖项可以用字段名或 camelCase 别名
        data.update({to_camel(key): value for key, value in overrides.items()})
        return NetworkSpec.model_validate(data)

    return _make


@pytest.fixture
def runtime_paths(tmp_path) -> RuntimePaths:
    return RuntimePaths(working_dir=tmp_path / "work", cache_home=tmp_path / "cache")


@pytest.fixture
def no_downloads(monkeypatch):
    """流水线中的依赖下载替换为空操作。"""
    calls = []

    async def fake_download(spec, paths, transport=None):
        calls.append(spec.name)
        return {}

    monkeypatch.setattr(pipeline, "download_and_copy_binaries", fake_download)
    return calls


@pytest.fixture
def fixture_keys(tmp_path, monkeypatch, make_spec):
    """生成一套预置密钥（含 tm 密钥），并将 fixture_keys_dir 指向它。"""
    fixture_dir = tmp_path / "fixture-keys"
    spec = make_spec(count=3, transaction_manager="tessera-1.6")
    asyncio.run(generate_keys(spec, fixture_dir))
    monkeypatch.setattr(config, "fixture_keys_dir", str(fixture_dir))
    return fixture_dir
