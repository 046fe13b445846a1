"""
测试 router.py 模块。
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.wizard.config import config
from src.wizard.network import services
from src.wizard.network.errors import NetworkBusy
from src.wizard.network.router import router
from src.wizard.network.tests.conftest import make_nodes

app = FastAPI()
app.include_router(router)

client = TestClient(app)


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path, monkeypatch, no_downloads):
    monkeypatch.setattr(config, "working_dir", str(tmp_path / "work"))
    monkeypatch.setattr(config, "cache_home", str(tmp_path / "cache"))
    return tmp_path


def test_answers_endpoint():
    response = client.post("/network/answers", json={"name": "demo", "numberNodes": 2})

    assert response.status_code == 200
    body = response.json()
    assert body["consensus"] == "raft"
    assert body["nodes"][1]["quorum"]["devP2pPort"] == 21001


def test_answers_endpoint_invalid_name():
    response = client.post("/network/answers", json={"name": "..."})
    assert response.status_code == 400


def test_build_endpoint(isolated_dirs):
    spec = {"name": "demo", "consensus": "raft", "nodes": make_nodes(2)}
    response = client.post("/network/build", json=spec)

    assert response.status_code == 200
    body = response.json()
    assert len(body["artifacts"]["nodes"]) == 2
    assert (isolated_dirs / "work" / "network" / "demo" / "qdata" / "dd2" / "genesis.json").is_file()

    configs = client.get("/network/configs")
    assert configs.json() == ["demo-config.json"]


def test_build_endpoint_missing_raft_port():
    spec = {"name": "demo", "consensus": "raft", "nodes": make_nodes(2, raft=False)}
    response = client.post("/network/build", json=spec)
    assert response.status_code == 400
    assert "raftPort" in response.json()["detail"]


def test_build_endpoint_validation_error():
    response = client.post("/network/build", json={"name": "demo", "consensus": "raft", "nodes": []})
    assert response.status_code == 422


def test_build_endpoint_missing_fixture_keys(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "fixture_keys_dir", str(tmp_path / "absent"))
    spec = {"name": "demo", "consensus": "raft", "generateKeys": False, "nodes": make_nodes(1)}
    response = client.post("/network/build", json=spec)
    assert response.status_code == 500


def test_build_endpoint_busy_network(monkeypatch):
    async def busy(spec, paths):
        raise NetworkBusy(paths.working_dir / "network" / spec.name)

    monkeypatch.setattr(services, "build_network", busy)
    spec = {"name": "demo", "consensus": "raft", "nodes": make_nodes(1)}
    response = client.post("/network/build", json=spec)
    assert response.status_code == 409
