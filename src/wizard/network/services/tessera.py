"""
Tessera 运行配置生成。

- create_tessera_config: bash 部署时为每个节点生成完整配置
- create_tessera_template: 其他部署方式使用的模板，端口与路径由外部渲染器替换
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

TESSERA_TEMPLATE_FILE = "tessera-config-9.0.json"


def tessera_config_name(node_number: int) -> str:
    return f"tessera-config-09-{node_number}.json"


def create_tessera_config(
    tm_dir: Path,
    node_number: int,
    ip: str,
    third_party_port: int,
    p2p_port: int,
    peer_list: Sequence[dict[str, str]],
) -> dict:
    return {
        "useWhiteList": False,
        "jdbc": {
            "username": "sa",
            "password": "",
            "url": f"jdbc:h2:{tm_dir}/db{node_number};MODE=Oracle;TRACE_LEVEL_SYSTEM_OUT=0",
            "autoCreateTables": True,
        },
        "serverConfigs": [
            {
                "app": "ThirdParty",
                "enabled": True,
                "serverAddress": f"http://{ip}:{third_party_port}",
                "communicationType": "REST",
            },
            {
                "app": "Q2T",
                "enabled": True,
                "serverAddress": f"unix:{tm_dir}/tm.ipc",
                "communicationType": "REST",
            },
            {
                "app": "P2P",
                "enabled": True,
                "serverAddress": f"http://{ip}:{p2p_port}",
                "sslConfig": {"tls": "OFF"},
                "communicationType": "REST",
            },
        ],
        "peer": [dict(peer) for peer in peer_list],
        "keys": {
            "passwords": [],
            "keyData": [
                {
                    "privateKeyPath": f"{tm_dir}/tm.key",
                    "publicKeyPath": f"{tm_dir}/tm.pub",
                }
            ],
        },
        "alwaysSendTo": [],
    }


def create_tessera_template() -> dict:
    """占位符模板：${DDIR}、${PORT} 等由部署脚本或 compose 渲染时替换。"""
    return {
        "useWhiteList": False,
        "jdbc": {
            "username": "sa",
            "password": "",
            "url": "jdbc:h2:${DDIR}/db;MODE=Oracle;TRACE_LEVEL_SYSTEM_OUT=0",
            "autoCreateTables": True,
        },
        "serverConfigs": [
            {
                "app": "ThirdParty",
                "enabled": True,
                "serverAddress": "http://${HOSTNAME}:${THIRD_PARTY_PORT}",
                "communicationType": "REST",
            },
            {
                "app": "Q2T",
                "enabled": True,
                "serverAddress": "unix:${DDIR}/tm.ipc",
                "communicationType": "REST",
            },
            {
                "app": "P2P",
                "enabled": True,
                "serverAddress": "http://${HOSTNAME}:${PORT}",
                "sslConfig": {"tls": "OFF"},
                "communicationType": "REST",
            },
        ],
        "peer": [{"url": "${PEER_URL}"}],
        "keys": {
            "passwords": [],
            "keyData": [
                {
                    "privateKeyPath": "${DDIR}/tm.key",
                    "publicKeyPath": "${DDIR}/tm.pub",
                }
            ],
        },
        "alwaysSendTo": [],
    }
