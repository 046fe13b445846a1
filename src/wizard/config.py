"""
配置加载模块：入参、环境变量、.env、wizard.json（或 WIZARD_CONFIG_FILE 指定的文件）多来源合并。
公开接口：
- Config: 读取配置的设置类
- config: Config 的单例实例
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Tuple

from loguru import logger
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


def _read_json_config() -> Dict[str, Any]:
    cfg_path = os.environ.get("WIZARD_CONFIG_FILE")
    path = Path(cfg_path) if cfg_path else Path.cwd() / "wizard.json"
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"忽略无法解析的配置文件 {path}: {e}")
        return {}
    return data if isinstance(data, dict) else {}


class JsonFileSettingsSource(PydanticBaseSettingsSource):
    """wizard.json 中的键与 Config 字段同名。"""

    def __init__(self, settings_cls: type[BaseSettings]):
        super().__init__(settings_cls)
        self._data = _read_json_config()

    def get_field_value(self, field, field_name):  # type: ignore[override]
        return self._data.get(field_name), field_name, False

    def __call__(self) -> Dict[str, Any]:
        return dict(self._data)


class Config(BaseSettings):
    # 为空时分别回退到 Path.cwd() 与 ~/{wizard_home}
    working_dir: str = ""
    wizard_home: str = ".quorum-wizard"
    cache_home: str = ""

    key_password: str = ""
    fixture_keys_dir: str = "7nodes"

    qubernetes_image: str = "quorumengineering/qubernetes:latest"
    docker_network_prefix: str = "172.16.239.1"

    quorum_download_url: str = (
        "https://artifacts.consensys.net/public/go-quorum/raw/versions/v{version}/geth_v{version}_{platform}_amd64.tar.gz"
    )
    tessera_download_url: str = (
        "https://oss.sonatype.org/service/local/repositories/releases/content/"
        "com/jpmorgan/quorum/tessera-app/{version}/tessera-app-{version}-app.jar"
    )
    cakeshop_download_url: str = (
        "https://github.com/jpmorganchase/cakeshop/releases/download/v{version}/cakeshop-{version}.war"
    )
    download_timeout: int = 300

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def resolved_working_dir(self) -> Path:
        return Path(self.working_dir).absolute() if self.working_dir else Path.cwd()

    def resolved_cache_home(self) -> Path:
        if self.cache_home:
            return Path(self.cache_home).absolute()
        return Path.home() / self.wizard_home

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """入参 > 环境变量 > .env > wizard.json > secrets。"""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonFileSettingsSource(settings_cls),
            file_secret_settings,
        )


config = Config()
