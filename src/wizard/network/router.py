"""
文件功能：
    网络生成的 FastAPI 路由：接收问答答案或网络描述，生成部署产物。

公开接口：
    - POST /network/answers -> NetworkSpec
    - POST /network/build -> BuildResult
    - GET /network/configs -> List[str]
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, HTTPException
from loguru import logger

from . import services
from .errors import NetworkBuildError, NetworkBusy
from .schemas import BuildResult, NetworkSpec, RuntimePaths, WizardAnswers

router = APIRouter(prefix="/network", tags=["Network Wizard"])


@router.post("/answers", response_model=NetworkSpec, response_model_by_alias=True)
async def post_answers(answers: WizardAnswers) -> NetworkSpec:
    """
    将问答答案转换为网络描述（不写入磁盘）。
    """
    try:
        spec = services.create_config_from_answers(answers)
        services.validate_network_spec(spec)
        return spec
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/build", response_model=BuildResult)
async def post_build(spec: NetworkSpec) -> BuildResult:
    """
    根据网络描述生成完整的网络目录。
    """
    try:
        return await services.build_network(spec, RuntimePaths.from_config())
    except ValueError as e:
        # 输入校验类错误，返回 400
        raise HTTPException(status_code=400, detail=str(e))
    except NetworkBusy as e:
        raise HTTPException(status_code=409, detail=str(e))
    except (NetworkBuildError, RuntimeError, OSError) as e:
        logger.error(f"网络生成失败: {e}")
        raise HTTPException(status_code=500, detail=f"网络生成失败: {str(e)}")


@router.get("/configs", response_model=List[str])
async def get_configs() -> List[str]:
    """
    列出已生成的网络配置快照。
    """
    return services.list_available_configs(RuntimePaths.from_config())
