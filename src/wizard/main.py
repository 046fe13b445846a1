"""
FastAPI 应用入口点。
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from src.wizard.config import config
from src.wizard.network.router import router as network_router

app = FastAPI(title="Quorum Network Wizard")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(network_router, prefix="/v1")

logger.info(f"config: {config.model_dump_json(indent=4)}")
