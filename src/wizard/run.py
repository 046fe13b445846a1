#!/usr/bin/env python
import os
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv
from loguru import logger

if __name__ == "__main__":
    load_dotenv(Path.cwd() / ".env")
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    logger.remove()
    logger.add(sys.stderr, level=log_level)
    logger.info("Quorum Network Wizard, start running!")

    uvicorn.run(
        "src.wizard.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        log_level=log_level.lower(),
    )
