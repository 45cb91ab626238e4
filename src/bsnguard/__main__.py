"""Run the bsnguard gateway: python -m bsnguard"""

import logging

import uvicorn

from bsnguard.config import load_config

config = load_config()
logging.basicConfig(
    level=config.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
uvicorn.run("bsnguard.app:create_app", host=config.host, port=config.port, factory=True)
