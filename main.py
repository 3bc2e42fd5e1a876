from __future__ import annotations

import logging

import uvicorn

from whisker.app.api.app import create_app
from whisker.core.config import load_app_config

app = create_app()


def run() -> None:
    config = load_app_config()
    logging.basicConfig(level=config.log_level)
    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    run()
