"""
Orders API — 起動スクリプト

python -m orders_api
SIGINT / SIGTERM は uvicorn が受け取り、lifespan の終了処理で Redis 接続を閉じる。
"""

import asyncio
import logging

import uvicorn

from .config import load_config
from .main import create_app

logger = logging.getLogger(__name__)


async def main() -> None:
    config = load_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    server = uvicorn.Server(
        uvicorn.Config(
            create_app(config),
            host=config.host,
            port=config.port,
            loop="asyncio",
            log_config=None,
            timeout_keep_alive=10,
        )
    )
    logger.info("Starting order service on %s:%d", config.host, config.port)
    await server.serve()
    logger.info("Order service stopped")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
