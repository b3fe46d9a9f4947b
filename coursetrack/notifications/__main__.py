from __future__ import annotations

import asyncio
import logging

from coursetrack.app_state import build_context
from coursetrack.db import Base, engine


logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s %(message)s')
logger = logging.getLogger('coursetrack.notifications')


async def _serve() -> None:
    ctx = build_context()
    logger.info('standalone_notification_worker worker_id=%s', ctx.worker.worker_id)
    await ctx.worker.serve_forever()


def main() -> None:
    Base.metadata.create_all(bind=engine)
    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        logger.info('standalone_notification_worker_stopped')


if __name__ == '__main__':
    main()
