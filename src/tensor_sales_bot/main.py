from __future__ import annotations

import asyncio
import logging
import sys

from .config import load_settings
from .service import SalesPipeline

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def _main() -> int:
    try:
        settings = load_settings()
    except ValueError as exc:
        configure_logging("INFO")
        logger.error("Invalid configuration: %s", exc)
        return 1

    configure_logging(settings.log_level)
    pipeline = SalesPipeline(settings)

    try:
        await pipeline.start()
    except Exception:
        logger.exception("Startup failed")
        await pipeline.close()
        return 1

    try:
        await pipeline.run()
    except Exception:
        return 1
    # No reconnect: a closed stream ends the process.
    return 1


def main() -> None:
    try:
        code = asyncio.run(_main())
    except KeyboardInterrupt:
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    main()
