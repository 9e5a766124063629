"""Command-line entry point: run the helper against the simulated sensor."""

from __future__ import annotations

import asyncio
from typing import Optional

from .app import KinectHelperApp
from .config import HelperSettings, parse_cli_args
from .core import configure_logging, get_module_logger

logger = get_module_logger("Main")


async def main(argv: Optional[list[str]] = None) -> None:
    args = parse_cli_args(argv)
    try:
        configure_logging(
            level=args.log_level,
            console=getattr(args, "console_output", True),
            log_file=getattr(args, "log_file", None),
        )
    except ValueError:
        configure_logging(
            level="info",
            console=getattr(args, "console_output", True),
            log_file=getattr(args, "log_file", None),
        )
        logger.warning("Unknown log level '%s'; defaulting to info", args.log_level)

    settings = HelperSettings.from_args(args)
    logger.debug("Settings: %s", settings)

    app = KinectHelperApp(settings)
    app.install_signal_handlers(asyncio.get_running_loop())
    await app.run()


def run(argv: Optional[list[str]] = None) -> None:
    asyncio.run(main(argv))


if __name__ == "__main__":
    run()
