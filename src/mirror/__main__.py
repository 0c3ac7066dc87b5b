"""Mirror entrypoint. Loads config, logs in, restores mirrors, relays until stopped."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Any

from loguru import logger

from mirror import __version__
from mirror.adapters.discord import DiscordAdapter
from mirror.config import Config, cfg, load_config_with_env
from mirror.events import config_reload
from mirror.gateway import Bus, ConfigStore, MirrorEngine

# Third-party libraries to intercept and route through loguru
_INTERCEPTED_LIBRARIES = ["discord", "discord.client", "discord.gateway", "discord.http"]


def _intercept_logging(level: str) -> None:
    """Route third-party library logs to loguru."""

    class InterceptHandler(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            try:
                log_level = logger.level(record.levelname).name
            except ValueError:
                log_level = str(record.levelno)
            msg = record.getMessage().replace("{", "{{").replace("}", "}}")
            logger.patch(
                lambda r: r.update(
                    name=record.name,
                    function=record.funcName,
                    line=record.lineno,
                ),
            ).opt(exception=record.exc_info).log(log_level, msg)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for lib in _INTERCEPTED_LIBRARIES:
        lib_logger = logging.getLogger(lib)
        lib_logger.handlers = [InterceptHandler()]
        lib_logger.propagate = False
        # discord.gateway is chatty at DEBUG
        lib_logger.setLevel("INFO" if level == "DEBUG" else level)


def _safe_message_filter(record: Any) -> bool:
    """Escape braces/angles in log messages to prevent format/tag errors."""
    if isinstance(record.get("message"), str):
        msg = record["message"]
        msg = msg.replace("{", "{{").replace("}", "}}").replace("<", "\\<")
        record["message"] = msg
    return True


def setup_logging(verbose: bool = False) -> None:
    """Configure loguru. Replace default logging.
    Level: verbose=True or LOG_LEVEL=DEBUG enables DEBUG; otherwise INFO."""
    level = "INFO"
    if verbose:
        level = "DEBUG"
    else:
        env_level = (os.environ.get("LOG_LEVEL") or "").upper()
        if env_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
            level = env_level

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=("<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> | {message}"),
        filter=_safe_message_filter,
    )
    _intercept_logging(level)


def reload_config(config_path: Path) -> Config:
    """Load config from path and update global cfg."""
    data = load_config_with_env(config_path)
    cfg.reload(data)
    return cfg


def main() -> None:
    """Main entrypoint."""
    parser = argparse.ArgumentParser(description="Channel mirror: relay Discord channels, optionally as the author")
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    args = parser.parse_args()

    setup_logging(args.verbose)

    if not args.config.exists():
        logger.error("Config file not found: {}", args.config)
        sys.exit(1)

    config = reload_config(args.config)
    logger.info("Config loaded from {}", args.config)

    bus = Bus()

    def on_sighup(*a: object, **kw: object) -> None:
        reload_config(args.config)
        _, evt = config_reload()
        bus.publish("main", evt)
        logger.info("Config reloaded (SIGHUP)")

    signal.signal(signal.SIGHUP, on_sighup)

    store = ConfigStore(config.state_file)
    logger.info("Mirror state file: {}", store.path)

    try:
        code = asyncio.run(_run(bus, store))
    except KeyboardInterrupt:
        code = 0
    sys.exit(code)


async def _run(bus: Bus, store: ConfigStore) -> int:
    """Async run loop. Log in, restore mirrors, then wait."""
    adapter = DiscordAdapter(bus)
    await adapter.start()
    if not await adapter.wait_until_ready():
        await adapter.stop()
        return 1

    engine = MirrorEngine(bus, adapter, store)
    await engine.start()
    logger.info("Mirror ready: {} active", len(engine.list_relays()))

    try:
        while True:
            await asyncio.sleep(60)
    except asyncio.CancelledError:
        logger.info("Mirror shutting down")
        await engine.stop()
        await adapter.stop()
    return 0


if __name__ == "__main__":
    main()
