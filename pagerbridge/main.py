"""pagerbridge entry point: wires the components together and runs the server."""

from __future__ import annotations

import asyncio
import signal
import sys
from pathlib import Path
from typing import Any

import click

from pagerbridge import __version__
from pagerbridge.config import ConfigHolder, Settings, load_settings, validate_settings
from pagerbridge.core.actions import ActionDispatcher
from pagerbridge.core.commands import CommandHandler
from pagerbridge.core.correlator import NotificationCorrelator
from pagerbridge.errors import ConfigError
from pagerbridge.incidents.client import IncidentClient
from pagerbridge.storage.kv import SQLiteKVStore
from pagerbridge.transports.mattermost import MattermostTransport
from pagerbridge.utils.logging import get_logger, setup_logging
from pagerbridge.webhooks.server import BridgeServer

log = get_logger(__name__)


class PagerBridge:
    """Main application orchestrator."""

    def __init__(self, settings: Settings, config_path: str | Path | None = None) -> None:
        self.config = ConfigHolder(settings)
        self.config_path = config_path

        data_dir = settings.get_data_dir()
        self.store = SQLiteKVStore(data_dir / "pagerbridge.db")
        self.client = IncidentClient(settings.incidents)
        self.transport = MattermostTransport(settings.chat)

        self.correlator = NotificationCorrelator(self.store, self.transport, self.config)
        self.dispatcher = ActionDispatcher(self.client, self.correlator)
        self.commands = CommandHandler(self.client)
        self.server = BridgeServer(
            self.config,
            self.correlator,
            self.dispatcher,
            self.client,
            self.transport,
            self.commands,
        )

    async def start(self) -> None:
        log.info("pagerbridge_starting", version=__version__)
        await self.store.start()
        await self.server.start()
        log.info("pagerbridge_ready")

    async def stop(self) -> None:
        log.info("pagerbridge_stopping")
        await self.server.stop()
        await self.transport.close()
        await self.client.close()
        await self.store.stop()
        log.info("pagerbridge_stopped")

    def reload(self, **overrides: Any) -> bool:
        """Re-read configuration and swap it in if it is valid.

        Listener address and chat connection settings take effect on restart.
        """
        try:
            settings = validate_settings(load_settings(self.config_path, **overrides))
        except (ConfigError, ValueError) as e:
            log.error("config_reload_failed", error=str(e))
            return False

        self.config.replace(settings)
        self.client.set_token(settings.incidents.api_key)
        log.info("config_reloaded")
        return True


async def run(
    settings: Settings,
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> None:
    app = PagerBridge(settings, config_path)

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        log.info("shutdown_signal")
        stop_event.set()

    def _reload_handler() -> None:
        log.info("reload_signal")
        app.reload(**(overrides or {}))

    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _signal_handler)
        loop.add_signal_handler(signal.SIGHUP, _reload_handler)

    await app.start()

    try:
        if sys.platform == "win32":
            while not stop_event.is_set():
                await asyncio.sleep(1)
        else:
            await stop_event.wait()
    except KeyboardInterrupt:
        pass
    finally:
        await app.stop()


@click.command()
@click.option("--config", "config_path", default=None, help="Path to config YAML file")
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
def cli(config_path: str | None, log_level: str | None) -> None:
    """Bridge PagerDuty incidents into Mattermost."""
    overrides: dict[str, Any] = {"log_level": log_level} if log_level else {}
    settings = load_settings(config_path, **overrides)
    setup_logging(level=settings.log_level, json_output=settings.log_json)
    try:
        validate_settings(settings)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
    asyncio.run(run(settings, config_path, overrides))


if __name__ == "__main__":
    cli()
