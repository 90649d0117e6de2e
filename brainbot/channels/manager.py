"""Channel manager: lifecycle of transports and outbound routing."""

from __future__ import annotations

from loguru import logger

from ..bus.events import OutboundMessage
from ..bus.queue import MessageBus
from ..config.schema import Config
from .base import BaseChannel


class ChannelManager:
    """Owns the registered channels and delivers outbound messages to them."""

    def __init__(self, config: Config, bus: MessageBus) -> None:
        self._config = config
        self._bus = bus
        self._channels: dict[str, BaseChannel] = {}
        bus.on_outbound(self.dispatch_outbound)

    def register(self, channel: BaseChannel) -> None:
        self._channels[channel.name] = channel
        logger.info(f"Registered channel: {channel.name}")

    def setup_channels(self) -> None:
        """Create the network channels enabled in config.

        The CLI channel blocks on input and is registered by the ``agent``
        command instead.
        """
        if self._config.channels.telegram.enabled:
            from .telegram import TelegramChannel

            self.register(TelegramChannel(bus=self._bus, config=self._config.channels.telegram))

    async def start_all(self) -> None:
        for name, channel in self._channels.items():
            try:
                await channel.start()
                logger.info(f"Started channel: {name}")
            except Exception as e:
                logger.error(f"Failed to start channel {name}: {e}")

    async def stop_all(self) -> None:
        for name, channel in self._channels.items():
            try:
                await channel.stop()
                logger.info(f"Stopped channel: {name}")
            except Exception as e:
                logger.error(f"Error stopping channel {name}: {e}")

    async def dispatch_outbound(self, message: OutboundMessage) -> None:
        channel = self._channels.get(message.channel)
        if channel is None:
            logger.warning(f"No channel registered for: {message.channel}")
            return
        try:
            await channel.send(message)
        except Exception as e:
            logger.error(f"Failed to dispatch to {message.channel}: {e}")

    def get_channel(self, name: str) -> BaseChannel | None:
        return self._channels.get(name)

    @property
    def active_channels(self) -> list[str]:
        return list(self._channels)
