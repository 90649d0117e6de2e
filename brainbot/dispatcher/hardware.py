"""GPIO backends for relay, LED and sensor commands."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

from loguru import logger

from ..config.schema import HardwareConfig


class HardwareBackend(ABC):
    """Pin-level side effects used by the dispatcher."""

    def __init__(self, config: HardwareConfig) -> None:
        self.config = config

    @abstractmethod
    async def write_pin(self, pin: int, state: int) -> None:
        ...

    @abstractmethod
    async def read_pin(self, pin: int) -> int:
        ...

    async def relay_set(self, pin: int, state: int) -> str:
        await self.write_pin(pin, state)
        return f"OK: relay pin {pin} -> {state}"

    async def flash_led(self, count: int) -> str:
        pin = self.config.led_pin
        on, off = (1, 0) if self.config.led_active_high else (0, 1)
        delay = self.config.led_flash_ms / 1000
        for _ in range(count):
            await self.write_pin(pin, on)
            await asyncio.sleep(delay)
            await self.write_pin(pin, off)
            await asyncio.sleep(delay)
        await self.write_pin(pin, off)
        return f"OK: flashed blue LED {count}x on pin {pin}"

    async def sensor_read(self, pin: int) -> str:
        return f"OK: sensor pin {pin} = {await self.read_pin(pin)}"


class SimulatedHardware(HardwareBackend):
    """Keeps pin levels in memory. Unwritten pins read as 0."""

    def __init__(self, config: HardwareConfig) -> None:
        super().__init__(config)
        self.pins: dict[int, int] = {}
        self.writes: list[tuple[int, int]] = []

    async def write_pin(self, pin: int, state: int) -> None:
        self.pins[pin] = state
        self.writes.append((pin, state))
        logger.debug(f"GPIO {pin} <- {state}")

    async def read_pin(self, pin: int) -> int:
        value = self.pins.get(pin, 0)
        logger.debug(f"GPIO {pin} -> {value}")
        return value


def create_backend(config: HardwareConfig) -> HardwareBackend:
    if config.backend != "simulated":
        logger.warning(f"Unknown hardware backend '{config.backend}', using simulated pins")
    return SimulatedHardware(config)
