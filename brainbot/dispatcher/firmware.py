"""Firmware update checks against GitHub releases, and image installation."""

from __future__ import annotations

import asyncio
import shlex
import time
from pathlib import Path

import httpx
from loguru import logger

from ..config.schema import FirmwareConfig
from .state import FirmwareOffer


class FirmwareError(Exception):
    """Raised when an update check, download or install fails."""


def compare_versions(latest: str, current: str) -> bool:
    """Return True if latest is newer than current."""
    try:
        latest_parts = [int(x) for x in latest.split(".")]
        current_parts = [int(x) for x in current.split(".")]
        return latest_parts > current_parts
    except (ValueError, AttributeError):
        return latest != current


class FirmwareUpdater:
    """Looks for newer release assets and installs a downloaded image."""

    def __init__(self, config: FirmwareConfig, data_dir: str | Path, current_version: str) -> None:
        self._config = config
        self._dir = Path(data_dir) / "firmware"
        self.current_version = current_version

    @property
    def configured(self) -> bool:
        return bool(self._config.github_repo)

    async def check(self) -> FirmwareOffer:
        """Query the latest release. ``available`` is False when up to date."""
        if not self.configured:
            raise FirmwareError("firmware.github_repo not set")

        url = f"https://api.github.com/repos/{self._config.github_repo}/releases/latest"
        try:
            async with httpx.AsyncClient(follow_redirects=True) as client:
                resp = await client.get(url, timeout=10.0)
        except httpx.HTTPError as e:
            raise FirmwareError(f"update check failed: {e}") from e
        if resp.status_code != 200:
            raise FirmwareError(f"update check failed: HTTP {resp.status_code}")

        data = resp.json()
        version = str(data.get("tag_name", "")).lstrip("v")
        asset_url = ""
        for asset in data.get("assets", []):
            if str(asset.get("name", "")).endswith(self._config.asset_suffix):
                asset_url = asset.get("browser_download_url", "")
                break

        available = bool(version and asset_url) and compare_versions(version, self.current_version)
        logger.info(
            f"Firmware check: current={self.current_version} latest={version or '?'} "
            f"available={available}"
        )
        return FirmwareOffer(
            available=available,
            version=version,
            download_url=asset_url,
            notified_at=time.monotonic(),
        )

    async def install(self, url: str) -> str:
        """Download the image and hand it to the installer hook."""
        if not url.startswith(("http://", "https://")):
            raise FirmwareError("firmware URL must start with http:// or https://")

        self._dir.mkdir(parents=True, exist_ok=True)
        image = self._dir / "firmware.bin"
        size = 0
        try:
            async with httpx.AsyncClient(follow_redirects=True) as client:
                async with client.stream("GET", url, timeout=60.0) as resp:
                    if resp.status_code != 200:
                        raise FirmwareError(f"download failed: HTTP {resp.status_code}")
                    with open(image, "wb") as f:
                        async for chunk in resp.aiter_bytes():
                            f.write(chunk)
                            size += len(chunk)
        except httpx.HTTPError as e:
            raise FirmwareError(f"download failed: {e}") from e
        if size == 0:
            raise FirmwareError("download failed: empty image")
        logger.info(f"Downloaded firmware image ({size} bytes) to {image}")

        if self._config.install_command:
            await self._run_installer(image)
            logger.warning("Firmware installed, reboot requested")
            return f"OK: firmware installed ({size} bytes). Rebooting..."
        return f"OK: firmware downloaded ({size} bytes) to {image}. No installer configured"

    async def _run_installer(self, image: Path) -> None:
        argv = shlex.split(self._config.install_command) + [str(image)]
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=300)
        except (OSError, asyncio.TimeoutError) as e:
            raise FirmwareError(f"installer failed: {e}") from e
        if proc.returncode != 0:
            detail = stderr.decode(errors="replace").strip()[:200]
            raise FirmwareError(f"installer exited with {proc.returncode}: {detail}")
