"""Bounded operational event log shown by the ``logs`` command."""

from __future__ import annotations

from collections import deque
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger


class EventLog:
    """Ring buffer of short event lines mirrored to ``events.log``."""

    def __init__(self, data_dir: str | Path, max_lines: int = 120) -> None:
        self._path = Path(data_dir) / "events.log"
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lines: deque[str] = deque(maxlen=max_lines)
        if self._path.exists():
            try:
                self._lines.extend(self._path.read_text(encoding="utf-8").splitlines())
            except OSError as e:
                logger.warning(f"Failed to read event log: {e}")

    def append(self, entry: str) -> None:
        stamp = datetime.now(timezone.utc).strftime("%H:%M:%S")
        line = f"[{stamp}] {' '.join(entry.split())[:200]}"
        self._lines.append(line)
        try:
            self._path.write_text("\n".join(self._lines) + "\n", encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to write event log: {e}")

    def dump(self, max_chars: int = 1400) -> str:
        """Newest lines that fit in ``max_chars``."""
        if not self._lines:
            return "Logs are empty"
        out: list[str] = []
        used = 0
        for line in reversed(self._lines):
            if used + len(line) + 1 > max_chars:
                break
            out.append(line)
            used += len(line) + 1
        return "Logs:\n" + "\n".join(reversed(out))

    def clear(self) -> None:
        self._lines.clear()
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Failed to clear event log: {e}")

    def __len__(self) -> int:
        return len(self._lines)
