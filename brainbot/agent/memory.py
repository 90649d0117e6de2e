"""Memory notes: MEMORY.md, one remembered fact per line."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

MEMORY_MAX_CHARS = 5000


class MemoryManager:
    """Manage the notes file fed into every chat prompt.

    Notes are appended by ``remember`` and dropped oldest-first once the
    file would exceed ``max_chars``.
    """

    def __init__(self, data_dir: str | Path, max_chars: int = MEMORY_MAX_CHARS) -> None:
        self._memory_dir = Path(data_dir) / "memory"
        self._memory_dir.mkdir(parents=True, exist_ok=True)
        self.max_chars = max_chars

    @property
    def memory_path(self) -> Path:
        return self._memory_dir / "MEMORY.md"

    async def get_notes(self) -> str:
        """Get the current notes, empty string when none."""
        if self.memory_path.exists():
            try:
                return self.memory_path.read_text(encoding="utf-8").strip()
            except OSError as e:
                logger.error(f"Failed to read MEMORY.md: {e}")
        return ""

    async def append_note(self, note: str) -> None:
        """Append one timestamped note, evicting the oldest past the cap.

        Raises OSError when the file cannot be written.
        """
        timestamp = datetime.now(timezone.utc).strftime("[%Y-%m-%d %H:%M]")
        entry = f"- {timestamp} {' '.join(note.split())}"
        lines = [ln for ln in (await self.get_notes()).splitlines() if ln.strip()]
        lines.append(entry)

        while len(lines) > 1 and len("\n".join(lines)) > self.max_chars:
            dropped = lines.pop(0)
            logger.debug(f"Memory full, dropping oldest note: {dropped[:60]}")
        content = "\n".join(lines)[-self.max_chars :]

        self.memory_path.write_text(content + "\n", encoding="utf-8")
        logger.info(f"Remembered note ({len(content)} chars in MEMORY.md)")

    async def clear_notes(self) -> None:
        self.memory_path.write_text("", encoding="utf-8")
        logger.info("Cleared MEMORY.md")
