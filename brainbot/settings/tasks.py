"""Numbered to-do list with a fixed total size."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from loguru import logger

from .store import SettingsError

TASKS_MAX_CHARS = 8000


class TaskStore:
    """Tasks persisted in ``tasks.json``. Ids keep increasing until cleared."""

    def __init__(self, data_dir: str | Path, max_chars: int = TASKS_MAX_CHARS) -> None:
        self._path = Path(data_dir) / "tasks.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self.max_chars = max_chars
        self._next_id = 1
        self._items: list[dict[str, Any]] = []
        self._load()

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text())
            self._items = list(data.get("items", []))
            self._next_id = int(data.get("next_id", len(self._items) + 1))
        except (OSError, ValueError, AttributeError) as e:
            logger.error(f"Failed to load tasks: {e}")

    def _save(self) -> None:
        try:
            self._path.write_text(
                json.dumps({"next_id": self._next_id, "items": self._items}, indent=2)
            )
        except OSError as e:
            raise SettingsError(f"task store unavailable: {e}") from e

    def used_chars(self) -> int:
        return sum(len(item["text"]) for item in self._items)

    def add(self, text: str) -> int:
        text = text.strip()
        if self.used_chars() + len(text) > self.max_chars:
            raise SettingsError("task store full")
        task_id = self._next_id
        self._items.append({"id": task_id, "text": text, "done": False})
        self._next_id += 1
        self._save()
        return task_id

    def done(self, task_id: int) -> None:
        for item in self._items:
            if item["id"] == task_id:
                item["done"] = True
                self._save()
                return
        raise SettingsError(f"task #{task_id} not found")

    def clear(self) -> None:
        self._items = []
        self._next_id = 1
        self._save()

    def render(self) -> str:
        if not self._items:
            return "No tasks"
        lines = ["Tasks:"]
        for item in self._items:
            mark = "x" if item["done"] else " "
            lines.append(f"#{item['id']} [{mark}] {item['text']}")
        return "\n".join(lines)
