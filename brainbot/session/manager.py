"""Chat history with JSONL persistence."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

DEFAULT_SESSION = "device"


@dataclass
class Session:
    """A conversation history."""

    key: str
    messages: list[dict[str, Any]] = field(default_factory=list)
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)


class SessionManager:
    """Keep chat turns on disk, one JSONL file per session key."""

    def __init__(self, sessions_dir: str | Path, max_messages: int = 200) -> None:
        self._dir = Path(sessions_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._cache: dict[str, Session] = {}
        self.max_messages = max_messages

    def _session_path(self, key: str) -> Path:
        safe_key = key.replace(":", "_").replace("/", "_")
        return self._dir / f"{safe_key}.jsonl"

    async def get_or_create(self, key: str = DEFAULT_SESSION) -> Session:
        """Get existing session or create a new one."""
        if key in self._cache:
            return self._cache[key]

        path = self._session_path(key)
        session = self._load_session(key, path) if path.exists() else Session(key=key)
        self._cache[key] = session
        return session

    def _load_session(self, key: str, path: Path) -> Session:
        messages: list[dict[str, Any]] = []
        created_at = time.time()

        try:
            with open(path, "r") as f:
                for line_num, line in enumerate(f):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        data = json.loads(line)
                    except json.JSONDecodeError:
                        logger.warning(f"Skipping malformed line in {path}")
                        continue
                    if line_num == 0 and data.get("_type") == "metadata":
                        created_at = data.get("created_at", created_at)
                    else:
                        messages.append(data)
        except OSError as e:
            logger.error(f"Failed to load session {key}: {e}")

        return Session(key=key, messages=messages, created_at=created_at)

    async def add_turn(self, role: str, content: str, key: str = DEFAULT_SESSION) -> None:
        """Append one chat turn and persist."""
        session = await self.get_or_create(key)
        session.messages.append({"role": role, "content": content, "timestamp": time.time()})
        await self.save(session)

    async def recent(self, limit: int, key: str = DEFAULT_SESSION) -> list[dict[str, Any]]:
        """Last ``limit`` turns as LLM-ready role/content dicts."""
        session = await self.get_or_create(key)
        return [
            {"role": m.get("role", "user"), "content": m.get("content", "")}
            for m in session.messages[-limit:]
        ]

    async def save(self, session: Session) -> bool:
        """Save a session to disk as JSONL. Returns True if successful."""
        session.updated_at = time.time()
        path = self._session_path(session.key)

        if len(session.messages) > self.max_messages:
            session.messages = session.messages[-self.max_messages :]

        temp_path = path.with_suffix(".tmp")
        try:
            # Atomic write: write to temp file then rename
            with open(temp_path, "w") as f:
                metadata = {
                    "_type": "metadata",
                    "key": session.key,
                    "created_at": session.created_at,
                    "updated_at": session.updated_at,
                }
                f.write(json.dumps(metadata) + "\n")
                for msg in session.messages:
                    f.write(json.dumps(msg) + "\n")
            temp_path.rename(path)
            return True
        except OSError as e:
            logger.error(f"Failed to save session {session.key}: {e}")
            temp_path.unlink(missing_ok=True)
            return False

    async def clear(self, key: str = DEFAULT_SESSION) -> None:
        self._cache.pop(key, None)
        path = self._session_path(key)
        if path.exists():
            path.unlink()
            logger.debug(f"Cleared session {key}")
