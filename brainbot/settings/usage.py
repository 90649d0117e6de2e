"""LLM call counters persisted between restarts."""

from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass, fields
from pathlib import Path

from loguru import logger

CALL_TYPES = ("chat", "image", "route", "media")


@dataclass
class UsageCounters:
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rate_limited: int = 0
    chat_calls: int = 0
    image_calls: int = 0
    route_calls: int = 0
    media_calls: int = 0
    other_calls: int = 0
    last_call_time: float = 0.0
    last_provider: str = ""
    last_model: str = ""
    last_call_type: str = ""


class UsageStats:
    """Counts every outbound LLM call by type and outcome."""

    def __init__(self, data_dir: str | Path) -> None:
        self._path = Path(data_dir) / "usage.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self.counters = self._load()

    def _load(self) -> UsageCounters:
        if not self._path.exists():
            return UsageCounters()
        try:
            raw = json.loads(self._path.read_text())
            known = {f.name for f in fields(UsageCounters)}
            return UsageCounters(**{k: v for k, v in raw.items() if k in known})
        except (OSError, json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Failed to load usage stats: {e}")
            return UsageCounters()

    def _save(self) -> None:
        try:
            self._path.write_text(json.dumps(asdict(self.counters), indent=2))
        except OSError as e:
            logger.error(f"Failed to save usage stats: {e}")

    def record_call(self, call_type: str, status: int, provider: str = "", model: str = "") -> None:
        """Record one call. ``status`` is the HTTP status of the outcome."""
        c = self.counters
        c.total_calls += 1
        if call_type in CALL_TYPES:
            setattr(c, f"{call_type}_calls", getattr(c, f"{call_type}_calls") + 1)
        else:
            c.other_calls += 1

        if 200 <= status < 300:
            c.successful_calls += 1
        else:
            c.failed_calls += 1
            if status == 429:
                c.rate_limited += 1

        c.last_call_time = time.time()
        if provider:
            c.last_provider = provider
        if model:
            c.last_model = model
        if call_type:
            c.last_call_type = call_type
        self._save()

    def reset(self) -> None:
        self.counters = UsageCounters()
        self._save()

    def report(self) -> str:
        c = self.counters
        lines = [
            "📊 Usage Statistics",
            "",
            "Calls:",
            f"  Total: {c.total_calls}",
            f"  Success: {c.successful_calls}",
            f"  Failed: {c.failed_calls}",
        ]
        if c.rate_limited:
            lines.append(f"  ⚠️ Rate limited (429): {c.rate_limited}")

        lines += ["", "By type:"]
        for label, count in (
            ("Chat", c.chat_calls),
            ("Image", c.image_calls),
            ("Route", c.route_calls),
            ("Media", c.media_calls),
            ("Other", c.other_calls),
        ):
            if count:
                lines.append(f"  {label}: {count}")

        if c.last_provider:
            lines += ["", "Last call:", f"  Type: {c.last_call_type}", f"  Provider: {c.last_provider}"]
            if c.last_model:
                lines.append(f"  Model: {c.last_model}")

        if c.total_calls:
            rate = int(c.successful_calls * 100 / c.total_calls)
            lines += ["", f"Success rate: {rate}%"]
        return "\n".join(lines)
