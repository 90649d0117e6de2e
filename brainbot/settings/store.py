"""Persistent key/value settings backed by a single JSON file."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from loguru import logger

from .types import DailyReminder, EmailDraft, ReminderMessage


class SettingsError(Exception):
    """Raised when the settings file cannot be read or written."""


# Write-time caps; longer values are silently truncated
MAX_CHARS: dict[str, int] = {
    "soul": 1400,
    "heartbeat": 1400,
    "timezone": 63,
    "email_to": 120,
    "email_subject": 160,
    "email_body": 1200,
    "reminder_message": 220,
    "model_provider": 32,
}


class SettingsStore:
    """Typed accessors over ``settings.json``.

    Every setter persists immediately through a temp-file rename.
    """

    def __init__(self, data_dir: str | Path) -> None:
        self._dir = Path(data_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._data: dict[str, Any] = {}
        self._load()

    @property
    def path(self) -> Path:
        return self._dir / "settings.json"

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text())
            if isinstance(data, dict):
                self._data = data
            else:
                logger.warning(f"Ignoring non-object settings file {self.path}")
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load settings, starting empty: {e}")

    def _save(self) -> None:
        temp_path = self.path.with_suffix(".tmp")
        try:
            temp_path.write_text(json.dumps(self._data, indent=2) + "\n")
            temp_path.rename(self.path)
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise SettingsError(f"settings store unavailable: {e}") from e

    # ------------------------------------------------------------------
    # Generic accessors
    # ------------------------------------------------------------------

    def get_str(self, key: str, default: str = "") -> str:
        value = self._data.get(key, default)
        return value if isinstance(value, str) else default

    def set_str(self, key: str, value: str) -> str:
        """Store a string, truncated to its cap. Returns what was stored."""
        value = value.strip()
        cap = MAX_CHARS.get(key)
        if cap is not None and len(value) > cap:
            logger.debug(f"Truncating setting {key} from {len(value)} to {cap} chars")
            value = value[:cap]
        self._data[key] = value
        self._save()
        return value

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self._data.get(key, default)
        return value if isinstance(value, bool) else default

    def set_bool(self, key: str, value: bool) -> None:
        self._data[key] = bool(value)
        self._save()

    def delete(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._save()

    # ------------------------------------------------------------------
    # Timezone and safe mode
    # ------------------------------------------------------------------

    def get_timezone(self) -> str:
        return self.get_str("timezone")

    def set_timezone(self, tz: str) -> str:
        return self.set_str("timezone", tz)

    def clear_timezone(self) -> None:
        self.delete("timezone")

    def has_timezone(self) -> bool:
        return bool(self.get_timezone())

    def is_safe_mode(self) -> bool:
        return self.get_bool("safe_mode")

    def set_safe_mode(self, enabled: bool) -> None:
        self.set_bool("safe_mode", enabled)

    # ------------------------------------------------------------------
    # Daily reminder slot
    # ------------------------------------------------------------------

    def get_reminder(self) -> DailyReminder | None:
        raw = self._data.get("daily_reminder")
        if not isinstance(raw, dict):
            return None
        reminder = DailyReminder.from_dict(raw)
        if not reminder.time or not reminder.message.text.strip():
            return None
        return reminder

    def set_reminder(self, hhmm: str, message: ReminderMessage) -> DailyReminder:
        cap = MAX_CHARS["reminder_message"]
        text = message.text.strip()[:cap]
        reminder = DailyReminder(time=hhmm, message=type(message)(text))
        self._data["daily_reminder"] = reminder.to_dict()
        self._save()
        return reminder

    def clear_reminder(self) -> None:
        self.delete("daily_reminder")

    # ------------------------------------------------------------------
    # Email draft
    # ------------------------------------------------------------------

    def get_email_draft(self) -> EmailDraft:
        return EmailDraft(
            to=self.get_str("email_to"),
            subject=self.get_str("email_subject"),
            body=self.get_str("email_body"),
        )

    def set_email_draft(self, to: str, subject: str, body: str) -> EmailDraft:
        for key, value in (("email_to", to), ("email_subject", subject), ("email_body", body)):
            cap = MAX_CHARS[key]
            self._data[key] = value.strip()[:cap]
        self._save()
        return self.get_email_draft()

    def clear_email_draft(self) -> None:
        for key in ("email_to", "email_subject", "email_body"):
            self._data.pop(key, None)
        self._save()

    # ------------------------------------------------------------------
    # Model selection
    # ------------------------------------------------------------------

    def get_active_provider(self) -> str:
        return self.get_str("model_provider")

    def set_active_provider(self, provider: str) -> None:
        self.set_str("model_provider", provider)

    def get_api_keys(self) -> dict[str, str]:
        keys = self._data.get("model_keys", {})
        return dict(keys) if isinstance(keys, dict) else {}

    def set_api_key(self, provider: str, api_key: str) -> None:
        keys = self.get_api_keys()
        keys[provider] = api_key.strip()
        self._data["model_keys"] = keys
        self._save()

    def clear_provider(self, provider: str) -> None:
        keys = self.get_api_keys()
        keys.pop(provider, None)
        self._data["model_keys"] = keys
        if self.get_active_provider() == provider:
            self._data.pop("model_provider", None)
        self._save()
