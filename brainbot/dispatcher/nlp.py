"""Keyword heuristics that turn free-form text into structured commands."""

from __future__ import annotations

import re

from ..scheduler.timezones import is_valid_timezone

DAILY_WORDS = ("every day", "everyday", "daily", "each day")
WEBJOB_WORDS = ("update", "updates", "news", "search", "latest", "headline", "web", "research")
PARTS_OF_DAY = ("morning", "afternoon", "evening", "night")

_CLOCK_TIME = re.compile(r"(?<!\d)(\d{1,2})(?::(\d{1,2}))?( *)(am|pm)?")
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")
_SPOKEN_TIME = re.compile(r"(?<!\d)\d{1,2}(?::\d{2})?\s*(?:am|pm)\b|(?<!\d)\d{1,2}:\d{2}(?!\d)")


def compact_spaces(text: str) -> str:
    return " ".join(text.split())


def normalize_command(raw: str) -> str:
    """Strip a leading ``/`` and an ``@botname`` suffix on the first token."""
    cmd = raw.strip()
    if not cmd.startswith("/"):
        return cmd
    cmd = cmd[1:]
    first, sep, rest = cmd.partition(" ")
    at = first.find("@")
    if at > 0:
        first = first[:at]
    return f"{first}{sep}{rest}".strip()


def has_daily_words(text_lc: str) -> bool:
    return any(w in text_lc for w in DAILY_WORDS)


def looks_like_webjob_task(text_lc: str) -> bool:
    return any(w in text_lc for w in WEBJOB_WORDS)


def strip_daily_words(text_lc: str) -> str:
    for w in DAILY_WORDS:
        text_lc = text_lc.replace(w, "")
    return compact_spaces(text_lc)


def is_valid_hhmm(value: str) -> bool:
    if not re.fullmatch(r"[0-9]{2}:[0-9]{2}", value):
        return False
    return int(value[:2]) <= 23 and int(value[3:]) <= 59


def format_hhmm(hour: int, minute: int) -> str:
    return f"{hour:02d}:{minute:02d}"


def parse_leading_int(text: str) -> int | None:
    m = _LEADING_INT.match(text)
    return int(m.group(1)) if m else None


def parse_time_from_natural(text_lc: str) -> tuple[int, int] | None:
    """Find a clock time such as ``6 am``, ``18:30`` or ``evening 7``.

    A bare number is not a time: it needs minutes or an am/pm suffix.
    """
    for m in _CLOCK_TIME.finditer(text_lc):
        hour = int(m.group(1))
        minute = int(m.group(2)) if m.group(2) is not None else 0
        ampm = m.group(4)
        if m.group(2) is None and ampm is None:
            continue
        if ampm:
            if 13 <= hour <= 23 and minute <= 59:
                return hour, minute
            if not 1 <= hour <= 12 or minute > 59:
                continue
            return hour % 12 + (12 if ampm == "pm" else 0), minute
        if hour <= 23 and minute <= 59:
            return hour, minute

    for tag in PARTS_OF_DAY:
        pos = text_lc.find(tag)
        if pos < 0:
            continue
        hour = parse_leading_int(text_lc[pos + len(tag) :])
        if hour is None or not 1 <= hour <= 12:
            continue
        return hour % 12 + (0 if tag == "morning" else 12), 0
    return None


def _drop_time_words(text: str) -> str:
    text = _SPOKEN_TIME.sub(" ", f" {text} ")
    text = text.replace(" at ", " ").replace(" am", "").replace(" pm", "")
    for part in PARTS_OF_DAY:
        text = text.replace(part, "")
    return compact_spaces(text)


def parse_natural_daily_reminder(text: str, assume_daily: bool = False) -> tuple[str, str] | None:
    """``6 am send pls wake up`` -> ("06:00", "pls wake up")."""
    lc = compact_spaces(text.lower())
    if not lc:
        return None

    looks_like_reminder = "remind" in lc or "send" in lc or "wake up" in lc
    schedule_hint = "schedule" in lc or "instead" in lc
    if not looks_like_reminder and not schedule_hint:
        return None

    parsed = parse_time_from_natural(lc)
    if parsed is None:
        return None
    if not (assume_daily or has_daily_words(lc) or schedule_hint or "send" in lc):
        return None

    message = ""
    for marker in ("send ", "remind me to ", "remind me "):
        p = lc.rfind(marker)
        if p >= 0:
            message = lc[p + len(marker) :]
            break

    message = _drop_time_words(strip_daily_words(message))
    if len(message) >= 2 and message[0].isdigit() and " " in message:
        message = compact_spaces(message.split(" ", 1)[1])
    return format_hhmm(*parsed), message or "pls wake up"


def parse_natural_time_change(text: str) -> str | None:
    """``change it to 7 am`` -> "07:00"."""
    lc = compact_spaces(text).lower()
    if not lc:
        return None
    change_words = ("change", "reschedule", "move", "shift", "instead", "update")
    if not any(w in lc for w in change_words):
        return None
    mentions_target = (
        "reminder" in lc or " it " in lc or lc.startswith("it ") or " time " in lc
    )
    if not mentions_target:
        return None
    parsed = parse_time_from_natural(lc)
    return format_hhmm(*parsed) if parsed else None


def parse_natural_daily_webjob(text: str) -> tuple[str, str] | None:
    """``send me ai news every day at 8 am`` -> ("08:00", "ai news")."""
    lc = compact_spaces(text).lower()
    if not has_daily_words(lc) or not looks_like_webjob_task(lc):
        return None
    parsed = parse_time_from_natural(lc)
    if parsed is None:
        return None

    task = strip_daily_words(lc)
    for filler in ("send me ", "send ", "give me ", "show me ", "please ", "pls "):
        task = task.replace(filler, "")
    task = _drop_time_words(task)

    for _ in range(3):
        if not task or not task[0].isdigit() or " " not in task:
            break
        task = compact_spaces(task.split(" ", 1)[1])
    return format_hhmm(*parsed), task or "ai updates of the day"


def extract_web_query(text: str) -> str | None:
    """Query for a one-off search, or None when the text is not one."""
    lc = compact_spaces(text).lower()
    if not lc:
        return None

    for prefix in ("search for ", "search ", "web search ", "look up ", "find ", "google "):
        if lc.startswith(prefix):
            query = lc[len(prefix) :].strip()
            if query in ("", "web", "the web"):
                return None
            return query

    if (
        lc.startswith(("what are", "what is", "show me", "give me"))
        and looks_like_webjob_task(lc)
        and not has_daily_words(lc)
    ):
        return lc

    p = lc.find("search for ")
    if p >= 0:
        query = lc[p + len("search for ") :].strip()
        if query:
            return query
    return None


IMAGE_PREFIXES = (
    "generate image ",
    "generate an image of ",
    "create an image of ",
    "make an image of ",
    "draw ",
)


def extract_image_prompt(text: str) -> str | None:
    """Prompt for a natural image request, keeping the user's casing."""
    compact = compact_spaces(text)
    lc = compact.lower()
    for prefix in IMAGE_PREFIXES:
        if lc.startswith(prefix):
            return compact[len(prefix) :].strip() or None
    return None


def sanitize_web_topic(topic: str) -> str:
    value = re.sub(r"[^A-Za-z0-9 _-]", "", compact_spaces(topic))
    value = compact_spaces(value)[:40]
    return value or "mini demo"


def extract_web_files_topic(text: str) -> str | None:
    """Topic for a generated landing page, or None when not asked for one."""
    lc = compact_spaces(text).lower()
    if not lc:
        return None

    asks_build = any(w in lc for w in ("make", "create", "build", "generate", "gen "))
    has_html = any(w in lc for w in ("html", "htm l", "webpage", "web page"))
    has_css = "css" in lc or "style" in lc
    has_js = "js" in lc or "javascript" in lc
    has_site = any(w in lc for w in ("website", "web site", "landing page", "saas"))
    has_style = any(
        w in lc
        for w in (
            "stunning", "modern", "premium", "beautiful", "polish",
            "revamp", "better", "improve", "redesign", "attractive",
        )
    )
    asks_files = " file" in lc or " send" in lc
    wants_files = (
        (has_html and (has_css or has_js or has_site or asks_files or has_style))
        or (has_site and (asks_files or has_style))
        or (has_style and (has_site or has_html))
    )
    if not (asks_build and wants_files):
        return None

    p = lc.find(" for ")
    topic = lc[p + 5 :] if p >= 0 else ""
    if not topic:
        if "saas" in lc:
            topic = "saas website"
        elif has_site and has_style:
            topic = "stunning website"
        elif has_site:
            topic = "website"
    for noise in (
        " and send", " send", " as files", " as file", " files", " file",
        " more stunning", " stunning", " more modern", " modern",
        " improved", " improve", " redesign", " website",
    ):
        topic = topic.replace(noise, "")
    return sanitize_web_topic(topic)


def extract_timezone_from_text(text: str) -> str | None:
    """Timezone named in a reply such as ``india`` or ``my timezone is UTC+2``."""
    raw = text.strip()
    if not raw:
        return None
    lc = raw.lower()

    if "india" in lc or lc in ("ist", "in") or "kolkata" in lc:
        return "Asia/Kolkata"

    for prefix in ("timezone_set ", "timezone is ", "my timezone is ", "timezone ", "tz is ", "tz "):
        if lc.startswith(prefix):
            candidate = raw[len(prefix) :].strip()
            return candidate if is_valid_timezone(candidate) else None

    return raw if is_valid_timezone(raw) else None


LED_PATTERNS = ("flash_led", "blink_led", "flash led", "blink led", "flash blue led", "blink blue led")
LED_DEFAULT_COUNT = 3


def parse_led_flash_count(cmd_lc: str) -> int:
    """Requested flash count; 0 when not an LED request, -1 when malformed."""
    for prefix in LED_PATTERNS:
        if cmd_lc == prefix:
            return LED_DEFAULT_COUNT
        if cmd_lc.startswith(prefix + " "):
            count = parse_leading_int(cmd_lc[len(prefix) + 1 :])
            return count if count is not None else -1

    if "led" in cmd_lc and "blue" in cmd_lc and ("flash" in cmd_lc or "blink" in cmd_lc):
        m = re.search(r"\d+", cmd_lc)
        return int(m.group(0)) if m else LED_DEFAULT_COUNT
    return 0


def wants_hosting(text_lc: str) -> bool:
    """``host it``, ``deploy that page``, ``serve my last website``."""
    if not text_lc.startswith(("host ", "serve ", "deploy ", "publish ")):
        return False
    return any(w in text_lc for w in ("last", " it", "that", "this", "page", "site", "html", "code"))


def wants_firmware_update(text_lc: str) -> bool:
    if "firmware" in text_lc and any(w in text_lc for w in ("update", "upgrade", "new version")):
        return True
    return text_lc in ("check for updates", "check updates", "any updates?", "update yourself")
