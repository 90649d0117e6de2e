"""System prompts and context builders."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

PLAN_SYSTEM_PROMPT = (
    "You are a coding planner. Return a concise implementation plan only. "
    "Use numbered steps. Include risks and quick validation checks."
)

HEARTBEAT_SYSTEM_PROMPT = (
    "You are running an autonomous heartbeat check for a device assistant. "
    "Read the heartbeat instructions and return a short operational update in 3 bullets: "
    "health, risk, next action."
)

ROUTE_SYSTEM_PROMPT = """Route user text to one device command if obvious.
Commands:
- search for <query>: web search
- time_show: current time
- web_files_make <topic>: create a small website
- generate_image <prompt>: create a picture
- reminder_set_daily <HH:MM> <message>: daily reminder
- webjob_set_daily <HH:MM> <task>: daily web research
- timezone_set <Area/City>: set timezone
- task_add <text> | task_list
- remember <note> | memory
- flash_led <1-20> | relay_set <pin> <0|1> | sensor_read <pin>
- cron_add <min> <hour> <day> <month> <weekday> | <command>
Return exactly one line only: TOOL: <command> or NONE. No markdown."""

PROACTIVE_SYSTEM_PROMPT = (
    "You are brainbot, a proactive device assistant. "
    "Based on the context below, decide if you should send a proactive message to the user. "
    "Good reasons to speak: task reminder, time-based greeting, interesting follow-up. "
    "If you have something useful to say, write a short friendly message (1-3 sentences). "
    "If there's nothing useful, respond with exactly: SILENT"
)

REACT_SYSTEM_PROMPT = """You are brainbot, an assistant running on a small always-on device.
Work step by step: call one tool, read its result, then decide the next step.
Use the device_command tool for anything the device can do itself (tasks, reminders,
timezone, memory, email drafts, status). Use web_search for current information.
When you have enough information, answer the user briefly without calling tools."""

REACT_SUMMARY_PROMPT = (
    "[System: Tool budget exhausted. Summarize what you found and answer the user "
    "now in a few sentences, without calling tools.]"
)


def build_system_prompt(
    soul: str = "",
    memory_notes: str = "",
    timezone_state: str = "",
    schedule_state: str = "",
    now: datetime | None = None,
) -> str:
    """Build the chat system prompt from persona, memory and schedule state."""
    parts: list[str] = [_build_core_identity()]

    if soul.strip():
        parts.append(f"<soul>\n{soul.strip()}\n</soul>")
    if memory_notes.strip():
        parts.append(f"<memory>\n{memory_notes.strip()}\n</memory>")
    if timezone_state:
        parts.append(f"<timezone>{timezone_state}</timezone>")
    if schedule_state:
        parts.append(f"<schedule>\n{schedule_state}\n</schedule>")
    if now is not None:
        parts.append(f"<current_time>{now:%Y-%m-%d %H:%M}</current_time>")

    return "\n\n".join(parts)


def _build_core_identity() -> str:
    return """You are brainbot, an assistant running on a small always-on device and talking over chat.
Be helpful, warm and concise.

The user can type device commands directly, for example:
- remember <note>, memory, forget
- task_add <text>, task_list, task_done <id>
- reminder_set_daily <HH:MM> <message>, webjob_set_daily <HH:MM> <task>
- cron_add <min> <hour> <day> <month> <weekday> | <command>
- search for <query>, web_files_make <topic>, host_file <name>
- email_draft <to>|<subject>|<body>, send_email <to> <subject> <body>
- status, health, usage, update

Suggest the matching command when it would help. If you write website code,
put each file in its own fenced code block so it can be sent as files."""


def format_tool_result(tool_call_id: str, name: str, result: str) -> dict[str, Any]:
    """Format a tool result as a message for the LLM."""
    return {
        "role": "tool",
        "tool_call_id": tool_call_id,
        "name": name,
        "content": result,
    }


def format_assistant_tool_calls(content: str, tool_calls: list[Any]) -> dict[str, Any]:
    """Format an assistant message with the tool calls it requested."""
    return {
        "role": "assistant",
        "content": content or None,
        "tool_calls": [
            {
                "id": tc.id,
                "type": "function",
                "function": {"name": tc.name, "arguments": json.dumps(tc.arguments)},
            }
            for tc in tool_calls
        ],
    }
