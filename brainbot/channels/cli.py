"""Interactive CLI channel using prompt-toolkit and rich."""

from __future__ import annotations

import asyncio
from pathlib import Path

from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.syntax import Syntax

from ..bus.events import Attachment, InboundMessage, OutboundMessage
from ..bus.queue import MessageBus
from .base import BaseChannel

CLI_CHANNEL_ID = "cli:local"
EXIT_WORDS = ("exit", "quit", "bye")

# mime type -> lexer name for rich.syntax
_LEXERS = {
    "text/html": "html",
    "text/css": "css",
    "application/javascript": "javascript",
    "application/typescript": "typescript",
    "text/x-python": "python",
    "application/json": "json",
    "text/x-shellscript": "bash",
    "text/x-c": "c",
    "text/x-c++": "cpp",
    "application/yaml": "yaml",
    "application/sql": "sql",
    "text/markdown": "markdown",
}


class CLIChannel(BaseChannel):
    """Terminal chat; replies render as markdown, attachments as code panels."""

    def __init__(self, bus: MessageBus, history_dir: Path, response_timeout: float = 300.0) -> None:
        super().__init__(bus)
        self._history_file = history_dir / "cli_history"
        self._response_timeout = response_timeout
        self._running = False
        self._response_event = asyncio.Event()
        self._console = Console()

    @property
    def name(self) -> str:
        return "cli"

    async def start(self) -> None:
        self._running = True
        await self._input_loop()

    async def stop(self) -> None:
        self._running = False

    async def send(self, message: OutboundMessage) -> None:
        if message.content:
            self._print_response(message.content)
        for attachment in message.attachments:
            self._print_attachment(attachment)
        self._response_event.set()

    async def _input_loop(self) -> None:
        self._history_file.parent.mkdir(parents=True, exist_ok=True)
        session: PromptSession[str] = PromptSession(history=FileHistory(str(self._history_file)))
        self._print_welcome()

        while self._running:
            try:
                user_input = await session.prompt_async("\nyou> ")
            except (EOFError, KeyboardInterrupt):
                self._print_message("\nGoodbye!")
                break

            text = user_input.strip()
            if not text:
                continue
            if text.lower() in EXIT_WORDS:
                self._print_message("Goodbye! 👋")
                break

            self._response_event.clear()
            await self._bus.publish_inbound(
                InboundMessage(
                    channel="cli",
                    channel_id=CLI_CHANNEL_ID,
                    sender_id="local",
                    sender_name="User",
                    content=text,
                )
            )
            self._console.print("\n⏳ [dim]Thinking...[/dim]")
            try:
                await asyncio.wait_for(self._response_event.wait(), timeout=self._response_timeout)
            except asyncio.TimeoutError:
                # Commands such as proactive_check may legitimately stay silent
                self._print_message("(no reply)")
        self._running = False

    def _print_welcome(self) -> None:
        self._console.print(
            Panel.fit(
                "[bold blue]brainbot[/bold blue] - device assistant\n"
                "Type [bold]help[/bold] for commands, [bold]exit[/bold] to quit",
                title="Welcome",
                border_style="blue",
            )
        )

    def _print_response(self, content: str) -> None:
        self._console.print()
        self._console.print(
            Panel(
                Markdown(content),
                title="[bold green]brainbot[/bold green]",
                border_style="green",
                padding=(1, 2),
            )
        )

    def _print_attachment(self, attachment: Attachment) -> None:
        if isinstance(attachment.content, bytes):
            size = len(attachment.content)
            self._print_message(f"📎 {attachment.filename} ({size} bytes, {attachment.mime_type})")
            return
        lexer = _LEXERS.get(attachment.mime_type, "text")
        self._console.print(
            Panel(
                Syntax(attachment.content, lexer, line_numbers=True, word_wrap=True),
                title=f"📎 {attachment.filename}",
                subtitle=attachment.caption or None,
                border_style="cyan",
            )
        )

    def _print_message(self, message: str) -> None:
        self._console.print(f"[dim]{message}[/dim]")
