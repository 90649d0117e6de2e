"""Telegram channel using python-telegram-bot with long polling."""

from __future__ import annotations

import asyncio
import html
import io
import re
from typing import Any

from loguru import logger
from telegram import InputFile
from telegram.ext import Application, MessageHandler, filters
from telegram.request import HTTPXRequest

from ..bus.events import Attachment, InboundMessage, OutboundMessage
from ..bus.queue import MessageBus
from ..config.schema import TelegramConfig
from .base import BaseChannel

# Telegram's own bot commands mapped onto device commands
BOT_COMMANDS = {"/start": "help", "/help": "help", "/status": "health"}
TELEGRAM_MAX_TEXT = 4096
TELEGRAM_MAX_CAPTION = 1024


class TelegramChannel(BaseChannel):
    """Long-polling bot restricted to an optional allow-list of user ids."""

    def __init__(self, bus: MessageBus, config: TelegramConfig) -> None:
        super().__init__(bus)
        self._config = config
        self._app: Any = None
        self._typing_tasks: dict[int, asyncio.Task] = {}

    @property
    def name(self) -> str:
        return "telegram"

    def is_allowed(self, sender_id: str) -> bool:
        if not self._config.allow_from:
            return True
        return str(sender_id) in self._config.allow_from

    async def start(self) -> None:
        if not self._config.token:
            logger.warning("Telegram token not configured, skipping")
            return

        # read_timeout must exceed the getUpdates long-poll timeout (30s)
        request = HTTPXRequest(
            connection_pool_size=16,
            connect_timeout=10.0,
            read_timeout=60.0,
            write_timeout=30.0,
        )
        builder = Application.builder().token(self._config.token).request(request)
        if self._config.proxy:
            builder = builder.proxy(self._config.proxy).get_updates_proxy(self._config.proxy)
        self._app = builder.build()

        self._app.add_handler(MessageHandler(filters.TEXT, self._on_message))

        try:
            await self._app.bot.set_my_commands(
                [("start", "Show commands"), ("help", "Show commands"), ("status", "Device health")]
            )
        except Exception as e:
            logger.warning(f"Failed to set bot commands: {e}")

        await self._app.initialize()
        await self._app.start()
        await self._app.updater.start_polling(drop_pending_updates=True)
        logger.info("Telegram channel started")

    async def stop(self) -> None:
        for task in self._typing_tasks.values():
            task.cancel()
        self._typing_tasks.clear()

        if self._app:
            try:
                await self._app.updater.stop()
                await self._app.stop()
                await self._app.shutdown()
            except Exception as e:
                logger.warning(f"Error stopping Telegram: {e}")
        logger.info("Telegram channel stopped")

    async def send(self, message: OutboundMessage, max_retries: int = 3) -> bool:
        """Send text then each attachment as a document."""
        if not self._app:
            return False

        # channel_id format: "telegram:12345"
        chat_id = int(message.channel_id.split(":", 1)[-1])
        self._stop_typing(chat_id)

        ok = True
        if message.content:
            ok = await self._send_text(chat_id, message.content, max_retries)
        for attachment in message.attachments:
            ok = await self._send_document(chat_id, attachment) and ok
        return ok

    async def _send_text(self, chat_id: int, content: str, max_retries: int) -> bool:
        text = self._markdown_to_telegram_html(content)[:TELEGRAM_MAX_TEXT]
        last_error: Exception | None = None
        for attempt in range(max_retries):
            try:
                await self._app.bot.send_message(chat_id=chat_id, text=text, parse_mode="HTML")
                return True
            except Exception as e:
                last_error = e
                if attempt < max_retries - 1:
                    wait_time = min(2**attempt, 10)
                    logger.warning(
                        f"Telegram send failed (attempt {attempt + 1}/{max_retries}): {e}. "
                        f"Retrying in {wait_time}s..."
                    )
                    await asyncio.sleep(wait_time)

        # HTML rejected: retry once as plain text
        try:
            await self._app.bot.send_message(chat_id=chat_id, text=content[:TELEGRAM_MAX_TEXT])
            return True
        except Exception as e:
            last_error = e
        logger.error(f"Failed to send Telegram message after all retries: {last_error}")
        return False

    async def _send_document(self, chat_id: int, attachment: Attachment) -> bool:
        raw = attachment.content
        data = io.BytesIO(raw if isinstance(raw, bytes) else raw.encode("utf-8"))
        file = InputFile(data, filename=attachment.filename)
        caption = attachment.caption[:TELEGRAM_MAX_CAPTION] or None
        try:
            if attachment.mime_type.startswith("image/"):
                await self._app.bot.send_photo(chat_id=chat_id, photo=file, caption=caption)
            else:
                await self._app.bot.send_document(chat_id=chat_id, document=file, caption=caption)
        except Exception as e:
            logger.error(f"Failed to send {attachment.filename} to Telegram: {e}")
            return False
        logger.debug(f"Sent {attachment.filename} ({len(attachment.content)} bytes)")
        return True

    async def _on_message(self, update: Any, context: Any) -> None:
        if not update.effective_message or not update.effective_user:
            return

        user = update.effective_user
        if not self.is_allowed(str(user.id)):
            logger.warning(f"Ignoring Telegram message from unlisted user {user.id}")
            return

        content = (update.effective_message.text or "").strip()
        if not content:
            return
        content = BOT_COMMANDS.get(content.split("@", 1)[0].lower(), content)

        chat_id = update.effective_chat.id
        self._start_typing(chat_id)
        await self._bus.publish_inbound(
            InboundMessage(
                channel="telegram",
                channel_id=f"telegram:{chat_id}",
                sender_id=str(user.id),
                sender_name=user.first_name or str(user.id),
                content=content,
            )
        )

    def _start_typing(self, chat_id: int) -> None:
        self._stop_typing(chat_id)
        self._typing_tasks[chat_id] = asyncio.create_task(self._typing_loop(chat_id))

    def _stop_typing(self, chat_id: int) -> None:
        task = self._typing_tasks.pop(chat_id, None)
        if task:
            task.cancel()

    async def _typing_loop(self, chat_id: int) -> None:
        """Refresh the typing indicator every 4 seconds until cancelled."""
        while True:
            try:
                await self._app.bot.send_chat_action(chat_id=chat_id, action="typing")
            except Exception as e:
                logger.debug(f"Typing indicator failed: {e}")
            await asyncio.sleep(4)

    @staticmethod
    def _markdown_to_telegram_html(text: str) -> str:
        """Convert markdown to the HTML subset Telegram accepts.

        Supported tags: <b>, <i>, <s>, <code>, <pre>, <a href="">.
        """
        result = html.escape(text)

        result = re.sub(
            r"```(\w*)\n(.*?)```",
            lambda m: f'<pre><code class="language-{m.group(1)}">{m.group(2)}</code></pre>'
            if m.group(1)
            else f"<pre>{m.group(2)}</pre>",
            result,
            flags=re.DOTALL,
        )
        result = re.sub(r"`([^`]+)`", r"<code>\1</code>", result)
        result = re.sub(r"\*\*(.+?)\*\*", r"<b>\1</b>", result)
        result = re.sub(r"(?<!\*)\*(?!\*)(.+?)(?<!\*)\*(?!\*)", r"<i>\1</i>", result)
        result = re.sub(r"~~(.+?)~~", r"<s>\1</s>", result)
        result = re.sub(r"\[([^\]]+)\]\(([^)]+)\)", r'<a href="\2">\1</a>', result)
        result = re.sub(r"^#{1,6}\s+(.+)$", r"<b>\1</b>", result, flags=re.MULTILINE)
        result = re.sub(r"^[-*]\s+", "- ", result, flags=re.MULTILINE)
        return result
