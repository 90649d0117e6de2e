"""Tests for the Telegram markdown-to-HTML conversion."""

from __future__ import annotations

from brainbot.channels.telegram import TelegramChannel


class TestMarkdownToTelegramHtml:
    """Markdown in replies becomes the HTML subset Telegram accepts."""

    @staticmethod
    def convert(text: str) -> str:
        return TelegramChannel._markdown_to_telegram_html(text)

    def test_empty_string(self) -> None:
        assert self.convert("") == ""

    def test_plain_text_unchanged(self) -> None:
        assert self.convert("OK: task added") == "OK: task added"

    def test_bold_and_italic(self) -> None:
        result = self.convert("**Done** and *soon*")
        assert "<b>Done</b>" in result
        assert "<i>soon</i>" in result

    def test_inline_code(self) -> None:
        assert "<code>task_list</code>" in self.convert("Try `task_list`")

    def test_code_block_with_language(self) -> None:
        result = self.convert("```python\nprint('hi')\n```")
        assert '<pre><code class="language-python">' in result

    def test_code_block_without_language(self) -> None:
        assert "<pre>" in self.convert("```\nls\n```")

    def test_strikethrough_and_link(self) -> None:
        result = self.convert("~~old~~ [docs](https://example.com)")
        assert "<s>old</s>" in result
        assert '<a href="https://example.com">docs</a>' in result

    def test_header_becomes_bold(self) -> None:
        assert "<b>Status</b>" in self.convert("## Status")

    def test_html_is_escaped(self) -> None:
        result = self.convert("<script>alert(1)</script>")
        assert "<script>" not in result
        assert "&lt;script&gt;" in result

    def test_command_names_keep_underscores(self) -> None:
        """Device commands like reminder_set_daily must not turn italic."""
        result = self.convert("Use reminder_set_daily 07:30 stretch or task_add milk")
        assert "<i>" not in result
        assert "reminder_set_daily" in result
        assert "task_add" in result

    def test_multiplication_asterisk_survives(self) -> None:
        assert "15" in self.convert("5 * 3 = 15")

    def test_bullets_normalized(self) -> None:
        result = self.convert("* one\n- two")
        assert result.splitlines() == ["- one", "- two"]

    def test_unicode_content(self) -> None:
        result = self.convert("⏰ Reminder: café 世界")
        assert "⏰" in result
        assert "世界" in result
