"""Tests for turning code in replies into file attachments."""

from __future__ import annotations

from brainbot.agent.attachments import extract_code_blocks, looks_like_code, split_reply


class TestExtractCodeBlocks:
    def test_language_maps_to_filename(self) -> None:
        text = "```html\n<p>hi</p>\n```\n```css\np {}\n```\n```js\nalert(1)\n```"
        blocks = extract_code_blocks(text)
        assert [b.filename for b in blocks] == ["index.html", "styles.css", "script.js"]
        assert blocks[0].mime_type == "text/html"
        assert blocks[0].content == "<p>hi</p>"

    def test_repeated_language_gets_suffix(self) -> None:
        text = "```python\na = 1\n```\ntext\n```python\nb = 2\n```"
        assert [b.filename for b in extract_code_blocks(text)] == ["snippet.py", "snippet_2.py"]

    def test_unknown_and_missing_language(self) -> None:
        text = "```rust\nfn main() {}\n```\n```\nplain\n```"
        names = [b.filename for b in extract_code_blocks(text)]
        assert names == ["snippet.rust", "snippet.txt"]

    def test_none(self) -> None:
        assert extract_code_blocks("") == []


class TestSplitReply:
    """Fenced code leaves the text; long unfenced code becomes one file."""

    def test_prose_kept_files_listed(self) -> None:
        text, files = split_reply("Here you go:\n\n```python\nprint('hi')\n```\n\nEnjoy!")
        assert "print" not in text
        assert text.startswith("Here you go:")
        assert "Enjoy!" in text
        assert text.endswith("Files: snippet.py")
        assert files[0].content == "print('hi')"

    def test_only_code(self) -> None:
        text, files = split_reply("```json\n{\"a\": 1}\n```")
        assert text == "Files: data.json"
        assert files[0].mime_type == "application/json"

    def test_single_fence_marker_is_text(self) -> None:
        reply = "Use ``` to start a block"
        assert split_reply(reply) == (reply, [])

    def test_plain_text_untouched(self) -> None:
        assert split_reply("OK: alive") == ("OK: alive", [])

    def test_unfenced_python(self) -> None:
        code = "\n".join(
            [
                "import os",
                "",
                "def main():",
                "    path = os.getcwd()",
                "    for name in os.listdir(path):",
                "        print(name)",
                "    return 0",
                "",
                "class Runner:",
                "    def run(self):",
                "        return main()",
            ]
        )
        assert looks_like_code(code)
        text, files = split_reply(code)
        assert text == "Code sent as file: snippet.py"
        assert files[0].filename == "snippet.py"

    def test_short_prose_is_not_code(self) -> None:
        assert not looks_like_code("Sure.\nI can help with that.\nWhat time?")
