"""Turn code in a reply into file attachments."""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..bus.events import Attachment

_FENCE = re.compile(r"```[ \t]*([\w+#.-]*)[^\n]*\n(.*?)```", re.S)

# language tag -> (default filename, mime type)
LANGUAGE_FILES: dict[str, tuple[str, str]] = {
    "html": ("index.html", "text/html"),
    "htm": ("index.html", "text/html"),
    "css": ("styles.css", "text/css"),
    "js": ("script.js", "application/javascript"),
    "javascript": ("script.js", "application/javascript"),
    "ts": ("script.ts", "application/typescript"),
    "typescript": ("script.ts", "application/typescript"),
    "python": ("snippet.py", "text/x-python"),
    "py": ("snippet.py", "text/x-python"),
    "json": ("data.json", "application/json"),
    "bash": ("script.sh", "text/x-shellscript"),
    "sh": ("script.sh", "text/x-shellscript"),
    "shell": ("script.sh", "text/x-shellscript"),
    "c": ("main.c", "text/x-c"),
    "cpp": ("main.cpp", "text/x-c++"),
    "c++": ("main.cpp", "text/x-c++"),
    "yaml": ("config.yaml", "application/yaml"),
    "yml": ("config.yaml", "application/yaml"),
    "sql": ("query.sql", "application/sql"),
    "md": ("notes.md", "text/markdown"),
    "markdown": ("notes.md", "text/markdown"),
}

CODE_KEYWORDS = (
    "def ", "class ", "import ", "return", "function", "const ", "let ", "var ",
    "=>", "{", "}", "();", "#include", "<div", "</", "if (", "for (", "while ",
    "self.", "print(", "console.",
)
MIN_CODE_LINES = 8
MIN_KEYWORD_RATIO = 0.3
MIN_INDENT_RATIO = 0.25


@dataclass
class CodeBlock:
    language: str
    filename: str
    content: str
    mime_type: str = "text/plain"


def extract_code_blocks(text: str) -> list[CodeBlock]:
    """All fenced blocks in ``text``; repeated names get a numeric suffix."""
    blocks: list[CodeBlock] = []
    seen: dict[str, int] = {}
    for match in _FENCE.finditer(text or ""):
        lang = match.group(1).lower()
        filename, mime = LANGUAGE_FILES.get(lang, (f"snippet.{lang or 'txt'}", "text/plain"))
        count = seen.get(filename, 0)
        seen[filename] = count + 1
        if count:
            stem, dot, ext = filename.rpartition(".")
            filename = f"{stem}_{count + 1}{dot}{ext}"
        blocks.append(CodeBlock(lang, filename, match.group(2).strip("\n"), mime))
    return blocks


def looks_like_code(text: str) -> bool:
    """Heuristic for an unfenced reply that is really one source file."""
    lines = [ln for ln in text.splitlines() if ln.strip()]
    if len(lines) < MIN_CODE_LINES:
        return False
    keyword_lines = sum(1 for ln in lines if any(k in ln for k in CODE_KEYWORDS))
    indented = sum(1 for ln in lines if ln.startswith(("    ", "\t")))
    return (
        keyword_lines / len(lines) >= MIN_KEYWORD_RATIO
        and indented / len(lines) >= MIN_INDENT_RATIO
    )


def _guess_unfenced(text: str) -> tuple[str, str]:
    lc = text.lower()
    if "<html" in lc or "<!doctype" in lc or "<div" in lc:
        return LANGUAGE_FILES["html"]
    if "def " in text or ("import " in text and ":" in text):
        return LANGUAGE_FILES["python"]
    if "#include" in text:
        return LANGUAGE_FILES["cpp"]
    if "function" in text or "const " in text:
        return LANGUAGE_FILES["js"]
    return "snippet.txt", "text/plain"


def split_reply(text: str) -> tuple[str, list[Attachment]]:
    """Separate code from prose.

    With two or more fence markers each fenced block becomes an
    attachment and the prose stays inline. An unfenced reply that passes
    ``looks_like_code`` is sent as a single file.
    """
    if text.count("```") >= 2:
        blocks = extract_code_blocks(text)
        if blocks:
            prose = _FENCE.sub("", text)
            prose = re.sub(r"\n{3,}", "\n\n", prose).strip()
            names = ", ".join(b.filename for b in blocks)
            prose = f"{prose}\n\nFiles: {names}" if prose else f"Files: {names}"
            files = [Attachment(b.filename, b.content, b.mime_type) for b in blocks]
            return prose, files

    if looks_like_code(text):
        filename, mime = _guess_unfenced(text)
        return f"Code sent as file: {filename}", [Attachment(filename, text.strip("\n"), mime)]
    return text, []
