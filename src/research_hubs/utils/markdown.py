"""Structured view over vault Markdown notes.

A note is parsed into an optional frontmatter block and an ordered list of
blocks. A block either starts at a level-two heading (``## Title``) or is an
untitled run of lines (the text before the first heading, or a horizontal
rule and whatever follows it up to the next heading). Serializing an unedited
document gives back the original text.

Frontmatter is read with PyYAML but edited line by line, so the user's keys,
order and comments survive an update.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any

import yaml

from ..core.errors import ParseError

FRONTMATTER_DELIMITER = "---"
HEADING_PREFIX = "## "

KEY_LINE_RE = re.compile(r"^([A-Za-z0-9_][\w\-]*)\s*:(.*)$")
WIKI_LINK_RE = re.compile(r"\[\[([^\]|#]+)(?:[#|][^\]]*)?\]\]")


def format_value(value: Any) -> str:
    """Render a frontmatter value as a one-line YAML flow scalar or sequence."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(json.dumps(str(v), ensure_ascii=False) for v in value) + "]"
    # JSON string escapes are valid inside YAML double quotes
    return json.dumps(str(value), ensure_ascii=False)


@dataclass
class Frontmatter:
    """YAML lines between the two ``---`` delimiters."""

    lines: list[str] = field(default_factory=list)

    def _find(self, key: str) -> int | None:
        for i, line in enumerate(self.lines):
            m = KEY_LINE_RE.match(line)
            if m and m.group(1) == key:
                return i
        return None

    def data(self) -> dict[str, Any]:
        """
        Parsed frontmatter mapping.

        Raises:
            ParseError: The block is not valid YAML
        """
        if not self.lines:
            return {}
        try:
            loaded = yaml.safe_load("\n".join(self.lines))
        except yaml.YAMLError as e:
            raise ParseError(f"Invalid frontmatter: {e}") from e
        return loaded if isinstance(loaded, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self.data().get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Replace the key's line in place, or append it when absent."""
        new_line = f"{key}: {format_value(value)}"
        i = self._find(key)
        if i is None:
            self.lines.append(new_line)
            return
        # drop an indented YAML block value belonging to the old line
        end = i + 1
        while end < len(self.lines) and self.lines[end][:1] in (" ", "\t", "-"):
            end += 1
        self.lines[i:end] = [new_line]

    def update(self, values: dict[str, Any]) -> None:
        for key, value in values.items():
            self.set(key, value)


@dataclass
class Block:
    """A titled section (``heading`` set) or an untitled run of lines."""

    heading: str | None
    lines: list[str] = field(default_factory=list)

    @property
    def title(self) -> str | None:
        if self.heading is None:
            return None
        return self.heading[len(HEADING_PREFIX):].strip()

    def links(self) -> list[str]:
        return [m.group(1).strip() for line in self.lines for m in WIKI_LINK_RE.finditer(line)]


def heading(title: str) -> str:
    return f"{HEADING_PREFIX}{title}"


def bullet_links(names: list[str]) -> list[str]:
    """``- [[name]]`` lines, each name once, followed by a blank separator line."""
    return [f"- [[{name}]]" for name in dict.fromkeys(names)] + [""]


@dataclass
class MarkdownDocument:
    frontmatter: Frontmatter | None
    blocks: list[Block]

    @classmethod
    def parse(cls, text: str) -> "MarkdownDocument":
        lines = text.split("\n")
        frontmatter = None
        if lines and lines[0].rstrip() == FRONTMATTER_DELIMITER:
            for end in range(1, len(lines)):
                if lines[end].rstrip() == FRONTMATTER_DELIMITER:
                    frontmatter = Frontmatter(lines[1:end])
                    lines = lines[end + 1:]
                    break

        blocks = [Block(None)]
        for line in lines:
            if line.startswith(HEADING_PREFIX):
                blocks.append(Block(line))
            elif line.strip() == FRONTMATTER_DELIMITER and blocks[-1].heading is not None:
                # a horizontal rule closes the current section
                blocks.append(Block(None, [line]))
            else:
                blocks[-1].lines.append(line)
        return cls(frontmatter, blocks)

    def render(self) -> str:
        out: list[str] = []
        if self.frontmatter is not None:
            out += [FRONTMATTER_DELIMITER, *self.frontmatter.lines, FRONTMATTER_DELIMITER]
        for block in self.blocks:
            if block.heading is not None:
                out.append(block.heading)
            out.extend(block.lines)
        return "\n".join(out)

    def ensure_frontmatter(self) -> Frontmatter:
        if self.frontmatter is None:
            self.frontmatter = Frontmatter()
        return self.frontmatter

    def section(self, title: str) -> Block | None:
        for block in self.blocks:
            if block.title == title:
                return block
        return None

    def has_section(self, title: str) -> bool:
        return self.section(title) is not None

    def _index(self, title: str) -> int | None:
        for i, block in enumerate(self.blocks):
            if block.title == title:
                return i
        return None

    def insert_section(self, title: str, lines: list[str], before: tuple[str, ...] = ()) -> Block:
        """Insert a new section ahead of the first existing title in ``before``, else at the end."""
        block = Block(heading(title), list(lines))
        for anchor in before:
            i = self._index(anchor)
            if i is not None:
                previous = self.blocks[i - 1] if i > 0 else None
                if previous is not None and previous.lines and previous.lines[-1] != "":
                    previous.lines.append("")
                self.blocks.insert(i, block)
                return block

        last = self.blocks[-1]
        if last.heading is not None or last.lines:
            if not last.lines or last.lines[-1] != "":
                last.lines.append("")
        self.blocks.append(block)
        return block

    def set_section(self, title: str, lines: list[str], before: tuple[str, ...] = ()) -> Block:
        """Replace a section body wholesale, inserting the section when missing."""
        block = self.section(title)
        if block is None:
            return self.insert_section(title, lines, before)
        block.lines = list(lines)
        return block
