"""Restricted markup tokenizer for busconfig documents."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Literal

TokenKind = Literal[
    "end",
    "tag_open",
    "tag_close",
    "tag_close_empty",
    "attribute_name",
    "attribute_value",
    "text",
]

_NAME_TERMINATORS = frozenset(" \t\r\n/>=")
_WHITESPACE = " \t\r\n"


class MarkupError(RuntimeError):
    """Malformed markup in a document."""

    def __init__(self, message: str, line: int):
        super().__init__(message)
        self.message = message
        self.line = line


@dataclass(frozen=True, slots=True)
class Token:
    """One token of the document stream."""

    kind: TokenKind
    value: str
    line: int


def is_whitespace(value: str) -> bool:
    return all(ch in _WHITESPACE for ch in value)


class _Cursor:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.line = 1

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def startswith(self, prefix: str) -> bool:
        return self.text.startswith(prefix, self.pos)

    def advance(self, count: int) -> str:
        chunk = self.text[self.pos : self.pos + count]
        self.line += chunk.count("\n")
        self.pos += len(chunk)
        return chunk

    def skip_whitespace(self) -> None:
        end = self.pos
        while end < len(self.text) and self.text[end] in _WHITESPACE:
            end += 1
        self.advance(end - self.pos)

    def take_until(self, marker: str, what: str) -> str:
        """Consume up to and including marker; return the text before it."""
        index = self.text.find(marker, self.pos)
        if index < 0:
            raise MarkupError(f"Unterminated {what}", self.line)
        chunk = self.advance(index - self.pos)
        self.advance(len(marker))
        return chunk

    def take_name(self) -> str:
        end = self.pos
        while end < len(self.text) and self.text[end] not in _NAME_TERMINATORS:
            end += 1
        return self.advance(end - self.pos)


def tokenize(text: str) -> Iterator[Token]:
    """Yield tokens for one document, ending with a single ``end`` token.

    Attribute tokens of an element directly follow its ``tag_open`` token.
    Entities are not decoded and namespaces carry no meaning.
    """
    cursor = _Cursor(text)
    while True:
        if cursor.at_end():
            yield Token("end", "", cursor.line)
            return

        line = cursor.line
        if not cursor.startswith("<"):
            index = cursor.text.find("<", cursor.pos)
            if index < 0:
                index = len(cursor.text)
            yield Token("text", cursor.advance(index - cursor.pos), line)
            continue

        if cursor.startswith("<?"):
            cursor.advance(2)
            cursor.take_until("?>", "processing instruction")
            continue

        if cursor.startswith("<!--"):
            cursor.advance(4)
            cursor.take_until("-->", "comment")
            continue

        if cursor.startswith("<![CDATA["):
            cursor.advance(9)
            yield Token("text", cursor.take_until("]]>", "CDATA section"), line)
            continue

        if cursor.startswith("<!"):
            cursor.advance(2)
            cursor.take_until(">", "declaration")
            continue

        if cursor.startswith("</"):
            cursor.advance(2)
            name = cursor.take_name()
            if not name:
                raise MarkupError("Missing element name in closing tag", line)
            cursor.skip_whitespace()
            if not cursor.startswith(">"):
                raise MarkupError(f"Malformed closing tag </{name}", cursor.line)
            cursor.advance(1)
            yield Token("tag_close", name, line)
            continue

        cursor.advance(1)
        name = cursor.take_name()
        if not name:
            raise MarkupError("Missing element name", line)
        yield Token("tag_open", name, line)
        yield from _tokenize_attributes(cursor, name)


def _tokenize_attributes(cursor: _Cursor, element: str) -> Iterator[Token]:
    while True:
        cursor.skip_whitespace()
        if cursor.at_end():
            raise MarkupError(f"Unterminated tag <{element}", cursor.line)
        if cursor.startswith("/>"):
            line = cursor.line
            cursor.advance(2)
            yield Token("tag_close_empty", element, line)
            return
        if cursor.startswith(">"):
            cursor.advance(1)
            return

        line = cursor.line
        attribute = cursor.take_name()
        if not attribute:
            raise MarkupError(f"Malformed attribute in <{element}>", line)
        yield Token("attribute_name", attribute, line)

        cursor.skip_whitespace()
        if not cursor.startswith("="):
            raise MarkupError(f"Attribute {attribute} has no value", cursor.line)
        cursor.advance(1)
        cursor.skip_whitespace()

        line = cursor.line
        quote = cursor.advance(1)
        if quote not in ("'", '"'):
            raise MarkupError(f"Unquoted value for attribute {attribute}", line)
        yield Token("attribute_value", cursor.take_until(quote, "attribute value"), line)
