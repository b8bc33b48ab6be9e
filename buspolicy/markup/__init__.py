"""Markup tokenizer package."""

from buspolicy.markup.tokenizer import MarkupError, Token, TokenKind, is_whitespace, tokenize

__all__ = [
    "MarkupError",
    "Token",
    "TokenKind",
    "is_whitespace",
    "tokenize",
]
