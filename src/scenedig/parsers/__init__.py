"""Text-grammar parsers producing secondary scenes."""

from scenedig.parsers.command_text import CommandTextParser, split_statements, tokenize

__all__ = ["CommandTextParser", "split_statements", "tokenize"]
