"""Quote- and escape-aware argument splitting.

Splits the argument part of a message (everything after the command
prefix) into tokens. Whitespace separates tokens unless it sits inside
quotes; quotes preceded by a backslash are literal.

    >>> tokenize('ab cde "fgh ijk"')
    ['ab', 'cde', 'fgh ijk']
    >>> tokenize('\\\\"a b\\\\"')
    ['"a', 'b"']

An unmatched quote simply keeps the rest of the input in one token.
"""

from typing import AbstractSet, List

from .exceptions import require_not_none

QUOTE_CHARS = frozenset("\"'")
ESCAPE_CHAR = "\\"


def _is_unescaped_quote(text: str, index: int, quotes: AbstractSet[str]) -> bool:
    return text[index] in quotes and (index == 0 or text[index - 1] != ESCAPE_CHAR)


def _strip_quoting(token: str, quotes: AbstractSet[str]) -> str:
    """Drop unescaped quotes and the backslashes that escape quotes."""
    kept = []
    last = len(token) - 1
    for k, ch in enumerate(token):
        escapes_quote = ch == ESCAPE_CHAR and k != last and token[k + 1] in quotes
        if escapes_quote or _is_unescaped_quote(token, k, quotes):
            continue
        kept.append(ch)
    return "".join(kept)


def tokenize(text: str, quotes: AbstractSet[str] = QUOTE_CHARS) -> List[str]:
    """Split an argument string into tokens.

    Args:
        text: Argument string, already stripped of the command prefix.
        quotes: Characters that open/close a quoted span.

    Returns:
        Ordered list of tokens. An empty (or all-whitespace) string
        yields a single empty token; callers that need "no arguments"
        check for an empty string first.

    Raises:
        InvalidArgument: If ``text`` is None.
    """
    require_not_none(text, "text", module="tokenizer")
    text = text.strip()
    if not text:
        return [""]

    raw_tokens = []
    in_quote = False
    begin = 0
    last = len(text) - 1
    for i, ch in enumerate(text):
        if _is_unescaped_quote(text, i, quotes):
            in_quote = not in_quote
        if (ch.isspace() and not in_quote) or i == last:
            raw_tokens.append(text[begin:i + 1].strip())
            begin = i + 1

    return [_strip_quoting(token, quotes) for token in raw_tokens]
