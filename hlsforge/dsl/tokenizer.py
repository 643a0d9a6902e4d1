"""
Line tokenizer for the layer DSL.

Splits a source line on the delimiter set ``( ) ; + , . = #`` and on
whitespace. ``#`` starts a comment that runs to the end of the line.
Tokens are ``lark.Token`` instances so that they carry the same type names
and positions as the tokens produced by the statement grammar.
"""

import re
from typing import List

from lark import Token


DELIMITERS = "();+,.=#"

DELIMITER_TYPES = {
    "(": "LPAR",
    ")": "RPAR",
    ";": "SEMICOLON",
    "+": "PLUS",
    ",": "COMMA",
    ".": "DOT",
    "=": "EQUAL",
}

_TOKEN_RE = re.compile(
    r"""
    (?P<COMMENT>\#.*)
  | (?P<STRING>'[^']*'|"[^"]*")
  | (?P<NUMBER>[0-9]+(?![A-Za-z_]))
  | (?P<NAME>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<DELIM>[();+,.=])
  | (?P<WS>\s+)
  | (?P<OTHER>[^\s();+,.=\#]+)
    """,
    re.VERBOSE,
)


def tokenize_line(line: str, line_number: int = 1) -> List[Token]:
    """Tokenize one source line.

    Comments and whitespace are dropped. Quoted values become a single
    STRING token whose value keeps the quotes.
    """
    tokens: List[Token] = []
    for match in _TOKEN_RE.finditer(line):
        kind = match.lastgroup
        text = match.group()
        if kind == "COMMENT":
            break
        if kind == "WS":
            continue
        if kind == "DELIM":
            kind = DELIMITER_TYPES[text]
        tokens.append(
            Token(kind, text, start_pos=match.start(), line=line_number, column=match.start() + 1)
        )
    return tokens


def is_layer_statement(tokens: List[Token]) -> bool:
    """True when the tokens open a ``model.add(`` statement."""
    if len(tokens) < 4:
        return False
    head = [(t.type, str(t)) for t in tokens[:4]]
    return head == [("NAME", "model"), ("DOT", "."), ("NAME", "add"), ("LPAR", "(")]


def paren_balance(tokens: List[Token]) -> int:
    """Number of parentheses left open by the tokens."""
    balance = 0
    for token in tokens:
        if token.type == "LPAR":
            balance += 1
        elif token.type == "RPAR":
            balance -= 1
    return balance


def strip_quotes(text: str) -> str:
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "'\"":
        return text[1:-1]
    return text
