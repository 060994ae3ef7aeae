"""SQL tokenizer and token stream used by the schema parser."""

import re
from enum import StrEnum, auto
from typing import NamedTuple


class TokenType(StrEnum):
    """Kinds of token produced by ``tokenize``."""

    WORD = auto()
    QUOTED = auto()
    NUMBER = auto()
    STRING = auto()
    PUNCTUATION = auto()
    OPERATOR = auto()
    EOF = auto()


class Token(NamedTuple):
    """A lexical token with its 1-based source position."""

    type: TokenType
    value: str
    line: int
    column: int

    @property
    def keyword(self) -> str | None:
        """Upper-cased word, or None for anything that is not a bare word."""
        return self.value.upper() if self.type is TokenType.WORD else None


# Order matters: comments before operators, quoted forms before words.
_TOKEN_SPEC = (
    ("SPACE", r"\s+"),
    ("LINE_COMMENT", r"--[^\n]*"),
    ("BLOCK_COMMENT", r"(?s:/\*.*?(?:\*/|\Z))"),
    ("QUOTED", r'"(?:[^"]|"")*"?'),
    ("STRING", r"'(?:[^']|'')*'?"),
    ("DOLLAR_STRING", r"(?s:\$(?P<tag>[A-Za-z_]*)\$.*?(?:\$(?P=tag)\$|\Z))"),
    ("NUMBER", r"\d[\d.]*"),
    ("WORD", r"[A-Za-z_][A-Za-z0-9_$]*"),
    ("PUNCTUATION", r"[(),;.\[\]]"),
    ("OPERATOR", r"<>|<=|>=|!=|::|[<>=!+\-*/:|%]"),
    ("OTHER", r"."),
)

TOKEN_PATTERN = re.compile("|".join(f"(?P<{name}>{rx})" for name, rx in _TOKEN_SPEC))

SKIPPED = {"SPACE", "LINE_COMMENT", "BLOCK_COMMENT", "OTHER"}


def _unquote(text: str, quote: str) -> str:
    """Strip surrounding quotes and collapse doubled quote characters."""
    inner = text[1:-1] if len(text) > 1 and text.endswith(quote) else text[1:]
    return inner.replace(quote * 2, quote)


def tokenize(sql: str) -> list[Token]:
    """Split SQL text into tokens, dropping whitespace and comments."""
    tokens: list[Token] = []
    line = 1
    line_start = 0

    for match in TOKEN_PATTERN.finditer(sql):
        kind = match.lastgroup or "OTHER"
        text = match.group()
        start = match.start()

        if kind not in SKIPPED:
            value = text
            if kind == "QUOTED":
                value = _unquote(text, '"')
            elif kind == "STRING":
                value = _unquote(text, "'")
            elif kind == "DOLLAR_STRING":
                kind = "STRING"
            token_type = TokenType[kind]
            tokens.append(Token(token_type, value, line, start - line_start + 1))

        if newlines := text.count("\n"):
            line += newlines
            line_start = start + text.rfind("\n") + 1

    tokens.append(Token(TokenType.EOF, "", line, len(sql) - line_start + 1))
    return tokens


class TokenStream:
    """Cursor over a token list with single-token lookahead and backtracking."""

    def __init__(self, tokens: list[Token]) -> None:
        """Wrap ``tokens``; the list must end with an EOF token."""
        self._tokens = tokens
        self._pos = 0

    def peek(self) -> Token:
        """Return the current token without advancing."""
        return self._tokens[self._pos]

    def look_ahead(self, n: int) -> Token:
        """Return the token ``n`` places ahead, or EOF past the end."""
        return self._tokens[min(self._pos + n, len(self._tokens) - 1)]

    def next(self) -> Token:
        """Return the current token and advance, never moving past EOF."""
        token = self._tokens[self._pos]
        if token.type is not TokenType.EOF:
            self._pos += 1
        return token

    def is_(self, token_type: TokenType, value: str | None = None) -> bool:
        """Check the current token's type and optionally its value."""
        token = self.peek()
        return token.type is token_type and (value is None or token.value == value)

    def is_keyword(self, *words: str) -> bool:
        """Check whether the current token is a bare word among ``words``."""
        return self.peek().keyword in words

    def match(self, token_type: TokenType, value: str | None = None) -> Token | None:
        """Consume and return the current token if it matches."""
        return self.next() if self.is_(token_type, value) else None

    def match_keyword(self, *words: str) -> Token | None:
        """Consume and return the current token if it is one of ``words``."""
        return self.next() if self.is_keyword(*words) else None

    def expect(self, token_type: TokenType, value: str | None = None) -> Token:
        """Consume a matching token or raise ``SQLSyntaxError``."""
        token = self.peek()
        if not self.is_(token_type, value):
            wanted = f'"{value}"' if value is not None else token_type.value
            found = f'"{token.value}"' if token.value else token.type.value
            msg = f"Expected {wanted} but found {found}"
            raise SQLSyntaxError(msg, token.line)
        return self.next()

    def expect_keyword(self, word: str) -> Token:
        """Consume the bare word ``word`` or raise ``SQLSyntaxError``."""
        if not self.is_keyword(word):
            token = self.peek()
            found = f'"{token.value}"' if token.value else token.type.value
            msg = f"Expected {word} but found {found}"
            raise SQLSyntaxError(msg, token.line)
        return self.next()

    def at_end(self) -> bool:
        """Return True once the stream reaches EOF."""
        return self.peek().type is TokenType.EOF

    def line(self) -> int:
        """Line number of the current token."""
        return self.peek().line

    def save(self) -> int:
        """Remember the current position for ``restore``."""
        return self._pos

    def restore(self, pos: int) -> None:
        """Return to a position previously obtained from ``save``."""
        self._pos = pos


class SQLSyntaxError(Exception):
    """A statement could not be understood; the parser skips it."""

    def __init__(self, message: str, line: int) -> None:
        """Store the message and the line it applies to."""
        super().__init__(message)
        self.message = message
        self.line = line
