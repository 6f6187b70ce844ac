"""Lexer for predicate expressions.

The grammar accepts both the Python-flavoured comparison operators
(``==``, ``!=``) and their SQL spellings (``=``, ``<>``) so that predicates
copied from row-level policy DDL read the same here. Keywords are
case-insensitive.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator

from .exceptions import RuleSyntaxError

class TokenType(Enum):
    """Types of tokens in predicate expressions."""
    INTEGER = auto()
    FLOAT = auto()
    STRING = auto()
    BOOLEAN = auto()
    NULL = auto()
    IDENTIFIER = auto()

    # Comparison
    EQ = auto()   # == or =
    NEQ = auto()  # != or <>
    LT = auto()
    GT = auto()
    LTE = auto()
    GTE = auto()

    # Logical
    AND = auto()
    OR = auto()
    NOT = auto()
    IN = auto()

    # Punctuation
    LPAREN = auto()
    RPAREN = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    COMMA = auto()

    EOF = auto()

@dataclass
class Token:
    """A single token in the predicate expression."""
    type: TokenType
    value: str | int | float | bool | None
    position: int

KEYWORDS: dict[str, tuple[TokenType, str | bool | None]] = {
    "true": (TokenType.BOOLEAN, True),
    "false": (TokenType.BOOLEAN, False),
    "null": (TokenType.NULL, None),
    "and": (TokenType.AND, "and"),
    "or": (TokenType.OR, "or"),
    "not": (TokenType.NOT, "not"),
    "in": (TokenType.IN, "in"),
}

SINGLE_CHAR_TOKENS: dict[str, TokenType] = {
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    ",": TokenType.COMMA,
}

class Lexer:
    """Tokenizes predicate strings."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.current_char = self.text[0] if self.text else None

    def error(self, message: str) -> None:
        """Raise a syntax error at the current position."""
        raise RuleSyntaxError(message, self.pos)

    def advance(self, steps: int = 1) -> None:
        """Move forward by ``steps`` characters."""
        self.pos += steps
        self.current_char = self.text[self.pos] if self.pos < len(self.text) else None

    def peek(self) -> str | None:
        """Look at the next character without moving."""
        peek_pos = self.pos + 1
        return self.text[peek_pos] if peek_pos < len(self.text) else None

    def skip_whitespace(self) -> None:
        while self.current_char is not None and self.current_char.isspace():
            self.advance()

    def _number(self) -> Token:
        """Parse integer or float."""
        start_pos = self.pos
        result = ""
        while self.current_char is not None and self.current_char.isdigit():
            result += self.current_char
            self.advance()

        if self.current_char == "." and (self.peek() or "").isdigit():
            result += "."
            self.advance()
            while self.current_char is not None and self.current_char.isdigit():
                result += self.current_char
                self.advance()
            return Token(TokenType.FLOAT, float(result), start_pos)

        return Token(TokenType.INTEGER, int(result), start_pos)

    def _string(self) -> Token:
        """Parse a quoted string; a doubled quote escapes itself (SQL style)."""
        start_pos = self.pos
        quote_char = self.current_char
        self.advance()

        result = ""
        while True:
            if self.current_char is None:
                raise RuleSyntaxError("Unterminated string literal", start_pos)
            if self.current_char == quote_char:
                if self.peek() == quote_char:
                    result += quote_char
                    self.advance(2)
                    continue
                break
            result += self.current_char
            self.advance()

        self.advance()
        return Token(TokenType.STRING, result, start_pos)

    def _identifier(self) -> Token:
        """Parse identifier (dotted names allowed) or keyword."""
        start_pos = self.pos
        result = ""
        while self.current_char is not None and (
            self.current_char.isalnum() or self.current_char in "_."
        ):
            result += self.current_char
            self.advance()

        if result.endswith(".") or ".." in result:
            raise RuleSyntaxError(f"Malformed identifier '{result}'", start_pos)

        keyword = KEYWORDS.get(result.lower())
        if keyword is not None:
            token_type, value = keyword
            return Token(token_type, value, start_pos)

        return Token(TokenType.IDENTIFIER, result, start_pos)

    def _operator(self) -> Token:
        """Parse comparison operators."""
        start_pos = self.pos
        char = self.current_char
        nxt = self.peek()

        if char == "=":
            self.advance(2 if nxt == "=" else 1)
            return Token(TokenType.EQ, "==", start_pos)

        if char == "!":
            if nxt == "=":
                self.advance(2)
                return Token(TokenType.NEQ, "!=", start_pos)
            self.error("Unexpected character '!'. Did you mean '!='?")

        if char == "<":
            if nxt == "=":
                self.advance(2)
                return Token(TokenType.LTE, "<=", start_pos)
            if nxt == ">":
                self.advance(2)
                return Token(TokenType.NEQ, "!=", start_pos)
            self.advance()
            return Token(TokenType.LT, "<", start_pos)

        if char == ">":
            if nxt == "=":
                self.advance(2)
                return Token(TokenType.GTE, ">=", start_pos)
            self.advance()
            return Token(TokenType.GT, ">", start_pos)

        self.error(f"Invalid character '{char}'")
        raise AssertionError("unreachable")

    def get_next_token(self) -> Token:
        """Get the next token from input."""
        while self.current_char is not None:

            if self.current_char.isspace():
                self.skip_whitespace()
                continue

            if self.current_char.isdigit():
                return self._number()

            if self.current_char in ("'", '"'):
                return self._string()

            if self.current_char.isalpha() or self.current_char == "_":
                return self._identifier()

            token_type = SINGLE_CHAR_TOKENS.get(self.current_char)
            if token_type is not None:
                token = Token(token_type, self.current_char, self.pos)
                self.advance()
                return token

            return self._operator()

        return Token(TokenType.EOF, None, self.pos)

    def tokenize(self) -> Iterator[Token]:
        """Generator that yields all tokens."""
        while True:
            token = self.get_next_token()
            yield token
            if token.type == TokenType.EOF:
                break
