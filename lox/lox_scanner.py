"""
The Lox scanner: turns source text into a lazy stream of Tokens.

Lexical errors are reported through a callback and never stop the scan, so
a single pass reports every bad character and unterminated string.
"""
from typing import Callable, Iterator, Optional

from lox.lox_tokens import Token, TokenType, KEYWORDS, SINGLE_CHAR_TOKENS, EQUAL_PAIRS

LexErrorFn = Callable[[int, str], None]


def _is_alpha(c: str) -> bool:
    return c == "_" or ("a" <= c <= "z") or ("A" <= c <= "Z")


def _is_digit(c: str) -> bool:
    return "0" <= c <= "9"


class Scanner:
    """Scans one source string. Each call to scan_tokens() starts over."""

    def __init__(self, source: str, on_error: Optional[LexErrorFn] = None):
        self.source = source
        self.on_error = on_error
        self.start = 0
        self.current = 0
        self.line = 1
        self.line_start = 0

    def scan_tokens(self) -> Iterator[Token]:
        self.start = 0
        self.current = 0
        self.line = 1
        self.line_start = 0
        while not self._is_at_end():
            self.start = self.current
            token = self._scan_token()
            if token is not None:
                yield token
        yield Token(TokenType.EOF, "", None, self.line, self.current - self.line_start + 1)

    # --- Character helpers ---

    def _is_at_end(self) -> bool:
        return self.current >= len(self.source)

    def _advance(self) -> str:
        c = self.source[self.current]
        self.current += 1
        return c

    def _match(self, expected: str) -> bool:
        if self._is_at_end() or self.source[self.current] != expected:
            return False
        self.current += 1
        return True

    def _peek(self) -> str:
        if self._is_at_end():
            return "\0"
        return self.source[self.current]

    def _peek_next(self) -> str:
        if self.current + 1 >= len(self.source):
            return "\0"
        return self.source[self.current + 1]

    def _newline(self):
        self.line += 1
        self.line_start = self.current

    def _error(self, line: int, message: str):
        if self.on_error is not None:
            self.on_error(line, message)

    def _make(self, token_type: TokenType, literal=None, line: Optional[int] = None, column: Optional[int] = None) -> Token:
        text = self.source[self.start:self.current]
        if line is None:
            line = self.line
        if column is None:
            column = self.start - self.line_start + 1
        return Token(token_type, text, literal, line, column)

    # --- Token dispatch ---

    def _scan_token(self) -> Optional[Token]:
        c = self._advance()
        match c:
            case " " | "\r" | "\t":
                return None
            case "\n":
                self._newline()
                return None
            case "/":
                if self._match("/"):
                    while self._peek() != "\n" and not self._is_at_end():
                        self._advance()
                    return None
                if self._match("*"):
                    self._block_comment()
                    return None
                return self._make(TokenType.SLASH)
            case '"':
                return self._string()
        if c in SINGLE_CHAR_TOKENS:
            return self._make(SINGLE_CHAR_TOKENS[c])
        if c in EQUAL_PAIRS:
            single, double = EQUAL_PAIRS[c]
            return self._make(double if self._match("=") else single)
        if _is_digit(c):
            return self._number()
        if _is_alpha(c):
            return self._identifier()
        self._error(self.line, f"Unexpected character: {c}.")
        return None

    def _block_comment(self):
        # Block comments do not nest; an unterminated one runs to end of input.
        while not self._is_at_end():
            if self._peek() == "*" and self._peek_next() == "/":
                self.current += 2
                return
            if self._advance() == "\n":
                self._newline()

    def _string(self) -> Optional[Token]:
        start_line = self.line
        column = self.start - self.line_start + 1
        while self._peek() != '"' and self._peek() != "\n" and not self._is_at_end():
            self._advance()
        if self._peek() != '"':
            # Leave a terminating newline for the main loop so line counts stay right.
            self._error(start_line, "Unterminated string.")
            return None
        self._advance()  # closing quote
        value = self.source[self.start + 1:self.current - 1]
        return self._make(TokenType.STRING, value, line=start_line, column=column)

    def _number(self) -> Token:
        while _is_digit(self._peek()):
            self._advance()
        # A '.' only belongs to the number when a digit follows it.
        if self._peek() == "." and _is_digit(self._peek_next()):
            self._advance()
            while _is_digit(self._peek()):
                self._advance()
        return self._make(TokenType.NUMBER, float(self.source[self.start:self.current]))

    def _identifier(self) -> Token:
        while _is_alpha(self._peek()) or _is_digit(self._peek()):
            self._advance()
        text = self.source[self.start:self.current]
        return self._make(KEYWORDS.get(text, TokenType.IDENTIFIER))


def scan_tokens(source: str, on_error: Optional[LexErrorFn] = None) -> Iterator[Token]:
    """Lazily scan source, reporting lexical errors via on_error(line, message)."""
    return Scanner(source, on_error).scan_tokens()
