"""Template tokenizer.

Splits raw template text into literal text runs and the three tag kinds:

    {# comment #}     -> one COMMENT token
    {{ expression }}  -> EXPRESSION_OPEN, TEXT (tag body), EXPRESSION_CLOSE
    {% statement %}   -> CONTROL_OPEN, TEXT (tag body), CONTROL_CLOSE

Lexing is permissive: an unterminated tag swallows the rest of the input
instead of raising, so a half-typed template still produces a token stream.
"""

import enum
from typing import List, NamedTuple


class TokenKind(str, enum.Enum):
    TEXT = "text"
    EXPRESSION_OPEN = "expression_open"
    EXPRESSION_CLOSE = "expression_close"
    CONTROL_OPEN = "control_open"
    CONTROL_CLOSE = "control_close"
    COMMENT = "comment"


class Token(NamedTuple):
    kind: TokenKind
    text: str
    line: int
    col: int


# opening delimiter -> (open kind, closing delimiter, close kind)
_TAGS = {
    "{{": (TokenKind.EXPRESSION_OPEN, "}}", TokenKind.EXPRESSION_CLOSE),
    "{%": (TokenKind.CONTROL_OPEN, "%}", TokenKind.CONTROL_CLOSE),
}


class _Scanner:
    """Single left-to-right pass keeping line/column of the cursor."""

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.line = 1
        self.col = 1
        self.text_start = 0
        self.text_line = 1
        self.text_col = 1
        self.tokens: List[Token] = []

    def advance_to(self, new_pos: int):
        chunk = self.source[self.pos:new_pos]
        newlines = chunk.count("\n")
        if newlines:
            self.line += newlines
            self.col = len(chunk) - chunk.rfind("\n")
        else:
            self.col += len(chunk)
        self.pos = new_pos

    def flush_text(self):
        if self.pos > self.text_start:
            self.tokens.append(
                Token(
                    TokenKind.TEXT,
                    self.source[self.text_start:self.pos],
                    self.text_line,
                    self.text_col,
                )
            )

    def mark_text_start(self):
        self.text_start = self.pos
        self.text_line = self.line
        self.text_col = self.col

    def emit(self, kind: TokenKind, text: str, line: int, col: int):
        self.tokens.append(Token(kind, text, line, col))

    def comment(self):
        start_line, start_col = self.line, self.col
        end = self.source.find("#}", self.pos + 2)
        if end == -1:
            # unterminated: the rest of the input is comment
            self.emit(TokenKind.COMMENT, self.source[self.pos + 2:], start_line, start_col)
            self.advance_to(len(self.source))
        else:
            body = self.source[self.pos + 2:end].strip()
            self.emit(TokenKind.COMMENT, body, start_line, start_col)
            self.advance_to(end + 2)

    def tag(self, opener: str):
        open_kind, closer, close_kind = _TAGS[opener]
        self.emit(open_kind, opener, self.line, self.col)
        self.advance_to(self.pos + 2)

        end = self.source.find(closer, self.pos)
        if end == -1:
            # unterminated: keep the remainder as the tag body, no close token
            self.emit(TokenKind.TEXT, self.source[self.pos:], self.line, self.col)
            self.advance_to(len(self.source))
            return

        raw = self.source[self.pos:end]
        body = raw.strip()
        if body:
            lead = len(raw) - len(raw.lstrip())
            self.advance_to(self.pos + lead)
            self.emit(TokenKind.TEXT, body, self.line, self.col)
        self.advance_to(end)
        self.emit(close_kind, closer, self.line, self.col)
        self.advance_to(end + 2)

    def run(self) -> List[Token]:
        source = self.source
        while self.pos < len(source):
            brace = source.find("{", self.pos)
            if brace == -1:
                self.advance_to(len(source))
                break
            self.advance_to(brace)
            pair = source[brace:brace + 2]
            if pair == "{#":
                self.flush_text()
                self.comment()
                self.mark_text_start()
            elif pair in _TAGS:
                self.flush_text()
                self.tag(pair)
                self.mark_text_start()
            else:
                self.advance_to(brace + 1)
        self.flush_text()
        return self.tokens


def tokenize(source: str) -> List[Token]:
    """Tokenize a template.

    Args:
        source: Raw template text

    Returns:
        Flat list of tokens. Concatenating literal TEXT tokens outside of tags
        gives back the literal parts of the template unchanged.
    """
    return _Scanner(source).run()
