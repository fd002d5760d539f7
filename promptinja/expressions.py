"""Parser for the expression language inside ``{{ }}`` and ``{% %}`` tags.

Lexing is done by a lark basic lexer; the token stream is then parsed by a
precedence-climbing recursive descent parser. Precedence, lowest first:

    expression     -> or_expr
    or_expr        -> and_expr ("or" and_expr)*
    and_expr       -> not_expr ("and" not_expr)*
    not_expr       -> "not" not_expr | comparison
    comparison     -> additive (("==" | "!=" | ">=" | "<=" | ">" | "<" | "in" | "not in") additive)*
    additive       -> multiplicative (("+" | "-") multiplicative)*
    multiplicative -> unary (("*" | "/" | "%") unary)*
    unary          -> "-" unary | postfix
    postfix        -> primary ("." NAME | "." NAME "(" args ")" | "[" expression "]" | "|" NAME ["(" args ")"])*
    primary        -> STRING | NUMBER | true | false | null | NAME | NAME "(" args ")"
                    | "(" expression ")" | "[" args "]" | "{" entries "}"

The parser is forgiving. Missing closing brackets are assumed, trailing
tokens after a complete expression are ignored, and anything that cannot
start an expression is taken verbatim as a variable name.
"""

import logging
from functools import lru_cache
from typing import List, Optional, Tuple

from lark import Lark, Token
from lark.exceptions import UnexpectedCharacters

from .nodes import (
    ArrayLiteral,
    Binary,
    BoolLiteral,
    BracketAccess,
    Call,
    DotAccess,
    Expr,
    Filter,
    NullLiteral,
    NumberLiteral,
    ObjectLiteral,
    StringLiteral,
    Unary,
    Variable,
)

logger = logging.getLogger(__name__)

# Only the lexer of this grammar is used. The start rule just references every
# terminal so lark keeps them all.
_expression_grammar = r"""
start: (STRING | NUMBER | NAME | OP2 | OP1)*

STRING: /"(?:\\.|[^"\\])*(?:"|\\)?/
      | /'(?:\\.|[^'\\])*(?:'|\\)?/
NUMBER: /\d+(?:\.\d+)?/
NAME: /[A-Za-z_]\w*/
OP2: "==" | "!=" | ">=" | "<="
OP1: /[-+*\/%<>|=.,:()\[\]{}]/

%import common.WS
%ignore WS
"""

_cached_lexer = None

COMPARISON_OPS = ("==", "!=", ">=", "<=", ">", "<")
NULL_WORDS = ("null", "none")

ERROR = "ERROR"


def _get_lexer() -> Lark:
    """Get cached lark instance used for lexing only."""
    global _cached_lexer
    if _cached_lexer is None:
        _cached_lexer = Lark(_expression_grammar, parser="lalr", lexer="basic")
    return _cached_lexer


def lex_expression(text: str) -> List[Token]:
    """Split expression text into lark tokens.

    An unknown character ends the stream with a single ERROR token holding the
    rest of the text.
    """
    tokens: List[Token] = []
    try:
        for tok in _get_lexer().lex(text):
            tokens.append(tok)
    except UnexpectedCharacters as e:
        pos = e.pos_in_stream
        tokens.append(Token(ERROR, text[pos:], start_pos=pos))
    return tokens


def unescape_string(raw: str) -> str:
    """Decode a quoted string token (quotes included, closing quote optional)."""
    quote = raw[0]
    chars = []
    i = 1
    while i < len(raw) and raw[i] != quote:
        ch = raw[i]
        if ch == "\\" and i + 1 < len(raw):
            i += 1
            escaped = raw[i]
            if escaped == "n":
                chars.append("\n")
            elif escaped == "t":
                chars.append("\t")
            elif escaped == "\\":
                chars.append("\\")
            elif escaped == quote:
                chars.append(quote)
            else:
                chars.append("\\" + escaped)
        else:
            chars.append(ch)
        i += 1
    return "".join(chars)


class ExpressionParser:
    """Recursive descent parser over the lexed expression tokens."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = lex_expression(text)
        self.pos = 0

    def parse(self) -> Expr:
        expr = self._parse_or()
        if not self._at_end():
            rest = self.text[self._current().start_pos:]
            logger.debug(f"Ignoring trailing text {rest!r} in expression {self.text!r}")
        return expr

    # -- token helpers ------------------------------------------------------

    def _at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def _current(self) -> Optional[Token]:
        if self._at_end():
            return None
        return self.tokens[self.pos]

    def _peek(self, offset: int = 1) -> Optional[Token]:
        idx = self.pos + offset
        return self.tokens[idx] if idx < len(self.tokens) else None

    def _advance(self) -> Token:
        tok = self.tokens[self.pos]
        self.pos += 1
        return tok

    @staticmethod
    def _is_op(tok: Optional[Token], *ops: str) -> bool:
        return tok is not None and tok.type in ("OP1", "OP2") and tok.value in ops

    @staticmethod
    def _is_word(tok: Optional[Token], *words: str) -> bool:
        return tok is not None and tok.type == "NAME" and tok.value in words

    def _match_op(self, *ops: str) -> Optional[str]:
        if self._is_op(self._current(), *ops):
            return self._advance().value
        return None

    def _match_word(self, word: str) -> bool:
        if self._is_word(self._current(), word):
            self._advance()
            return True
        return False

    def _close(self, op: str):
        """Consume a closing bracket, assuming it when absent."""
        if not self._match_op(op):
            logger.debug(f"Missing '{op}' in expression {self.text!r}")

    # -- precedence ladder --------------------------------------------------

    def _parse_or(self) -> Expr:
        left = self._parse_and()
        while self._match_word("or"):
            left = Binary("or", left, self._parse_and())
        return left

    def _parse_and(self) -> Expr:
        left = self._parse_not()
        while self._match_word("and"):
            left = Binary("and", left, self._parse_not())
        return left

    def _parse_not(self) -> Expr:
        if self._match_word("not"):
            return Unary("not", self._parse_not())
        return self._parse_comparison()

    def _parse_comparison(self) -> Expr:
        left = self._parse_additive()
        while True:
            op = self._match_op(*COMPARISON_OPS)
            if op:
                left = Binary(op, left, self._parse_additive())
            elif self._match_word("in"):
                left = Binary("in", left, self._parse_additive())
            elif self._is_word(self._current(), "not") and self._is_word(self._peek(), "in"):
                self.pos += 2
                left = Unary("not", Binary("in", left, self._parse_additive()))
            else:
                return left

    def _parse_additive(self) -> Expr:
        left = self._parse_multiplicative()
        while op := self._match_op("+", "-"):
            left = Binary(op, left, self._parse_multiplicative())
        return left

    def _parse_multiplicative(self) -> Expr:
        left = self._parse_unary()
        while op := self._match_op("*", "/", "%"):
            left = Binary(op, left, self._parse_unary())
        return left

    def _parse_unary(self) -> Expr:
        if self._match_op("-"):
            operand = self._parse_unary()
            if isinstance(operand, NumberLiteral):
                return NumberLiteral(-operand.value)
            return Unary("-", operand)
        return self._parse_postfix(self._parse_primary())

    # -- primaries ----------------------------------------------------------

    def _parse_primary(self) -> Expr:
        tok = self._current()
        if tok is None or tok.type == ERROR:
            return self._fallback()

        if tok.type == "STRING":
            self._advance()
            return StringLiteral(unescape_string(tok.value))

        if tok.type == "NUMBER":
            self._advance()
            return NumberLiteral(float(tok.value))

        if tok.type == "NAME":
            self._advance()
            name = tok.value
            if name == "true":
                return BoolLiteral(True)
            if name == "false":
                return BoolLiteral(False)
            if name in NULL_WORDS:
                return NullLiteral()
            if self._is_op(self._current(), "("):
                return Call(name, self._parse_args())
            return Variable(name)

        if self._match_op("("):
            expr = self._parse_or()
            self._close(")")
            return expr

        if self._match_op("["):
            return ArrayLiteral(self._parse_items("]"))

        if self._match_op("{"):
            return ObjectLiteral(self._parse_entries())

        return self._fallback()

    def _fallback(self) -> Expr:
        """Take whatever is left verbatim as a variable name."""
        tok = self._current()
        remaining = self.text[tok.start_pos:].strip() if tok is not None else ""
        self.pos = len(self.tokens)
        if remaining:
            logger.debug(f"Unparseable expression text {remaining!r}, treating as variable")
        return Variable(remaining)

    def _parse_items(self, closer: str) -> Tuple[Expr, ...]:
        items = []
        while not self._at_end() and not self._is_op(self._current(), closer):
            items.append(self._parse_or())
            if not self._match_op(","):
                break
        self._close(closer)
        return tuple(items)

    def _parse_args(self) -> Tuple[Expr, ...]:
        self._advance()  # (
        return self._parse_items(")")

    def _parse_entries(self) -> Tuple[Tuple[str, Expr], ...]:
        entries = []
        while not self._at_end() and not self._is_op(self._current(), "}"):
            key_tok = self._current()
            if key_tok.type == "STRING":
                key = unescape_string(key_tok.value)
            elif key_tok.type in ("NAME", "NUMBER"):
                key = key_tok.value
            else:
                break
            self._advance()
            if not self._match_op(":"):
                break
            entries.append((key, self._parse_or()))
            if not self._match_op(","):
                break
        self._close("}")
        return tuple(entries)

    # -- postfix chain ------------------------------------------------------

    def _parse_postfix(self, expr: Expr) -> Expr:
        while True:
            if self._match_op("."):
                expr = self._parse_member(expr)
            elif self._match_op("["):
                index = self._parse_or()
                self._close("]")
                expr = BracketAccess(expr, index)
            elif self._is_op(self._current(), "|") and self._peek() is not None and self._peek().type == "NAME":
                self._advance()
                name = self._advance().value
                args: Tuple[Expr, ...] = ()
                if self._is_op(self._current(), "("):
                    args = self._parse_args()
                expr = Filter(expr, name, args)
            else:
                return expr

    def _parse_member(self, expr: Expr) -> Expr:
        tok = self._current()
        if tok is not None and tok.type == "NUMBER":
            # a.0.1 lexes as NAME "." NUMBER("0.1")
            self._advance()
            for part in tok.value.split("."):
                expr = DotAccess(expr, part)
            return expr
        if tok is None or tok.type != "NAME":
            return DotAccess(expr, "")
        self._advance()
        if self._is_op(self._current(), "("):
            return Call(tok.value, self._parse_args(), callee=expr)
        return DotAccess(expr, tok.value)


@lru_cache(maxsize=1024)
def parse_expr(text: str) -> Expr:
    """Parse the text of a tag into an expression tree.

    Never raises for malformed input; see the module docstring.

    Example:
        >>> parse_expr("npc.name | upper")
        Filter(value=DotAccess(object=Variable(name='npc'), property='name'), filter_name='upper', args=())
    """
    return ExpressionParser(text.strip()).parse()
