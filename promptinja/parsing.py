"""Statement parser: token stream -> list of template nodes.

Supported statements::

    {% if cond %} ... {% else if cond %} ... {% else %} ... {% endif %}
    {% for item in items %} ... {% endfor %}
    {% set name = expr %}
    {% block name %} ... {% endblock %}

Two failure tiers. Unknown statements and unterminated tags are kept as
literal text. Malformed ``for``/``set`` headers and an ``if``/``for``/``block``
that is never closed raise TemplateSyntaxError.
"""

import logging
import re
from functools import lru_cache
from typing import Callable, Dict, List, Optional, Tuple

from .errors import TemplateSyntaxError
from .expressions import parse_expr
from .nodes import Block, Branch, Comment, Expression, For, If, Node, Set, Text
from .tokenizer import Token, TokenKind, tokenize

logger = logging.getLogger(__name__)

BLOCK_PATTERN = re.compile(r"\{%\s*block\s+(\w+)\s*%\}(.*?)\{%\s*endblock(?:\s+\w+)?\s*%\}", re.DOTALL)

StopTest = Callable[[str], bool]


def _keyword_arg(text: str, keyword: str) -> Optional[str]:
    """Rest of ``text`` after ``keyword`` and whitespace, or None if no match."""
    if len(text) > len(keyword) and text.startswith(keyword) and text[len(keyword)].isspace():
        return text[len(keyword):].strip()
    return None


def _is_if_stop(text: str) -> bool:
    return text in ("else", "endif") or _keyword_arg(text, "else if") is not None


def _is_for_stop(text: str) -> bool:
    return text == "endfor"


def _is_block_stop(text: str) -> bool:
    return text == "endblock" or _keyword_arg(text, "endblock") is not None


class Parser:
    """Cursor over the token stream building nodes by recursive descent."""

    def __init__(self, tokens: List[Token], template_path: Optional[str] = None):
        self.tokens = tokens
        self.pos = 0
        self.template_path = template_path

    def _peek(self, offset: int = 0) -> Optional[Token]:
        idx = self.pos + offset
        return self.tokens[idx] if idx < len(self.tokens) else None

    def _advance(self) -> Token:
        tok = self.tokens[self.pos]
        self.pos += 1
        return tok

    def _read_tag(self, close_kind: TokenKind) -> Tuple[str, bool]:
        """Consume an open tag, its body and its close.

        Returns:
            (body, closed) where ``body`` is the raw body text and ``closed`` is
            False when the input ended before the closing delimiter.
        """
        self._advance()
        body = ""
        nxt = self._peek()
        if nxt is not None and nxt.kind == TokenKind.TEXT:
            body = self._advance().text
        nxt = self._peek()
        if nxt is not None and nxt.kind == close_kind:
            self._advance()
            return body, True
        return body, False

    def _control_text(self) -> Optional[str]:
        """Body of the control tag at the cursor, or None if there is none."""
        tok = self._peek()
        if tok is None or tok.kind != TokenKind.CONTROL_OPEN:
            return None
        body = self._peek(1)
        if body is not None and body.kind == TokenKind.TEXT:
            return body.text.strip()
        return ""

    def _error(self, message: str, text: str, tok: Token) -> TemplateSyntaxError:
        return TemplateSyntaxError(message, text=text, line=tok.line, col=tok.col, template_path=self.template_path)

    def parse_nodes(self, stop: Optional[StopTest] = None) -> List[Node]:
        """Collect nodes until a control tag satisfying ``stop`` or end of input.

        The stopping tag is left unconsumed for the caller.
        """
        nodes: List[Node] = []
        while self.pos < len(self.tokens):
            tok = self._peek()
            if tok.kind == TokenKind.TEXT:
                nodes.append(Text(self._advance().text))
            elif tok.kind == TokenKind.COMMENT:
                nodes.append(Comment(self._advance().text))
            elif tok.kind == TokenKind.EXPRESSION_OPEN:
                nodes.append(self._parse_expression())
            elif tok.kind == TokenKind.CONTROL_OPEN:
                text = self._control_text()
                if stop is not None and stop(text):
                    return nodes
                nodes.append(self._parse_control())
            else:
                logger.debug(f"Skipping stray {tok.kind.value} token at line {tok.line}")
                self._advance()
        return nodes

    def _parse_expression(self) -> Node:
        body, closed = self._read_tag(TokenKind.EXPRESSION_CLOSE)
        if not closed:
            return Text("{{" + body)
        return Expression(parse_expr(body))

    def _parse_control(self) -> Node:
        start = self._peek()
        body, closed = self._read_tag(TokenKind.CONTROL_CLOSE)
        if not closed:
            return Text("{%" + body)
        text = body.strip()

        if (arg := _keyword_arg(text, "if")) is not None:
            return self._parse_if(arg, text, start)
        if (arg := _keyword_arg(text, "for")) is not None:
            return self._parse_for(arg, text, start)
        if (arg := _keyword_arg(text, "set")) is not None:
            return self._parse_set(arg, text, start)
        if (arg := _keyword_arg(text, "block")) is not None:
            return self._parse_block(arg, text, start)

        logger.debug(f"Unknown statement '{text}' at line {start.line}, keeping as text")
        return Text(f"{{% {text} %}}")

    def _consume_control(self):
        self._read_tag(TokenKind.CONTROL_CLOSE)

    def _parse_if(self, condition: str, header: str, start: Token) -> If:
        branches = [Branch(parse_expr(condition), tuple(self.parse_nodes(_is_if_stop)))]
        else_body = None

        while True:
            text = self._control_text()
            if text is None:
                raise self._error("Unclosed 'if': missing {% endif %}", header, start)
            self._consume_control()
            if text == "endif":
                break
            if text == "else":
                else_body = tuple(self.parse_nodes(_is_if_stop))
                if self._control_text() != "endif":
                    raise self._error("Expected {% endif %} after {% else %}", header, start)
                self._consume_control()
                break
            branches.append(
                Branch(parse_expr(_keyword_arg(text, "else if")), tuple(self.parse_nodes(_is_if_stop)))
            )

        return If(tuple(branches), else_body)

    def _parse_for(self, clause: str, header: str, start: Token) -> For:
        variable, sep, iterable = clause.partition(" in ")
        variable = variable.strip()
        if not sep or not variable:
            raise self._error(f"Invalid for syntax: {clause}", header, start)
        body = tuple(self.parse_nodes(_is_for_stop))
        if self._control_text() is None:
            raise self._error("Unclosed 'for': missing {% endfor %}", header, start)
        self._consume_control()
        return For(variable, parse_expr(iterable), body)

    def _parse_set(self, clause: str, header: str, start: Token) -> Set:
        variable, sep, value = clause.partition("=")
        variable = variable.strip()
        if not sep or not variable:
            raise self._error(f"Invalid set syntax: {clause}", header, start)
        return Set(variable, parse_expr(value))

    def _parse_block(self, name: str, header: str, start: Token) -> Block:
        body = tuple(self.parse_nodes(_is_block_stop))
        if self._control_text() is None:
            raise self._error("Unclosed 'block': missing {% endblock %}", header, start)
        self._consume_control()
        return Block(name, body)


@lru_cache(maxsize=256)
def parse_template(source: str) -> Tuple[Node, ...]:
    """Parse and cache; the returned tree is immutable and safe to share."""
    return tuple(Parser(tokenize(source)).parse_nodes())


def parse(source: str, template_path: Optional[str] = None) -> List[Node]:
    """Parse a template into its top-level nodes.

    Args:
        source: Template text
        template_path: Optional file name, only used in error messages

    Raises:
        TemplateSyntaxError: Malformed for/set, or an unclosed if/for/block
    """
    if template_path is None:
        return list(parse_template(source))
    try:
        return list(parse_template(source))
    except TemplateSyntaxError as e:
        e.template_path = template_path
        raise


def extract_blocks(source: str) -> Dict[str, str]:
    """Collect ``{% block name %}...{% endblock %}`` regions from a template.

    Used to turn a character file into the block override table of another
    render: ``RenderContext(blocks=extract_blocks(character_source))``.

    Returns:
        Mapping of block name to its raw, trimmed body text. Later definitions
        of the same name win.
    """
    return {match.group(1): match.group(2).strip() for match in BLOCK_PATTERN.finditer(source)}
