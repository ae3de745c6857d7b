"""Raw parser for the query language.

Grammar (EBNF):
    query     = or_expr ;
    or_expr   = and_expr, { ("||" | "OR"), and_expr } ;
    and_expr  = unary, { ("&&" | "AND"), unary } ;
    unary     = { "!" | "NOT" }, primary ;
    primary   = predicate | "(", or_expr, ")" ;
    predicate = selector, [ operator, value ] ;
    value     = word | string | set ;

Precedence (tightest to loosest):
    1. ! (NOT)
    2. && (AND)
    3. || (OR)
    Parentheses override precedence.

The grammar is driven by an explicit operator-precedence table and two
stacks instead of recursive descent, so deeply parenthesized input cannot
exhaust the interpreter stack. The result is an untyped tree; selectors,
operators and values are validated by :mod:`detect.query.typechecker`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NoReturn

from ..errors import QuerySyntaxError
from .tokenizer import Token, TokenType, tokenize


@dataclass(frozen=True)
class RawValue:
    """A value as written in the query.

    Attributes:
        text: The unescaped text of the value.
        position: Character index of the value in the query.
        quoted: Whether the value was a quoted string.
        items: The members of a bracketed set, or None.
    """

    text: str
    position: int
    quoted: bool = False
    items: tuple[str, ...] | None = None


@dataclass(frozen=True)
class RawPredicate:
    """An untyped ``selector operator value`` triple.

    A lone word (single-word alias, glob, or structured existence check) has
    neither operator nor value.
    """

    selector: str
    position: int
    operator: str | None = None
    operator_position: int = 0
    value: RawValue | None = None


@dataclass(frozen=True)
class RawNot:
    """Negation in the raw tree."""

    operand: RawExpr


@dataclass(frozen=True)
class RawAnd:
    """Conjunction in the raw tree."""

    operands: tuple[RawExpr, ...]


@dataclass(frozen=True)
class RawOr:
    """Disjunction in the raw tree."""

    operands: tuple[RawExpr, ...]


RawExpr = RawPredicate | RawNot | RawAnd | RawOr

# Operator-precedence table: higher binds tighter.
_PRECEDENCE = {
    TokenType.NOT: 3,
    TokenType.AND: 2,
    TokenType.OR: 1,
    TokenType.LPAREN: 0,
}

_KEYWORDS = {"AND": TokenType.AND, "OR": TokenType.OR, "NOT": TokenType.NOT}

_EXPECT_OPERAND = ("selector", "(", "!", "NOT")
_EXPECT_VALUE = ("value",)


def _keyword(token: Token) -> TokenType | None:
    """Return the combinator a token stands for, if any."""
    if token.type in (TokenType.AND, TokenType.OR, TokenType.NOT):
        return token.type
    if token.type == TokenType.WORD:
        return _KEYWORDS.get(token.value.upper())
    return None


def _combine(kind: TokenType, left: RawExpr, right: RawExpr) -> RawExpr:
    """Build an AND/OR node, flattening operands of the same kind."""
    node_type: type[RawAnd] | type[RawOr] = RawAnd if kind == TokenType.AND else RawOr
    operands: list[RawExpr] = []
    for side in (left, right):
        if isinstance(side, node_type):
            operands.extend(side.operands)
        else:
            operands.append(side)
    return node_type(operands=tuple(operands))


class _Parser:
    """Operator-precedence parser for the query language."""

    def __init__(self, query: str) -> None:
        self.query = query
        self.tokens = list(tokenize(query))
        self.pos = 0
        self.operands: list[RawExpr] = []
        self.operators: list[Token] = []
        self.depth = 0

    def _current(self) -> Token:
        """Get the current token."""
        if self.pos >= len(self.tokens):
            return self.tokens[-1]  # Return EOF
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        """Advance to the next token and return the previous one."""
        token = self._current()
        self.pos += 1
        return token

    def _error(
        self, message: str, token: Token, expected: tuple[str, ...]
    ) -> NoReturn:
        raise QuerySyntaxError(message, self.query, token.position, expected)

    def _expect_operator(self) -> tuple[str, ...]:
        """Tokens accepted right after a complete operand."""
        accepted = ("&&", "||", "AND", "OR", "end of input")
        if self.depth:
            accepted += (")",)
        return accepted

    def _reduce(self) -> None:
        """Pop one operator and apply it to the operand stack."""
        op = self.operators.pop()
        if op.type == TokenType.NOT:
            self.operands.append(RawNot(operand=self.operands.pop()))
            return
        right = self.operands.pop()
        left = self.operands.pop()
        self.operands.append(_combine(op.type, left, right))

    def _reduce_while(self, precedence: int) -> None:
        """Reduce operators binding at least as tightly as ``precedence``."""
        while self.operators and self.operators[-1].type != TokenType.LPAREN:
            if _PRECEDENCE[self.operators[-1].type] < precedence:
                break
            self._reduce()

    def parse(self) -> RawExpr:
        """Parse the query and return the raw tree."""
        if self._current().type == TokenType.EOF:
            self._error("Empty query", self._current(), _EXPECT_OPERAND)

        expecting_operand = True
        while True:
            if expecting_operand:
                expecting_operand = not self._parse_operand_position()
                continue

            token = self._current()
            kind = _keyword(token)
            if kind in (TokenType.AND, TokenType.OR):
                self._advance()
                self._reduce_while(_PRECEDENCE[kind])
                self.operators.append(Token(kind, token.value, token.position))
                expecting_operand = True
            elif token.type == TokenType.RPAREN:
                if not self.depth:
                    self._error("Unbalanced ')'", token, self._expect_operator())
                self._advance()
                self._reduce_while(0)
                self.operators.pop()  # the matching '('
                self.depth -= 1
            elif token.type == TokenType.EOF:
                if self.depth:
                    self._error("Unclosed '('", token, (")",))
                while self.operators:
                    self._reduce()
                return self.operands[0]
            else:
                self._error(
                    f"Unexpected token: {token.value}",
                    token,
                    self._expect_operator(),
                )

    def _parse_operand_position(self) -> bool:
        """Consume a prefix operator, an opening paren, or one predicate.

        Returns:
            True if a complete operand was pushed.
        """
        token = self._current()
        kind = _keyword(token)
        if kind == TokenType.NOT:
            self._advance()
            self.operators.append(Token(TokenType.NOT, token.value, token.position))
            return False
        elif token.type == TokenType.LPAREN:
            self._advance()
            self.operators.append(token)
            self.depth += 1
            return False
        elif token.type == TokenType.WORD and kind is None:
            self.operands.append(self._parse_predicate())
            return True
        else:
            if token.type == TokenType.EOF:
                self._error("Unexpected end of input", token, _EXPECT_OPERAND)
            self._error(f"Unexpected token: {token.value}", token, _EXPECT_OPERAND)

    def _parse_predicate(self) -> RawPredicate:
        """Parse ``selector [operator value]``."""
        selector = self._advance()
        candidate = self._current()
        if candidate.type != TokenType.WORD or _keyword(candidate) is not None:
            return RawPredicate(selector=selector.value, position=selector.position)

        operator = self._advance()
        value_token = self._current()
        if value_token.type == TokenType.WORD:
            value = RawValue(value_token.value, value_token.position)
        elif value_token.type == TokenType.STRING:
            value = RawValue(value_token.value, value_token.position, quoted=True)
        elif value_token.type == TokenType.SET:
            value = RawValue(
                value_token.value, value_token.position, items=value_token.items
            )
        else:
            self._error(
                f"Expected value after '{operator.value}'",
                value_token,
                _EXPECT_VALUE,
            )
        self._advance()
        return RawPredicate(
            selector=selector.value,
            position=selector.position,
            operator=operator.value,
            operator_position=operator.position,
            value=value,
        )


def parse_raw(query: str) -> RawExpr:
    """Parse a query string into an untyped tree.

    Args:
        query: The query string to parse.

    Returns:
        The raw expression tree.

    Raises:
        QuerySyntaxError: If the query is malformed. The error carries the
            byte offset and the set of tokens accepted at that point.

    Examples:
        >>> parse_raw("ext == rs")
        RawPredicate(selector='ext', position=0, operator='==', ...)

        >>> parse_raw("dir && !hidden")
        RawAnd(operands=(RawPredicate(selector='dir', ...), RawNot(...)))
    """
    return _Parser(query).parse()
