"""Three-valued bottom-up reduction of expression trees.

The fold replaces every predicate that a resolver can decide with a
:class:`KnownResult` and simplifies the combinators around it:

- ``And`` is false as soon as any operand is known false, and true once all
  operands are known true.
- ``Or`` is true as soon as any operand is known true, and false once all
  operands are known false.
- ``Not`` of a known value is known.

Undecided operands stay in the tree for a later phase. Known-neutral operands
(true under ``And``, false under ``Or``) are dropped. Once an ``And``/``Or`` is
settled its remaining operands are not visited, so their predicates are never
resolved.

The traversal uses an explicit stack, so nesting depth is bounded only by
memory.
"""

from collections.abc import Callable

from ..query.types import (
    AndExpr,
    Expr,
    KnownResult,
    NotExpr,
    OrExpr,
    Predicate,
    children,
)

Resolver = Callable[[Predicate], bool | None]

_TRUE = KnownResult(True)
_FALSE = KnownResult(False)


class _Pending:
    """A combinator whose operands are being folded."""

    def __init__(self, node: NotExpr | AndExpr | OrExpr) -> None:
        self.node = node
        self.operands = children(node)
        self.next = 0
        self.reduced: list[Expr] = []

    def next_operand(self) -> Expr:
        operand = self.operands[self.next]
        self.next += 1
        return operand

    def settled(self) -> bool:
        """Whether the last reduced operand decides this node on its own."""
        last = self.reduced[-1]
        if isinstance(self.node, AndExpr):
            return last == _FALSE
        if isinstance(self.node, OrExpr):
            return last == _TRUE
        return False

    def exhausted(self) -> bool:
        return self.next >= len(self.operands)

    def collapse(self) -> Expr:
        """Build the reduced node from the reduced operands."""
        if isinstance(self.node, NotExpr):
            operand = self.reduced[0]
            if isinstance(operand, KnownResult):
                return KnownResult(not operand.value)
            return self.node if operand is self.node.operand else NotExpr(operand)

        is_and = isinstance(self.node, AndExpr)
        absorbing = _FALSE if is_and else _TRUE
        if absorbing in self.reduced:
            return absorbing
        unknown = [r for r in self.reduced if not isinstance(r, KnownResult)]
        if not unknown:
            return _TRUE if is_and else _FALSE
        if len(unknown) == 1:
            return unknown[0]
        return AndExpr(tuple(unknown)) if is_and else OrExpr(tuple(unknown))


def fold(expr: Expr, resolve: Resolver) -> Expr:
    """Reduce ``expr`` using ``resolve`` for its predicates.

    Args:
        expr: The tree to reduce.
        resolve: Returns the truth value of a predicate, or None to leave it
            unresolved.

    Returns:
        The reduced tree; a :class:`KnownResult` if the root is decided.
    """
    stack: list[_Pending] = []
    node: Expr | None = expr
    result: Expr = expr

    while True:
        if node is not None:
            if isinstance(node, Predicate):
                value = resolve(node)
                result = node if value is None else KnownResult(value)
            elif isinstance(node, KnownResult):
                result = node
            else:
                pending = _Pending(node)
                stack.append(pending)
                node = pending.next_operand()
                continue
            node = None

        if not stack:
            return result

        pending = stack[-1]
        pending.reduced.append(result)
        if pending.settled() or pending.exhausted():
            stack.pop()
            result = pending.collapse()
        else:
            node = pending.next_operand()
