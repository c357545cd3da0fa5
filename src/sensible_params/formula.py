"""Small expression language used by derived parameters.

Grammar (lowest to highest precedence)::

    expr  := term (('+' | '-') term)*
    term  := unary (('*' | '/') unary)*
    unary := ('+' | '-') unary | power
    power := atom (('^' | '**') unary)?
    atom  := NUMBER | NAME | NAME '(' [expr (',' expr)*] ')' | '(' expr ')'

Formulas are parsed into an immutable tree, never handed to ``eval``.
Arithmetic and the function table are numpy ufuncs, so vector-valued
operands broadcast elementwise.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

import numpy as np

from .errors import FormulaSyntaxError


__all__ = [
    "Node",
    "Literal",
    "Name",
    "UnaryOp",
    "BinOp",
    "Call",
    "FUNCTIONS",
    "parse",
    "as_formula",
    "free_names",
    "evaluate",
    "compile_formula",
    "to_source",
]


# name -> (ufunc, arity)
FUNCTIONS: Dict[str, Tuple[Callable[..., Any], int]] = {
    "sin": (np.sin, 1),
    "cos": (np.cos, 1),
    "tan": (np.tan, 1),
    "arcsin": (np.arcsin, 1),
    "arccos": (np.arccos, 1),
    "arctan": (np.arctan, 1),
    "arctan2": (np.arctan2, 2),
    "sinh": (np.sinh, 1),
    "cosh": (np.cosh, 1),
    "tanh": (np.tanh, 1),
    "exp": (np.exp, 1),
    "log": (np.log, 1),
    "log10": (np.log10, 1),
    "log2": (np.log2, 1),
    "sqrt": (np.sqrt, 1),
    "abs": (np.abs, 1),
    "sign": (np.sign, 1),
    "floor": (np.floor, 1),
    "ceil": (np.ceil, 1),
    "minimum": (np.minimum, 2),
    "maximum": (np.maximum, 2),
    "hypot": (np.hypot, 2),
}

_BINARY = {
    "+": np.add,
    "-": np.subtract,
    "*": np.multiply,
    "/": np.divide,
    "^": np.power,
}

_UNARY = {
    "+": np.positive,
    "-": np.negative,
}

# Rendering precedence, higher binds tighter.
_PREC = {"+": 1, "-": 1, "*": 2, "/": 2, "unary": 3, "^": 4, "atom": 5}


# ---- tree ----------------------------------------------------------------


class Node:
    """Base class for formula tree nodes."""

    def __str__(self) -> str:
        return to_source(self)


@dataclass(frozen=True)
class Literal(Node):
    value: float


@dataclass(frozen=True)
class Name(Node):
    id: str


@dataclass(frozen=True)
class UnaryOp(Node):
    op: str
    operand: Node


@dataclass(frozen=True)
class BinOp(Node):
    op: str
    left: Node
    right: Node


@dataclass(frozen=True)
class Call(Node):
    func: str
    args: Tuple[Node, ...]


# ---- tokenizer -----------------------------------------------------------

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
  | (?P<name>[A-Za-z_][A-Za-z_0-9]*)
  | (?P<op>\*\*|[-+*/^(),])
    """,
    re.VERBOSE,
)


@dataclass(frozen=True)
class _Token:
    kind: str  # "number", "name", "op", "end"
    text: str
    pos: int


def _tokenize(text: str) -> List[_Token]:
    tokens: List[_Token] = []
    pos = 0
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if m is None:
            raise FormulaSyntaxError(f"Unexpected character {text[pos]!r}", text, pos)
        kind = m.lastgroup
        if kind != "ws":
            tok = m.group()
            if tok == "**":
                tok = "^"
            tokens.append(_Token(kind, tok, pos))  # type: ignore[arg-type]
        pos = m.end()
    tokens.append(_Token("end", "", len(text)))
    return tokens


# ---- parser --------------------------------------------------------------


class _Parser:
    def __init__(self, text: str):
        self.text = text
        self.tokens = _tokenize(text)
        self.i = 0

    @property
    def tok(self) -> _Token:
        return self.tokens[self.i]

    def _error(self, message: str, tok: Optional[_Token] = None) -> FormulaSyntaxError:
        tok = self.tok if tok is None else tok
        return FormulaSyntaxError(message, self.text, tok.pos)

    def _accept(self, *ops: str) -> Optional[str]:
        if self.tok.kind == "op" and self.tok.text in ops:
            op = self.tok.text
            self.i += 1
            return op
        return None

    def _expect(self, op: str) -> None:
        if self._accept(op) is None:
            found = self.tok.text or "end of formula"
            raise self._error(f"Expected {op!r}, found {found!r}")

    def parse(self) -> Node:
        if self.tok.kind == "end":
            raise self._error("Empty formula")
        node = self.expr()
        if self.tok.kind != "end":
            raise self._error(f"Unexpected {self.tok.text!r}")
        return node

    def expr(self) -> Node:
        node = self.term()
        while True:
            op = self._accept("+", "-")
            if op is None:
                return node
            node = BinOp(op, node, self.term())

    def term(self) -> Node:
        node = self.unary()
        while True:
            op = self._accept("*", "/")
            if op is None:
                return node
            node = BinOp(op, node, self.unary())

    def unary(self) -> Node:
        op = self._accept("+", "-")
        if op is not None:
            return UnaryOp(op, self.unary())
        return self.power()

    def power(self) -> Node:
        base = self.atom()
        if self._accept("^") is not None:
            return BinOp("^", base, self.unary())
        return base

    def atom(self) -> Node:
        tok = self.tok
        if tok.kind == "number":
            self.i += 1
            return Literal(float(tok.text))

        if tok.kind == "name":
            self.i += 1
            if self._accept("(") is None:
                return Name(tok.text)
            if tok.text not in FUNCTIONS:
                raise self._error(f"Unknown function {tok.text!r}", tok)
            args: List[Node] = []
            if self._accept(")") is None:
                args.append(self.expr())
                while self._accept(",") is not None:
                    args.append(self.expr())
                self._expect(")")
            arity = FUNCTIONS[tok.text][1]
            if len(args) != arity:
                raise self._error(
                    f"Function {tok.text!r} takes {arity} argument(s), got {len(args)}",
                    tok,
                )
            return Call(tok.text, tuple(args))

        if self._accept("(") is not None:
            node = self.expr()
            self._expect(")")
            return node

        raise self._error(f"Unexpected {tok.text or 'end of formula'!r}")


def parse(text: str) -> Node:
    """Parse formula text into a tree. Raises FormulaSyntaxError."""
    if not isinstance(text, str):
        raise TypeError(f"formula must be a string, got {type(text).__name__}")
    return _Parser(text).parse()


def as_formula(formula: Union[str, Node]) -> Node:
    """Return `formula` as a tree, parsing strings."""
    if isinstance(formula, Node):
        return formula
    return parse(formula)


# ---- passes --------------------------------------------------------------


def free_names(node: Node) -> FrozenSet[str]:
    """Distinct parameter names referenced by a formula.

    Function names and operators are never included:
    ``free_names(parse("sin(A) + B * C")) == {"A", "B", "C"}``.
    """
    out = set()
    stack = [node]
    while stack:
        n = stack.pop()
        if isinstance(n, Name):
            out.add(n.id)
        elif isinstance(n, UnaryOp):
            stack.append(n.operand)
        elif isinstance(n, BinOp):
            stack.append(n.left)
            stack.append(n.right)
        elif isinstance(n, Call):
            stack.extend(n.args)
    return frozenset(out)


def compile_formula(node: Node) -> Callable[[Mapping[str, Any]], Any]:
    """Turn a tree into a nested closure taking a name -> value mapping."""
    if isinstance(node, Literal):
        v = node.value
        return lambda env: v
    if isinstance(node, Name):
        key = node.id
        return lambda env: env[key]
    if isinstance(node, UnaryOp):
        ufunc = _UNARY[node.op]
        operand = compile_formula(node.operand)
        return lambda env: ufunc(operand(env))
    if isinstance(node, BinOp):
        ufunc = _BINARY[node.op]
        left = compile_formula(node.left)
        right = compile_formula(node.right)
        return lambda env: ufunc(left(env), right(env))
    if isinstance(node, Call):
        func = FUNCTIONS[node.func][0]
        args = tuple(compile_formula(a) for a in node.args)
        return lambda env: func(*(a(env) for a in args))
    raise TypeError(f"Not a formula node: {node!r}")


def evaluate(node: Node, env: Mapping[str, Any]) -> Any:
    """Evaluate a formula once with numpy broadcasting semantics."""
    return compile_formula(node)(env)


def _format_number(v: float) -> str:
    if np.isfinite(v) and float(v).is_integer() and abs(v) < 1e16:
        return str(int(v))
    return repr(float(v))


def _prec(node: Node) -> int:
    if isinstance(node, BinOp):
        return _PREC[node.op]
    if isinstance(node, UnaryOp):
        return _PREC["unary"]
    if isinstance(node, Literal) and node.value < 0:
        return _PREC["unary"]
    return _PREC["atom"]


def _wrap(node: Node, needs_parens: bool) -> str:
    s = to_source(node)
    return f"({s})" if needs_parens else s


def to_source(node: Node) -> str:
    """Render a tree as text, using only the parentheses it needs."""
    if isinstance(node, Literal):
        return _format_number(node.value)
    if isinstance(node, Name):
        return node.id
    if isinstance(node, Call):
        return f"{node.func}({', '.join(to_source(a) for a in node.args)})"
    if isinstance(node, UnaryOp):
        return node.op + _wrap(node.operand, _prec(node.operand) < _PREC["unary"])
    if isinstance(node, BinOp):
        p = _PREC[node.op]
        if node.op == "^":
            left = _wrap(node.left, _prec(node.left) <= p)
            right = _wrap(node.right, _prec(node.right) < _PREC["unary"])
        else:
            left = _wrap(node.left, _prec(node.left) < p)
            right = _wrap(node.right, _prec(node.right) <= p)
        return f"{left} {node.op} {right}"
    raise TypeError(f"Not a formula node: {node!r}")
