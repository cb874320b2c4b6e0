"""Integer expressions shared by ``#if`` evaluation and constant folding.

The parser is a small Pratt parser over :class:`~headerbind.lexer.Token`
lists. Evaluation follows C's integer rules closely enough for header
constants: literal types are picked by value and suffix, binary operators
apply the usual arithmetic conversions, and every result wraps to the width
of its type.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Union

from headerbind.diagnostics import ExpressionError
from headerbind.lexer import CHAR, IDENT, NUMBER, PUNCT, Token

# =============================================================================
# Integer types and values
# =============================================================================


@dataclass(frozen=True)
class IntType:
    """A C integer type reduced to its width and signedness."""

    bits: int
    signed: bool

    @property
    def min(self) -> int:
        return -(1 << (self.bits - 1)) if self.signed else 0

    @property
    def max(self) -> int:
        return (1 << (self.bits - 1)) - 1 if self.signed else (1 << self.bits) - 1

    @property
    def rust_name(self) -> str:
        return f"{'i' if self.signed else 'u'}{self.bits}"

    def fits(self, value: int) -> bool:
        return self.min <= value <= self.max

    def wrap(self, value: int) -> int:
        """Reduce ``value`` modulo 2**bits into this type's range."""
        value &= (1 << self.bits) - 1
        if self.signed and value >= 1 << (self.bits - 1):
            value -= 1 << self.bits
        return value

    def __str__(self) -> str:
        return self.rust_name


INT = IntType(32, True)
UINT = IntType(32, False)
LLONG = IntType(64, True)
ULLONG = IntType(64, False)


@dataclass(frozen=True)
class IntValue:
    """A typed integer value. ``notation`` records the literal's base, if it was one."""

    value: int
    type: IntType
    notation: str = "decimal"


def _promote(t: IntType) -> IntType:
    return INT if t.bits < 32 else t


def common_type(a: IntType, b: IntType) -> IntType:
    """Apply C's usual arithmetic conversions to two integer types."""
    a, b = _promote(a), _promote(b)
    if a.signed == b.signed:
        return a if a.bits >= b.bits else b
    unsigned, signed = (a, b) if not a.signed else (b, a)
    if unsigned.bits >= signed.bits:
        return unsigned
    return signed


# =============================================================================
# Literals
# =============================================================================

_INT_LITERAL_RE = re.compile(
    r"^(?P<digits>0[xX][0-9a-fA-F]+|0[bB][01]+|[0-9]+)(?P<suffix>[uUlL]*|[uU]?i(?:8|16|32|64))$"
)
_FLOAT_LITERAL_RE = re.compile(
    r"^(?:[0-9]*\.[0-9]+(?:[eE][+-]?[0-9]+)?|[0-9]+\.(?:[eE][+-]?[0-9]+)?|[0-9]+[eE][+-]?[0-9]+)[fFlL]?$"
)

_ESCAPES = {"n": 10, "t": 9, "r": 13, "0": 0, "a": 7, "b": 8, "f": 12, "v": 11, "\\": 92, "'": 39, '"': 34, "?": 63}


def parse_int_literal(text: str, long_width: int = 32) -> IntValue:
    """Parse a C integer literal into a typed value.

    The type is the first of C's candidate list for the literal's base and
    suffix that can hold the value. Hex, octal and binary literals may take
    unsigned types; decimal literals without a ``u`` suffix never do.

    :raises ExpressionError: If ``text`` is not an integer literal.
    """
    match = _INT_LITERAL_RE.match(text)
    if match is None:
        raise ExpressionError(f"not an integer literal: {text!r}")
    digits = match.group("digits")
    suffix = match.group("suffix").lower()

    if digits[:2] in ("0x", "0X"):
        value, notation = int(digits[2:], 16), "hex"
    elif digits[:2] in ("0b", "0B"):
        value, notation = int(digits[2:], 2), "binary"
    elif len(digits) > 1 and digits[0] == "0":
        if any(c in "89" for c in digits):
            raise ExpressionError(f"invalid octal literal: {text!r}")
        value, notation = int(digits, 8), "octal"
    else:
        value, notation = int(digits), "decimal"

    long_t = IntType(long_width, True)
    ulong_t = IntType(long_width, False)
    unsigned_ok = notation != "decimal"

    if suffix.endswith(("i8", "i16", "i32", "i64")):
        bits = int(suffix.lstrip("u")[1:])
        candidates = [IntType(max(bits, 32), not suffix.startswith("u"))]
    else:
        is_unsigned = "u" in suffix
        longs = suffix.count("l")
        if longs >= 2:
            candidates = [LLONG, ULLONG]
        elif longs == 1:
            candidates = [long_t, ulong_t, LLONG, ULLONG]
        else:
            candidates = [INT, UINT, long_t, ulong_t, LLONG, ULLONG]
        if is_unsigned:
            candidates = [c for c in candidates if not c.signed]
        elif not unsigned_ok:
            candidates = [c for c in candidates if c.signed]

    for candidate in candidates:
        if candidate.fits(value):
            return IntValue(value, candidate, notation)
    widest = candidates[-1] if candidates else ULLONG
    return IntValue(widest.wrap(value), widest, notation)


def is_float_literal(text: str) -> bool:
    return _FLOAT_LITERAL_RE.match(text) is not None


def parse_char_literal(text: str) -> IntValue:
    """Parse a narrow or wide character literal such as ``'A'`` or ``L'\\0'``."""
    body = text[text.index("'") + 1 : -1]
    if not body:
        raise ExpressionError("empty character literal")
    if body[0] != "\\":
        if len(body) != 1:
            raise ExpressionError(f"multi-character literal: {text}")
        return IntValue(ord(body), INT, "char")
    escape = body[1:]
    try:
        if escape[:1] == "x":
            return IntValue(int(escape[1:], 16), INT, "char")
        if escape[:1].isdigit():
            return IntValue(int(escape, 8), INT, "char")
    except ValueError as exc:
        raise ExpressionError(f"invalid escape in {text}") from exc
    if escape in _ESCAPES:
        return IntValue(_ESCAPES[escape], INT, "char")
    raise ExpressionError(f"unknown escape in {text}")


# =============================================================================
# Syntax tree
# =============================================================================


@dataclass(frozen=True)
class Literal:
    value: IntValue


@dataclass(frozen=True)
class Name:
    name: str


@dataclass(frozen=True)
class Call:
    """A call-like form left over after macro expansion. Never evaluable."""

    name: str


@dataclass(frozen=True)
class Cast:
    type_name: str
    operand: Node


@dataclass(frozen=True)
class Unary:
    op: str
    operand: Node


@dataclass(frozen=True)
class Binary:
    op: str
    left: Node
    right: Node


@dataclass(frozen=True)
class Conditional:
    condition: Node
    then: Node
    otherwise: Node


Node = Union[Literal, Name, Call, Cast, Unary, Binary, Conditional]

_BINARY_PRECEDENCE: dict[str, int] = {
    "||": 1,
    "&&": 2,
    "|": 3,
    "^": 4,
    "&": 5,
    "==": 6,
    "!=": 6,
    "<": 7,
    ">": 7,
    "<=": 7,
    ">=": 7,
    "<<": 8,
    ">>": 8,
    "+": 9,
    "-": 9,
    "*": 10,
    "/": 10,
    "%": 10,
}
_TERNARY_PRECEDENCE = 0

#: Keywords that may appear in a cast's type name.
CAST_KEYWORDS = frozenset(
    {"signed", "unsigned", "char", "short", "int", "long", "__int8", "__int16", "__int32", "__int64"}
)


class ExpressionParser:
    """Pratt parser for C constant expressions.

    :param tokens: Tokens of one expression.
    :param long_width: Width of ``long`` used to type ``L``-suffixed literals.
    :param is_type_name: Callback deciding whether an identifier names a type.
        When None, only integer keywords are accepted in casts.
    """

    def __init__(
        self,
        tokens: list[Token],
        long_width: int = 32,
        is_type_name: Callable[[str], bool] | None = None,
    ) -> None:
        self._tokens = tokens
        self._pos = 0
        self._long_width = long_width
        self._is_type_name = is_type_name

    def parse(self) -> Node:
        if not self._tokens:
            raise ExpressionError("empty expression")
        node = self._expression(0)
        if self._pos != len(self._tokens):
            raise ExpressionError(f"unexpected token {self._tokens[self._pos].text!r}")
        return node

    def _peek(self) -> Token | None:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _next(self) -> Token:
        token = self._peek()
        if token is None:
            raise ExpressionError("unexpected end of expression")
        self._pos += 1
        return token

    def _expect(self, text: str) -> None:
        token = self._next()
        if not token.is_punct(text):
            raise ExpressionError(f"expected {text!r}, got {token.text!r}")

    def _expression(self, min_precedence: int) -> Node:
        left = self._unary()
        while True:
            token = self._peek()
            if token is None or token.kind != PUNCT:
                return left
            if token.text == "?" and min_precedence <= _TERNARY_PRECEDENCE:
                self._pos += 1
                then = self._expression(0)
                self._expect(":")
                otherwise = self._expression(_TERNARY_PRECEDENCE)
                left = Conditional(left, then, otherwise)
                continue
            precedence = _BINARY_PRECEDENCE.get(token.text)
            if precedence is None or precedence < min_precedence:
                return left
            self._pos += 1
            right = self._expression(precedence + 1)
            left = Binary(token.text, left, right)

    def _unary(self) -> Node:
        token = self._next()
        if token.kind == PUNCT and token.text in ("-", "+", "~", "!"):
            return Unary(token.text, self._unary())
        if token.is_punct("("):
            cast = self._try_cast()
            if cast is not None:
                return Cast(cast, self._unary())
            node = self._expression(0)
            self._expect(")")
            return node
        if token.kind == NUMBER:
            if is_float_literal(token.text):
                raise ExpressionError(f"floating-point literal {token.text!r}")
            return Literal(parse_int_literal(token.text, self._long_width))
        if token.kind == CHAR:
            return Literal(parse_char_literal(token.text))
        if token.kind == IDENT:
            nxt = self._peek()
            if nxt is not None and nxt.is_punct("("):
                self._skip_group()
                return Call(token.text)
            return Name(token.text)
        raise ExpressionError(f"unexpected token {token.text!r}")

    def _skip_group(self) -> None:
        depth = 0
        while True:
            token = self._next()
            if token.is_punct("("):
                depth += 1
            elif token.is_punct(")"):
                depth -= 1
                if depth == 0:
                    return

    def _try_cast(self) -> str | None:
        """If the tokens after ``(`` spell a type name and ``)``, consume them."""
        words: list[str] = []
        pos = self._pos
        while pos < len(self._tokens) and self._tokens[pos].kind == IDENT:
            words.append(self._tokens[pos].text)
            pos += 1
        if not words or pos >= len(self._tokens) or not self._tokens[pos].is_punct(")"):
            return None
        if all(w in CAST_KEYWORDS for w in words):
            type_name = " ".join(words)
        elif len(words) == 1 and self._is_type_name is not None and self._is_type_name(words[0]):
            type_name = words[0]
        else:
            return None
        nxt = self._tokens[pos + 1] if pos + 1 < len(self._tokens) else None
        if nxt is None or (nxt.kind == PUNCT and nxt.text not in ("(", "-", "+", "~", "!")):
            return None
        self._pos = pos + 1
        return type_name


def parse_expression(
    tokens: list[Token],
    long_width: int = 32,
    is_type_name: Callable[[str], bool] | None = None,
) -> Node:
    """Parse tokens into an expression tree.

    :raises ExpressionError: On any syntax the parser does not support.
    """
    return ExpressionParser(tokens, long_width, is_type_name).parse()


# =============================================================================
# Evaluation
# =============================================================================


def _c_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


def _bool(value: bool) -> IntValue:
    return IntValue(1 if value else 0, INT)


def evaluate(
    node: Node,
    resolve_name: Callable[[str], IntValue],
    resolve_cast: Callable[[str], IntType] | None = None,
    widen: bool = False,
) -> IntValue:
    """Evaluate an expression tree.

    :param resolve_name: Returns the value of an identifier, or raises
        :class:`ExpressionError` when it has none.
    :param resolve_cast: Returns the integer type named by a cast, or raises.
    :param widen: Treat every literal as 64-bit, as ``#if`` arithmetic does.
    :raises ExpressionError: On unsupported forms and division by zero.
    """

    def ev(n: Node) -> IntValue:
        if isinstance(n, Literal):
            value = n.value
            if widen:
                wide = LLONG if value.type.signed else ULLONG
                return IntValue(value.value, wide, value.notation)
            return value
        if isinstance(n, Name):
            return resolve_name(n.name)
        if isinstance(n, Call):
            raise ExpressionError(f"cannot evaluate call to {n.name!r}")
        if isinstance(n, Cast):
            if resolve_cast is None:
                raise ExpressionError(f"cast to {n.type_name!r} is not supported here")
            target = resolve_cast(n.type_name)
            operand = ev(n.operand)
            return IntValue(target.wrap(operand.value), target, operand.notation)
        if isinstance(n, Unary):
            operand = ev(n.operand)
            if n.op == "!":
                return _bool(operand.value == 0)
            t = _promote(operand.type)
            if n.op == "-":
                return IntValue(t.wrap(-operand.value), t)
            if n.op == "~":
                return IntValue(t.wrap(~operand.value), t)
            return IntValue(operand.value, t, operand.notation)
        if isinstance(n, Conditional):
            if ev(n.condition).value:
                return ev(n.then)
            return ev(n.otherwise)
        if isinstance(n, Binary):
            return _binary(n, ev)
        raise ExpressionError(f"unsupported node {n!r}")  # pragma: no cover

    return ev(node)


def _binary(n: Binary, ev: Callable[[Node], IntValue]) -> IntValue:
    if n.op == "&&":
        return _bool(bool(ev(n.left).value) and bool(ev(n.right).value))
    if n.op == "||":
        return _bool(bool(ev(n.left).value) or bool(ev(n.right).value))

    left = ev(n.left)
    right = ev(n.right)

    if n.op in ("<<", ">>"):
        t = _promote(left.type)
        if right.value < 0:
            raise ExpressionError("negative shift count")
        if n.op == "<<":
            return IntValue(t.wrap(left.value << right.value), t)
        return IntValue(t.wrap(left.value >> right.value), t)

    t = common_type(left.type, right.type)
    a = t.wrap(left.value)
    b = t.wrap(right.value)

    if n.op == "+":
        return IntValue(t.wrap(a + b), t)
    if n.op == "-":
        return IntValue(t.wrap(a - b), t)
    if n.op == "*":
        return IntValue(t.wrap(a * b), t)
    if n.op in ("/", "%"):
        if b == 0:
            raise ExpressionError("division by zero")
        quotient = _c_div(a, b)
        if n.op == "/":
            return IntValue(t.wrap(quotient), t)
        return IntValue(t.wrap(a - quotient * b), t)
    if n.op == "&":
        return IntValue(t.wrap(a & b), t)
    if n.op == "|":
        return IntValue(t.wrap(a | b), t)
    if n.op == "^":
        return IntValue(t.wrap(a ^ b), t)
    if n.op == "==":
        return _bool(a == b)
    if n.op == "!=":
        return _bool(a != b)
    if n.op == "<":
        return _bool(a < b)
    if n.op == ">":
        return _bool(a > b)
    if n.op == "<=":
        return _bool(a <= b)
    if n.op == ">=":
        return _bool(a >= b)
    raise ExpressionError(f"unsupported operator {n.op!r}")


__all__ = [
    "INT",
    "LLONG",
    "UINT",
    "ULLONG",
    "Binary",
    "Call",
    "Cast",
    "Conditional",
    "ExpressionParser",
    "IntType",
    "IntValue",
    "Literal",
    "Name",
    "Node",
    "Unary",
    "common_type",
    "evaluate",
    "is_float_literal",
    "parse_char_literal",
    "parse_expression",
    "parse_int_literal",
]
