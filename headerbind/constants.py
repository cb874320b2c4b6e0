"""Best-effort evaluation of object-like macro constants.

The evaluator folds integer expressions made of literals, other constants
and enumerators, using the same C arithmetic model as ``#if``. Anything it
cannot fold yields :data:`UNEVALUATED`, never an exception: callers decide
whether to emit a comment or skip the constant.

The value of a constant and the notation of its source literal are kept
apart (:class:`EvaluatedConstant`), so emitted code can restore ``0x``
notation without touching the arithmetic.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Sequence

from headerbind.arch import PRIMITIVE_KEYWORDS, ArchProfile, canonical_primitive, get_profile
from headerbind.diagnostics import ExpressionError
from headerbind.expr import INT, IntType, IntValue, evaluate, is_float_literal, parse_expression
from headerbind.ir import Constant, CType, Enum, Typedef
from headerbind.lexer import NUMBER, STRING, Token, tokenize
from headerbind.symbols import SymbolTable

logger = logging.getLogger(__name__)

# One escape sequence. Octal digits after the 0 stay in the match.
_ESCAPE_RE = re.compile(r"\\(0[0-7]*|.)")
# C escapes that mean the same thing in a Rust string literal.
_PORTABLE_ESCAPES = frozenset({"n", "r", "t", "0", "\\", '"', "'"})


class _Unevaluated:
    """Marker for constants outside the supported expression subset."""

    _instance: _Unevaluated | None = None

    def __new__(cls) -> _Unevaluated:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNEVALUATED"


UNEVALUATED = _Unevaluated()


@dataclass(frozen=True)
class EvaluatedConstant:
    """A folded constant.

    :param value: Integer, float or string value.
    :param ctype: C integer type of an integer constant, None otherwise.
    :param notation: ``decimal``, ``hex``, ``octal``, ``binary``, ``char``,
        ``float`` or ``string``.
    """

    value: int | float | str
    ctype: IntType | None = None
    notation: str = "decimal"

    @property
    def rust_type(self) -> str:
        if self.ctype is not None:
            return self.ctype.rust_name
        if isinstance(self.value, float):
            return "f64"
        return "&str"


class ConstantEvaluator:
    """Folds macro bodies and enumerator values against a symbol table.

    Results are memoized per constant name. A constant that refers back to
    itself, directly or through others, is unevaluated rather than looping.

    :param table: Symbol table holding constants, enums and typedefs.
    :param profile: Architecture used for ``L`` suffixes and casts.
    """

    def __init__(self, table: SymbolTable, profile: ArchProfile | None = None) -> None:
        self._table = table
        self._profile = profile or get_profile()
        self._memo: dict[str, EvaluatedConstant | _Unevaluated] = {}
        self._enum_memo: dict[int, list[tuple[str, int | None]]] = {}
        self._active: set[str] = set()

    # -- entry points ----------------------------------------------------------

    def evaluate(self, tokens: Sequence[str] | Sequence[Token]) -> EvaluatedConstant | _Unevaluated:
        """Evaluate a replacement list.

        :param tokens: Token texts (as stored on :class:`~headerbind.ir.Constant`)
            or tokens.
        """
        lexed = self._lex(tokens)
        if not lexed:
            return UNEVALUATED
        text = self._string_value(lexed)
        if text is not None:
            return EvaluatedConstant(text, None, "string")
        number = self._float_value(lexed)
        if number is not None:
            return EvaluatedConstant(number, None, "float")
        try:
            result = self._integer(lexed)
        except ExpressionError as exc:
            logger.debug("cannot evaluate %s: %s", " ".join(t.text for t in lexed), exc)
            return UNEVALUATED
        return EvaluatedConstant(result.value, result.type, result.notation)

    def evaluate_constant(self, name: str) -> EvaluatedConstant | _Unevaluated:
        """Evaluate the constant called ``name`` in the symbol table."""
        if name in self._memo:
            return self._memo[name]
        decl = self._table.get(name)
        if not isinstance(decl, Constant):
            return UNEVALUATED
        if name in self._active:
            logger.debug("constant %s refers to itself", name)
            return UNEVALUATED
        self._active.add(name)
        try:
            result = self.evaluate(decl.tokens)
        finally:
            self._active.discard(name)
        self._memo[name] = result
        return result

    def enum_values(self, enum: Enum) -> list[tuple[str, int | None]]:
        """Return ``(name, value)`` for each enumerator; None where unevaluable.

        Implicit values count up from the previous enumerator, starting at 0.
        Values are wrapped to ``i32``.
        """
        key = id(enum)
        if key in self._enum_memo:
            return self._enum_memo[key]
        guard = f"enum#{key}"
        if guard in self._active:
            raise ExpressionError("enumerator refers to its own enum")
        self._active.add(guard)
        result: list[tuple[str, int | None]] = []
        try:
            following: int | None = 0
            for item in enum.values:
                if item.value is None:
                    value = following
                elif isinstance(item.value, int):
                    value = item.value
                else:
                    try:
                        value = self._integer(tokenize(item.value), own_enum=enum, partial=result).value
                    except ExpressionError as exc:
                        logger.debug("cannot evaluate enumerator %s: %s", item.name, exc)
                        value = None
                if value is not None:
                    value = INT.wrap(value)
                result.append((item.name, value))
                following = value + 1 if value is not None else None
        finally:
            self._active.discard(guard)
        self._enum_memo[key] = result
        return result

    def enumerator_value(self, name: str) -> int | None:
        found = self._table.enumerator(name)
        if found is None:
            return None
        enum, _ = found
        return dict(self.enum_values(enum)).get(name)

    def array_size(self, size: int | str | None) -> int | None:
        """Evaluate an array bound; None when it cannot be determined."""
        if size is None or isinstance(size, int):
            return size
        result = self.evaluate(tokenize(size))
        if isinstance(result, EvaluatedConstant) and isinstance(result.value, int) and result.value >= 0:
            return result.value
        return None

    # -- internals -------------------------------------------------------------

    @staticmethod
    def _lex(tokens: Sequence[str] | Sequence[Token]) -> list[Token]:
        if tokens and isinstance(tokens[0], Token):
            return list(tokens)  # type: ignore[arg-type]
        return tokenize(" ".join(tokens))  # type: ignore[arg-type]

    @staticmethod
    def _strip_parens(tokens: list[Token]) -> list[Token]:
        while len(tokens) >= 2 and tokens[0].is_punct("(") and tokens[-1].is_punct(")"):
            depth = 0
            for index, token in enumerate(tokens):
                if token.is_punct("("):
                    depth += 1
                elif token.is_punct(")"):
                    depth -= 1
                    if depth == 0 and index != len(tokens) - 1:
                        return tokens
            tokens = tokens[1:-1]
        return tokens

    def _string_value(self, tokens: list[Token]) -> str | None:
        tokens = self._strip_parens(tokens)
        if not all(t.kind == STRING for t in tokens):
            return None
        parts: list[str] = []
        for token in tokens:
            if not token.text.startswith('"'):
                return None
            body = token.text[1:-1]
            if any(m.group(1) not in _PORTABLE_ESCAPES for m in _ESCAPE_RE.finditer(body)):
                return None
            parts.append(body)
        return "".join(parts)

    def _float_value(self, tokens: list[Token]) -> float | None:
        tokens = self._strip_parens(tokens)
        sign = 1.0
        if len(tokens) == 2 and tokens[0].is_punct("-"):
            sign, tokens = -1.0, tokens[1:]
        if len(tokens) != 1 or tokens[0].kind != NUMBER or not is_float_literal(tokens[0].text):
            return None
        return sign * float(tokens[0].text.rstrip("fFlL"))

    def _integer(
        self,
        tokens: list[Token],
        own_enum: Enum | None = None,
        partial: list[tuple[str, int | None]] | None = None,
    ) -> IntValue:
        def resolve_name(name: str) -> IntValue:
            if own_enum is not None and partial is not None:
                for item_name, item_value in partial:
                    if item_name == name:
                        if item_value is None:
                            raise ExpressionError(f"enumerator {name!r} has no value")
                        return IntValue(item_value, INT)
            constant = self.evaluate_constant(name)
            if isinstance(constant, EvaluatedConstant):
                if constant.ctype is None:
                    raise ExpressionError(f"{name!r} is not an integer constant")
                return IntValue(int(constant.value), constant.ctype)
            value = self.enumerator_value(name)
            if value is not None:
                return IntValue(value, INT)
            raise ExpressionError(f"unknown name {name!r}")

        node = parse_expression(tokens, self._profile.long_width, self._table.is_type_name)
        return evaluate(node, resolve_name, self._cast_type)

    def _cast_type(self, type_name: str) -> IntType:
        words = type_name.split()
        if all(w in PRIMITIVE_KEYWORDS for w in words):
            try:
                return self._primitive(canonical_primitive(words))
            except ValueError as exc:
                raise ExpressionError(str(exc)) from exc
        return self._typedef_type(type_name, set())

    def _primitive(self, name: str) -> IntType:
        width = self._profile.primitive_width(name)
        if width is None:
            raise ExpressionError(f"cast to non-integer type {name!r}")
        return IntType(*width)

    def _typedef_type(self, name: str, seen: set[str]) -> IntType:
        if name in seen:
            raise ExpressionError(f"typedef cycle through {name!r}")
        seen.add(name)
        decl = self._table.get(name)
        if isinstance(decl, Typedef):
            underlying = decl.underlying_type
            if not isinstance(underlying, CType):
                raise ExpressionError(f"cast to non-integer type {name!r}")
            if underlying.kind == "primitive":
                return self._primitive(underlying.name)
            if underlying.kind == "enum":
                return INT
            if underlying.kind == "typedef":
                return self._typedef_type(underlying.name, seen)
            raise ExpressionError(f"cast to non-integer type {name!r}")
        width = self._profile.well_known_width(name)
        if width is None:
            raise ExpressionError(f"cast to unknown type {name!r}")
        return IntType(*width)


__all__ = ["UNEVALUATED", "ConstantEvaluator", "EvaluatedConstant"]
