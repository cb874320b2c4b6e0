"""Tests for the shared integer expression core."""

from __future__ import annotations

import pytest

from headerbind.diagnostics import ExpressionError
from headerbind.expr import (
    INT,
    LLONG,
    UINT,
    ULLONG,
    Call,
    IntType,
    IntValue,
    common_type,
    evaluate,
    is_float_literal,
    parse_char_literal,
    parse_expression,
    parse_int_literal,
)
from headerbind.lexer import tokenize


def _no_names(name: str) -> IntValue:
    raise ExpressionError(f"unknown name {name!r}")


def ev(text: str, **kwargs: object) -> IntValue:
    return evaluate(parse_expression(tokenize(text)), _no_names, **kwargs)  # type: ignore[arg-type]


class TestIntType:
    def test_ranges(self) -> None:
        assert (INT.min, INT.max) == (-(2**31), 2**31 - 1)
        assert (UINT.min, UINT.max) == (0, 2**32 - 1)

    def test_wrap(self) -> None:
        assert INT.wrap(2**31) == -(2**31)
        assert UINT.wrap(-1) == 2**32 - 1

    def test_rust_name(self) -> None:
        assert IntType(16, False).rust_name == "u16"
        assert str(LLONG) == "i64"

    def test_common_type(self) -> None:
        assert common_type(INT, UINT) == UINT
        assert common_type(LLONG, UINT) == LLONG
        assert common_type(IntType(16, False), IntType(8, True)) == INT


class TestLiterals:
    def test_hex_notation(self) -> None:
        assert parse_int_literal("0xF") == IntValue(15, INT, "hex")

    def test_hex_may_be_unsigned(self) -> None:
        assert parse_int_literal("0xFFFFFFFF").type == UINT

    def test_decimal_never_unsigned_without_suffix(self) -> None:
        assert parse_int_literal("4294967295").type == LLONG

    def test_octal_and_binary(self) -> None:
        assert parse_int_literal("010") == IntValue(8, INT, "octal")
        assert parse_int_literal("0b101").value == 5

    def test_suffixes(self) -> None:
        assert parse_int_literal("10UL").type == IntType(32, False)
        assert parse_int_literal("10UL", long_width=64).type == IntType(64, False)
        assert parse_int_literal("1ull").type == ULLONG
        assert parse_int_literal("1i64").type == LLONG
        assert parse_int_literal("1ui64").type == ULLONG

    def test_invalid_literals(self) -> None:
        with pytest.raises(ExpressionError):
            parse_int_literal("09")
        with pytest.raises(ExpressionError):
            parse_int_literal("1.5")

    def test_float_detection(self) -> None:
        assert is_float_literal("1.5f")
        assert is_float_literal("1e10")
        assert not is_float_literal("15")

    def test_char_literals(self) -> None:
        assert parse_char_literal("'A'").value == 65
        assert parse_char_literal("'\\n'").value == 10
        assert parse_char_literal("L'\\x41'").value == 65
        assert parse_char_literal("'\\0'").value == 0

    @pytest.mark.parametrize("text", ["'\\x'", "'\\8'", "'\\xZZ'", "L'\\09'"])
    def test_malformed_numeric_escapes(self, text: str) -> None:
        with pytest.raises(ExpressionError, match="invalid escape"):
            parse_char_literal(text)


class TestEvaluate:
    def test_precedence(self) -> None:
        assert ev("1 << 4 | 2").value == 18
        assert ev("2 + 3 * 4").value == 14
        assert ev("(2 + 3) * 4").value == 20

    def test_division_truncates_toward_zero(self) -> None:
        assert ev("7 / 2").value == 3
        assert ev("-7 / 2").value == -3
        assert ev("-7 % 2").value == -1

    def test_division_by_zero(self) -> None:
        with pytest.raises(ExpressionError, match="division by zero"):
            ev("1 / 0")

    def test_ternary(self) -> None:
        assert ev("1 ? 2 : 3").value == 2
        assert ev("0 ? 2 : 0 ? 3 : 4").value == 4

    def test_logical_and_comparison(self) -> None:
        assert ev("1 && 0").value == 0
        assert ev("!0 || 0").value == 1
        assert ev("3 >= 3").value == 1

    def test_unsigned_wraps(self) -> None:
        result = ev("0xFFFFFFFF + 1")
        assert result.value == 0
        assert result.type == UINT

    def test_widen_uses_64_bits(self) -> None:
        result = ev("0xFFFFFFFF + 1", widen=True)
        assert result.value == 2**32
        assert result.type == ULLONG

    def test_notation_survives_parentheses(self) -> None:
        assert ev("(0x10)").notation == "hex"
        assert ev("0x10 + 1").notation == "decimal"

    def test_cast(self) -> None:
        node = parse_expression(tokenize("(unsigned int)-1"))
        assert evaluate(node, _no_names, lambda name: UINT).value == 2**32 - 1

    def test_cast_keeps_operand_notation(self) -> None:
        hex_cast = parse_expression(tokenize("(unsigned int)0xFF"))
        assert evaluate(hex_cast, _no_names, lambda name: UINT).notation == "hex"
        negated = parse_expression(tokenize("(unsigned int)-0x1"))
        assert evaluate(negated, _no_names, lambda name: UINT).notation == "decimal"

    def test_cast_without_resolver_fails(self) -> None:
        with pytest.raises(ExpressionError):
            ev("(int)1")

    def test_typedef_cast_uses_callback(self) -> None:
        node = parse_expression(tokenize("(DWORD)1"), is_type_name=lambda name: name == "DWORD")
        assert evaluate(node, _no_names, lambda name: UINT).type == UINT

    def test_names_use_resolver(self) -> None:
        node = parse_expression(tokenize("A + 1"))
        assert evaluate(node, lambda name: IntValue(41, INT)).value == 42

    def test_call_is_not_evaluable(self) -> None:
        node = parse_expression(tokenize("FOO(1, 2)"))
        assert node == Call("FOO")
        with pytest.raises(ExpressionError):
            evaluate(node, _no_names)

    @pytest.mark.parametrize("text", ["", "1 +", "(1", "1 2", "1.5"])
    def test_syntax_errors(self, text: str) -> None:
        with pytest.raises(ExpressionError):
            ev(text)
