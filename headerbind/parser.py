"""Declaration parser for preprocessed C headers.

Works on the macro-expanded token stream of one header and produces IR
declarations. The grammar covers what platform headers actually use:
struct/union/enum definitions (named, anonymous, nested, typedef'd in the
same statement), function prototypes with calling conventions, typedefs with
full declarator syntax, extern variables and ``extern "C"`` blocks.

Compiler decorations (``__declspec``, ``__attribute__``, SAL annotations,
MSVC pointer modifiers) are stripped before parsing. Inline function bodies
are skipped. A statement that fails to parse is reported as a
``malformed_declaration`` and the parser moves on to the next one.

Example
-------
::

    from headerbind.lexer import tokenize
    from headerbind.parser import DeclarationParser

    parser = DeclarationParser()
    decls = parser.parse(tokenize("typedef unsigned long DWORD;"), "minwindef.h")
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Sequence

from headerbind.arch import PRIMITIVE_KEYWORDS, canonical_primitive
from headerbind.diagnostics import (
    MALFORMED_DECLARATION,
    UNSUPPORTED_DECLARATION,
    Diagnostics,
    ExpressionError,
    ParseError,
)
from headerbind.expr import evaluate, parse_expression, parse_int_literal
from headerbind.ir import (
    Array,
    Constant,
    CType,
    Declaration,
    Enum,
    EnumValue,
    Field,
    Function,
    FunctionPointer,
    Parameter,
    Pointer,
    SourceLocation,
    Struct,
    Typedef,
    TypeExpr,
    Union,
    Variable,
)
from headerbind.lexer import IDENT, NUMBER, STRING, Token, spell
from headerbind.macros import MacroDefinition

logger = logging.getLogger(__name__)

#: Calling-convention keywords and their normalized names.
CALLING_CONVENTIONS: dict[str, str] = {
    "__stdcall": "stdcall",
    "_stdcall": "stdcall",
    "__cdecl": "cdecl",
    "_cdecl": "cdecl",
    "__fastcall": "fastcall",
    "_fastcall": "fastcall",
    "__vectorcall": "vectorcall",
    "__thiscall": "thiscall",
}

# Decorations removed together with a following parenthesized group.
_DECORATIONS = frozenset(
    {
        "__declspec",
        "_declspec",
        "__attribute__",
        "__attribute",
        "__pragma",
        "_Pragma",
        "__asm",
        "__asm__",
        "asm",
        "__alignof",
        "alignas",
        "_Alignas",
    }
)

# Keywords dropped without changing the meaning of a declaration.
_IGNORED = frozenset(
    {
        "__ptr32",
        "__ptr64",
        "__unaligned",
        "__restrict",
        "__restrict__",
        "restrict",
        "__sptr",
        "__uptr",
        "__w64",
        "__inline",
        "__inline__",
        "inline",
        "__forceinline",
        "__extension__",
        "_Noreturn",
        "register",
        "auto",
        "__volatile__",
    }
)

_SAL_RE = re.compile(r"^_[A-Z][a-z][A-Za-z0-9]*(?:_[A-Za-z0-9]+)*_$")
_LEGACY_SAL_RE = re.compile(
    r"^__(?:in|out|inout|deref|field|success|checkReturn|callback|reserved|nullterminated|bcount|ecount)(?:_\w+)?$"
)

_QUALIFIERS = ("const", "volatile")
_CXX_KEYWORDS = frozenset({"namespace", "template", "class", "using", "public", "private", "protected", "friend"})
_TAG_KEYWORDS = ("struct", "union", "enum")
_STORAGE = frozenset({"typedef", "extern", "static"})


def _is_decoration(text: str) -> bool:
    return (
        text in _DECORATIONS
        or text.startswith("__drv_")
        or _SAL_RE.match(text) is not None
        or _LEGACY_SAL_RE.match(text) is not None
    )


def _skip_group(tokens: Sequence[Token], index: int) -> int:
    """Return the index just past the parenthesized group opening at ``index``."""
    depth = 0
    for i in range(index, len(tokens)):
        if tokens[i].is_punct("("):
            depth += 1
        elif tokens[i].is_punct(")"):
            depth -= 1
            if depth == 0:
                return i + 1
    return len(tokens)


def clean_tokens(tokens: Sequence[Token]) -> list[tuple[int, Token]]:
    """Strip decorations, returning the surviving tokens with their original index."""
    result: list[tuple[int, Token]] = []
    i = 0
    n = len(tokens)
    while i < n:
        token = tokens[i]
        if token.kind == IDENT:
            if _is_decoration(token.text):
                i += 1
                while i < n and tokens[i].kind == IDENT and tokens[i].text in ("volatile", "__volatile__"):
                    i += 1
                if i < n and tokens[i].is_punct("("):
                    i = _skip_group(tokens, i)
                continue
            if token.text in _IGNORED:
                i += 1
                continue
        result.append((i, token))
        i += 1
    return result


def split_top_level(tokens: Sequence[Token], separator: str) -> list[list[Token]]:
    """Split on ``separator`` outside of any bracket pair."""
    parts: list[list[Token]] = [[]]
    depth = 0
    for token in tokens:
        if token.kind != IDENT and token.kind != STRING:
            if token.text in ("(", "[", "{"):
                depth += 1
            elif token.text in (")", "]", "}"):
                depth -= 1
            elif token.text == separator and depth == 0:
                parts.append([])
                continue
        parts[-1].append(token)
    return parts


@dataclass
class Statement:
    """A top-level statement: the tokens up to ``;`` and where they started."""

    tokens: list[Token]
    position: int

    @property
    def line(self) -> int:
        return self.tokens[0].line if self.tokens else 0


def split_statements(items: Sequence[tuple[int, Token]]) -> list[Statement]:
    """Split cleaned tokens into statements.

    ``extern "C" {`` wrappers are flattened and function bodies are dropped
    along with the definition they belong to.
    """
    statements: list[Statement] = []
    current: list[tuple[int, Token]] = []
    depth = 0
    extern_blocks = 0
    i = 0
    n = len(items)

    def flush() -> None:
        if current:
            statements.append(Statement([t for _, t in current], current[0][0]))
        current.clear()

    while i < n:
        _, token = items[i]
        if depth == 0:
            if token.is_ident("extern") and not current and i + 1 < n and items[i + 1][1].kind == STRING:
                if i + 2 < n and items[i + 2][1].is_punct("{"):
                    extern_blocks += 1
                    i += 3
                else:
                    i += 2
                continue
            if token.is_punct(";"):
                flush()
                i += 1
                continue
            if token.is_punct("}"):
                if extern_blocks:
                    extern_blocks -= 1
                flush()
                i += 1
                continue
            if token.is_punct("{") and current and _opens_body(current):
                end = _matching_brace(items, i)
                if current[0][1].is_ident("namespace"):
                    flush()
                else:
                    logger.debug("skipping body of inline definition at line %d", token.line)
                    current.clear()
                i = end
                continue
        if token.text in ("(", "[", "{") and token.kind not in (IDENT, STRING):
            depth += 1
        elif token.text in (")", "]", "}") and token.kind not in (IDENT, STRING):
            depth = max(depth - 1, 0)
        current.append(items[i])
        i += 1
    flush()
    return statements


def _opens_body(current: list[tuple[int, Token]]) -> bool:
    """Whether a ``{`` after ``current`` opens a function or namespace body."""
    first = current[0][1]
    if first.is_ident("namespace"):
        return True
    last = current[-1][1]
    return last.is_punct(")") or (last.kind == IDENT and last.text in ("const", "noexcept", "override"))


def _matching_brace(items: Sequence[tuple[int, Token]], index: int) -> int:
    depth = 0
    for i in range(index, len(items)):
        token = items[i][1]
        if token.is_punct("{"):
            depth += 1
        elif token.is_punct("}"):
            depth -= 1
            if depth == 0:
                return i + 1
    return len(items)


class _Cursor:
    """Position within the tokens of one statement."""

    def __init__(self, tokens: Sequence[Token], line: int = 0) -> None:
        self._tokens = tokens
        self._pos = 0
        self._line = line

    def peek(self, offset: int = 0) -> Token | None:
        index = self._pos + offset
        return self._tokens[index] if index < len(self._tokens) else None

    def next(self) -> Token:
        token = self.peek()
        if token is None:
            raise ParseError("unexpected end of declaration", self._line)
        self._pos += 1
        return token

    def at_end(self) -> bool:
        return self._pos >= len(self._tokens)

    def accept_punct(self, text: str) -> bool:
        token = self.peek()
        if token is not None and token.is_punct(text):
            self._pos += 1
            return True
        return False

    def expect_punct(self, text: str) -> None:
        token = self.next()
        if not token.is_punct(text):
            raise ParseError(f"expected {text!r}, got {token.text!r}", token.line)

    def group(self, open_text: str, close_text: str) -> list[Token]:
        """Consume a bracketed group and return the tokens inside it."""
        self.expect_punct(open_text)
        start = self._pos
        depth = 1
        while True:
            token = self.next()
            if token.is_punct(open_text):
                depth += 1
            elif token.is_punct(close_text):
                depth -= 1
                if depth == 0:
                    return list(self._tokens[start : self._pos - 1])

    def take_until(self, text: str) -> list[Token]:
        """Consume tokens up to (not including) a top-level ``text``."""
        start = self._pos
        depth = 0
        while not self.at_end():
            token = self._tokens[self._pos]
            if token.text in ("(", "[", "{"):
                depth += 1
            elif token.text in (")", "]", "}"):
                depth -= 1
            elif depth == 0 and token.is_punct(text):
                break
            self._pos += 1
        return list(self._tokens[start : self._pos])


@dataclass
class _Declarator:
    """A parsed declarator, applied to the base type afterwards."""

    name: str | None = None
    pointers: list[list[str]] = field(default_factory=list)
    calling_convention: str | None = None
    inner: _Declarator | None = None
    suffixes: list[tuple] = field(default_factory=list)

    @property
    def identifier(self) -> str | None:
        if self.inner is not None:
            return self.inner.identifier
        return self.name

    def _nested_convention(self) -> str | None:
        if self.inner is None:
            return None
        return self.inner.calling_convention or self.inner._nested_convention()

    def apply(self, base: TypeExpr) -> TypeExpr:
        t = base
        for qualifiers in self.pointers:
            t = Pointer(t, qualifiers)
        convention = self.calling_convention or self._nested_convention()
        for suffix in reversed(self.suffixes):
            if suffix[0] == "array":
                t = Array(t, suffix[1])
            else:
                t = FunctionPointer(t, suffix[1], suffix[2], convention)
        if self.inner is not None:
            return self.inner.apply(t)
        return t

    @property
    def is_function(self) -> bool:
        """Whether this declares a function rather than a pointer to one."""
        return self.inner is None and bool(self.suffixes) and self.suffixes[0][0] == "function"


@dataclass
class _Anonymous:
    ctype: CType
    decl: Struct | Union | Enum
    owner: Struct | Union | None
    ordinal: int
    depth: int


@dataclass
class _Context:
    """Per-statement parse state."""

    header: str
    declarations: list[Declaration] = field(default_factory=list)
    anonymous: list[_Anonymous] = field(default_factory=list)
    is_typedef: bool = False
    is_extern: bool = False
    is_static: bool = False
    in_parameters: bool = False
    counters: dict[int, int] = field(default_factory=dict)
    depths: dict[int, int] = field(default_factory=dict)


def adjust_parameter_type(t: TypeExpr) -> TypeExpr:
    """Apply C's parameter adjustments: arrays and functions decay to pointers."""
    if isinstance(t, Array):
        return Pointer(t.element_type)
    if isinstance(t, FunctionPointer):
        return Pointer(t)
    return t


class DeclarationParser:
    """Turns one header's expanded tokens into declarations.

    :param diagnostics: Collector for malformed and unsupported declarations.
    """

    def __init__(self, diagnostics: Diagnostics | None = None) -> None:
        self._diagnostics = diagnostics if diagnostics is not None else Diagnostics()

    def parse(
        self,
        tokens: Sequence[Token],
        header: str,
        defines: Sequence[tuple[int, MacroDefinition]] = (),
    ) -> list[Declaration]:
        """Parse a header.

        :param tokens: Macro-expanded tokens of the header.
        :param header: Display name recorded in every declaration's location.
        :param defines: Object-like ``#define`` directives paired with the
            token position where each appeared; they become constants placed
            between the surrounding declarations.
        :returns: Declarations in source order.
        """
        statements = split_statements(clean_tokens(tokens))
        result: list[Declaration] = []
        pending = sorted(defines, key=lambda item: item[0])
        index = 0
        for statement in statements:
            while index < len(pending) and pending[index][0] <= statement.position:
                self._add_constant(result, pending[index][1], header)
                index += 1
            result.extend(self._parse_statement(statement, header))
        for _, definition in pending[index:]:
            self._add_constant(result, definition, header)
        return result

    @staticmethod
    def _add_constant(result: list[Declaration], definition: MacroDefinition, header: str) -> None:
        if not definition.is_object_like or not definition.body:
            return
        result.append(
            Constant(
                name=definition.name,
                tokens=definition.body_text,
                location=SourceLocation(header, definition.line or 0),
            )
        )

    def _parse_statement(self, statement: Statement, header: str) -> list[Declaration]:
        first = statement.tokens[0]
        if (first.kind == IDENT and first.text in _CXX_KEYWORDS) or any(t.is_punct("::") for t in statement.tokens):
            self._diagnostics.report(
                UNSUPPORTED_DECLARATION,
                f"C++ construct skipped: {spell(statement.tokens[:4])} ...",
                header=header,
                line=statement.line,
            )
            return []
        try:
            declarations = self._declaration(statement, header)
        except ParseError as exc:
            self._diagnostics.report(
                MALFORMED_DECLARATION,
                f"cannot parse '{_preview(statement.tokens)}': {exc}",
                header=header,
                line=statement.line,
            )
            return []
        for decl in declarations:
            if isinstance(decl, Union):
                self._diagnostics.report(
                    UNSUPPORTED_DECLARATION,
                    f"union {decl.name} is not translated",
                    header=header,
                    line=decl.location.line if decl.location else statement.line,
                    symbol=decl.qualified_name,
                )
        return declarations

    # -- statements ------------------------------------------------------------

    def _declaration(self, statement: Statement, header: str) -> list[Declaration]:
        ctx = _Context(header=header)
        cur = _Cursor(statement.tokens, statement.line)
        base = self._specifiers(cur, ctx, owner=None)
        location = SourceLocation(header, statement.line)

        if cur.at_end():
            self._name_anonymous(ctx, None)
            return self._finish(ctx)

        first = True
        declarations: list[Declaration] = []
        while True:
            declarator = self._declarator(cur)
            name = declarator.identifier
            if name is None:
                raise ParseError("declaration has no name", statement.line)
            if first:
                self._name_anonymous(ctx, name)
                first = False
            t = declarator.apply(base)
            if ctx.is_typedef:
                declarations.append(Typedef(name, t, location=location))
            elif declarator.is_function and isinstance(t, FunctionPointer):
                if not ctx.is_static:
                    declarations.append(
                        Function(
                            name,
                            t.return_type,
                            t.parameters,
                            is_variadic=t.is_variadic,
                            calling_convention=t.calling_convention,
                            location=location,
                        )
                    )
            elif not ctx.is_static:
                declarations.append(Variable(name, t, location=location))
            if cur.accept_punct("="):
                cur.take_until(",")
            if not cur.accept_punct(","):
                break
        if not cur.at_end():
            token = cur.next()
            raise ParseError(f"unexpected {token.text!r}", token.line)
        return self._finish(ctx) + declarations

    @staticmethod
    def _finish(ctx: _Context) -> list[Declaration]:
        result: list[Declaration] = []
        for decl in ctx.declarations:
            if decl.name is None and not isinstance(decl, Enum):
                logger.debug("dropping unnamed %s in %s", type(decl).__name__.lower(), ctx.header)
                continue
            result.append(decl)
        return result

    @staticmethod
    def _name_anonymous(ctx: _Context, first_declarator: str | None) -> None:
        """Name anonymous tags after their typedef, variable or enclosing tag."""
        for entry in sorted(ctx.anonymous, key=lambda a: a.depth):
            if entry.owner is None:
                if first_declarator is None:
                    continue
                name = first_declarator if ctx.is_typedef else f"__anon_{first_declarator}"
            else:
                if entry.owner.name is None:
                    continue
                name = f"{entry.owner.name}__anon{entry.ordinal}"
            entry.ctype.name = name
            entry.decl.name = name

    # -- specifiers ------------------------------------------------------------

    def _specifiers(self, cur: _Cursor, ctx: _Context, owner: Struct | Union | None) -> CType:
        qualifiers: list[str] = []
        words: list[str] = []
        named: CType | None = None
        while True:
            token = cur.peek()
            if token is None or token.kind != IDENT:
                break
            text = token.text
            if text in _STORAGE:
                if owner is not None or ctx.in_parameters:
                    raise ParseError(f"unexpected {text!r}", token.line)
                setattr(ctx, f"is_{text}", True)
            elif text in _QUALIFIERS:
                qualifiers.append(text)
            elif text in PRIMITIVE_KEYWORDS:
                if named is not None:
                    break
                words.append(text)
            elif text in _TAG_KEYWORDS:
                if named is not None or words:
                    break
                cur.next()
                named = self._tag(cur, text, token, ctx, owner)
                continue
            elif text in CALLING_CONVENTIONS:
                break
            elif named is None and not words:
                named = CType("wchar_t" if text == "__wchar_t" else text)
            else:
                break
            cur.next()

        if named is None:
            if not words:
                token = cur.peek()
                found = repr(token.text) if token is not None else "end of declaration"
                raise ParseError(f"expected a type, got {found}", token.line if token else None)
            try:
                named = CType(canonical_primitive(words), kind="primitive")
            except ValueError as exc:
                raise ParseError(str(exc)) from exc
        named.qualifiers = qualifiers + named.qualifiers
        return named

    def _tag(self, cur: _Cursor, keyword: str, keyword_token: Token, ctx: _Context, owner: Struct | Union | None) -> CType:
        name: str | None = None
        token = cur.peek()
        if token is not None and token.kind == IDENT:
            name = cur.next().text
        ctype = CType(name, kind=keyword)  # type: ignore[arg-type]
        location = SourceLocation(ctx.header, keyword_token.line)

        token = cur.peek()
        if token is None or not token.is_punct("{"):
            if name is None:
                raise ParseError(f"{keyword} without a name or body", keyword_token.line)
            is_forward = owner is None and not ctx.in_parameters and (ctx.is_typedef or cur.at_end())
            if is_forward and keyword == "struct":
                ctx.declarations.append(Struct(name, None, location=location))
            elif is_forward and keyword == "union":
                ctx.declarations.append(Union(name, None, location=location))
            return ctype

        body = cur.group("{", "}")
        depth = ctx.depths.get(id(owner), 0) + 1 if owner is not None else 0
        decl: Struct | Union | Enum
        if keyword == "enum":
            decl = Enum(name, self._enumerators(body), is_typedef=ctx.is_typedef, location=location)
        else:
            if keyword == "struct":
                decl = Struct(name, [], is_typedef=ctx.is_typedef, location=location)
            else:
                decl = Union(name, [], location=location)
            ctx.depths[id(decl)] = depth
            decl.fields = self._fields(body, decl, ctx)
        if name is None:
            ordinal = 0
            if owner is not None:
                ordinal = ctx.counters.get(id(owner), 0) + 1
                ctx.counters[id(owner)] = ordinal
            ctx.anonymous.append(_Anonymous(ctype, decl, owner, ordinal, depth))
        ctx.declarations.append(decl)
        return ctype

    def _fields(self, body: list[Token], owner: Struct | Union, ctx: _Context) -> list[Field]:
        fields: list[Field] = []
        anonymous_members = 0
        for part in split_top_level(body, ";"):
            if not part:
                continue
            cur = _Cursor(part, part[0].line)
            base = self._specifiers(cur, ctx, owner)
            if cur.at_end():
                if base.kind in ("struct", "union"):
                    anonymous_members += 1
                    fields.append(Field(f"__anon{anonymous_members}", base))
                    continue
                raise ParseError("field has no name", part[0].line)
            while True:
                declarator = self._declarator(cur)
                width: int | None = None
                if cur.accept_punct(":"):
                    width = self._constant_int(cur.take_until(","), part[0].line)
                name = declarator.identifier
                if name is None:
                    if width is None:
                        raise ParseError("field has no name", part[0].line)
                    name = f"__pad{len(fields)}"
                fields.append(Field(name, declarator.apply(base), width))
                if not cur.accept_punct(","):
                    break
            if not cur.at_end():
                token = cur.next()
                raise ParseError(f"unexpected {token.text!r} in field list", token.line)
        return fields

    def _enumerators(self, body: list[Token]) -> list[EnumValue]:
        values: list[EnumValue] = []
        for part in split_top_level(body, ","):
            if not part:
                continue
            if part[0].kind != IDENT:
                raise ParseError(f"bad enumerator {part[0].text!r}", part[0].line)
            name = part[0].text
            if len(part) == 1:
                values.append(EnumValue(name))
                continue
            if not part[1].is_punct("=") or len(part) < 3:
                raise ParseError(f"bad enumerator {spell(part)!r}", part[0].line)
            expression = part[2:]
            try:
                values.append(EnumValue(name, self._constant_int(expression, part[0].line)))
            except ParseError:
                values.append(EnumValue(name, spell(expression)))
        return values

    @staticmethod
    def _constant_int(tokens: list[Token], line: int) -> int:
        """Evaluate a self-contained integer expression (bit widths, literal enumerators)."""

        def no_names(name: str):
            raise ExpressionError(f"unknown name {name!r}")

        try:
            return evaluate(parse_expression(tokens), no_names).value
        except ExpressionError as exc:
            raise ParseError(str(exc), line) from exc

    # -- declarators -----------------------------------------------------------

    def _declarator(self, cur: _Cursor) -> _Declarator:
        declarator = _Declarator()
        while True:
            token = cur.peek()
            if token is None:
                break
            if token.is_punct("*") or token.is_punct("^"):
                cur.next()
                qualifiers: list[str] = []
                while (q := cur.peek()) is not None and q.kind == IDENT and q.text in _QUALIFIERS:
                    qualifiers.append(cur.next().text)
                declarator.pointers.append(qualifiers)
            elif token.kind == IDENT and token.text in CALLING_CONVENTIONS:
                declarator.calling_convention = CALLING_CONVENTIONS[cur.next().text]
            elif token.kind == IDENT and token.text in _QUALIFIERS:
                cur.next()
            else:
                break

        token = cur.peek()
        if token is not None and token.is_punct("(") and self._starts_nested(cur):
            cur.next()
            declarator.inner = self._declarator(cur)
            cur.expect_punct(")")
        elif token is not None and token.kind == IDENT and token.text not in PRIMITIVE_KEYWORDS:
            declarator.name = cur.next().text

        while True:
            token = cur.peek()
            if token is None:
                break
            if token.is_punct("["):
                declarator.suffixes.append(("array", self._array_size(cur.group("[", "]"))))
            elif token.is_punct("("):
                params, variadic = self._parameters(cur.group("(", ")"))
                declarator.suffixes.append(("function", params, variadic))
            else:
                break
        return declarator

    @staticmethod
    def _starts_nested(cur: _Cursor) -> bool:
        following = cur.peek(1)
        if following is None:
            return False
        if following.is_punct("*") or following.is_punct("^"):
            return True
        return following.kind == IDENT and following.text in CALLING_CONVENTIONS

    @staticmethod
    def _array_size(tokens: list[Token]) -> int | str | None:
        if not tokens:
            return None
        if len(tokens) == 1 and tokens[0].kind == NUMBER:
            try:
                return parse_int_literal(tokens[0].text).value
            except ExpressionError:
                pass
        return spell(tokens)

    def _parameters(self, tokens: list[Token]) -> tuple[list[Parameter], bool]:
        parts = split_top_level(tokens, ",")
        if len(parts) == 1 and (not parts[0] or (len(parts[0]) == 1 and parts[0][0].is_ident("void"))):
            return [], False
        params: list[Parameter] = []
        variadic = False
        for index, part in enumerate(parts):
            if len(part) == 1 and part[0].is_punct("..."):
                if index != len(parts) - 1:
                    raise ParseError("'...' must be the last parameter", part[0].line)
                variadic = True
                continue
            if not part:
                raise ParseError("empty parameter")
            ctx = _Context(header="", in_parameters=True)
            cur = _Cursor(part, part[0].line)
            base = self._specifiers(cur, ctx, owner=None)
            declarator = self._declarator(cur)
            if not cur.at_end():
                token = cur.next()
                raise ParseError(f"unexpected {token.text!r} in parameter", token.line)
            params.append(Parameter(declarator.identifier, adjust_parameter_type(declarator.apply(base))))
        return params, variadic


def _preview(tokens: Sequence[Token], limit: int = 8) -> str:
    text = spell(list(tokens[:limit]))
    return text + " ..." if len(tokens) > limit else text


__all__ = [
    "CALLING_CONVENTIONS",
    "DeclarationParser",
    "Statement",
    "adjust_parameter_type",
    "clean_tokens",
    "split_statements",
    "split_top_level",
]
