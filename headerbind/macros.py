"""The macro and conditional environment.

There is one environment per run. Predefined macros come from the
architecture profile and cannot be changed. ``#define`` and ``#undef`` from
any header change the environment for every header processed afterwards:
macros are not scoped to the header that defined them.

Expansion follows the hide-set algorithm. Every token remembers the macros
whose expansion produced it. When a token names a macro that is in its own
hide set, the expansion has looped back on itself: a ``macro_cycle``
diagnostic is recorded and the token is left unexpanded. The rest of the
expansion carries on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping

from headerbind.diagnostics import (
    MACRO_CYCLE,
    UNSUPPORTED_EXPRESSION,
    Diagnostics,
    ExpressionError,
    MacroCycleError,
)
from headerbind.expr import LLONG, IntValue, evaluate, parse_expression
from headerbind.lexer import IDENT, NUMBER, PUNCT, STRING, Token, spell, tokenize

logger = logging.getLogger(__name__)


@dataclass
class MacroDefinition:
    """A ``#define``.

    :param name: Macro name.
    :param body: Replacement tokens.
    :param params: Parameter names for function-like macros, None for
        object-like ones.
    :param is_variadic: Whether the parameter list ends with ``...``.
    :param source: Display name of the defining header, None for predefined macros.
    :param line: Line of the ``#define``.
    """

    name: str
    body: list[Token] = field(default_factory=list)
    params: list[str] | None = None
    is_variadic: bool = False
    source: str | None = None
    line: int | None = None

    @property
    def is_object_like(self) -> bool:
        return self.params is None

    @property
    def body_text(self) -> list[str]:
        return [t.text for t in self.body]


# A token together with its hide set.
_Hidden = tuple[Token, frozenset[str]]


class MacroEnvironment:
    """Macro definitions plus ``#if`` evaluation.

    :param predefined: Name to replacement text for macros that exist before
        any header is read. They cannot be redefined or undefined.
    :param diagnostics: Collector for macro cycles and unsupported conditions.
    :param long_width: Width of ``long`` used for ``L``-suffixed literals.
    """

    def __init__(
        self,
        predefined: Mapping[str, str] | None = None,
        diagnostics: Diagnostics | None = None,
        long_width: int = 32,
    ) -> None:
        self._macros: dict[str, MacroDefinition] = {}
        self._predefined: frozenset[str] = frozenset(predefined or {})
        self._diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self._long_width = long_width
        self._reported_cycles: set[str] = set()
        for name, text in (predefined or {}).items():
            self._macros[name] = MacroDefinition(name, tokenize(text))

    # -- definitions ---------------------------------------------------------

    def define(self, definition: MacroDefinition) -> None:
        """Add or replace a macro. Predefined macros are left untouched."""
        if definition.name in self._predefined:
            logger.debug("ignoring redefinition of predefined macro %s", definition.name)
            return
        previous = self._macros.get(definition.name)
        if previous is not None and previous.body_text != definition.body_text:
            logger.debug("macro %s redefined in %s", definition.name, definition.source)
        self._macros[definition.name] = definition

    def undef(self, name: str) -> None:
        if name in self._predefined:
            logger.debug("ignoring #undef of predefined macro %s", name)
            return
        self._macros.pop(name, None)

    def is_defined(self, name: str) -> bool:
        return name in self._macros

    def lookup(self, name: str) -> MacroDefinition | None:
        return self._macros.get(name)

    def is_predefined(self, name: str) -> bool:
        return name in self._predefined

    def __len__(self) -> int:
        return len(self._macros)

    # -- expansion -----------------------------------------------------------

    def expand(self, tokens: list[Token], header: str | None = None) -> list[Token]:
        """Fully macro-expand a token sequence.

        :param header: Used to attribute ``macro_cycle`` diagnostics.
        """
        return [t for t, _ in self._expand([(t, frozenset()) for t in tokens], header)]

    def _expand(self, tokens: list[_Hidden], header: str | None) -> list[_Hidden]:
        output: list[_Hidden] = []
        pending = list(tokens)
        i = 0
        while i < len(pending):
            token, hide = pending[i]
            if token.is_ident("defined"):
                # The operand of `defined` is a macro name, not an expression.
                end = self._defined_operand_end(pending, i)
                output.extend(pending[i:end])
                i = end
                continue
            macro = self._macros.get(token.text) if token.kind == IDENT else None
            if macro is None:
                output.append(pending[i])
                i += 1
                continue
            # Function-like: only an invocation if followed by "(".
            if not macro.is_object_like and (i + 1 >= len(pending) or not pending[i + 1][0].is_punct("(")):
                output.append(pending[i])
                i += 1
                continue
            try:
                self._check_cycle(token.text, hide)
            except MacroCycleError as exc:
                self._report_cycle(exc, token, header)
                output.append(pending[i])
                i += 1
                continue

            if macro.is_object_like:
                new_hide = hide | {macro.name}
                replacement = [(self._relocate(t, token), new_hide) for t in macro.body]
                pending[i : i + 1] = replacement
                continue

            collected = self._collect_arguments(pending, i + 1)
            if collected is None:
                output.append(pending[i])
                i += 1
                continue
            args, end, rparen_hide = collected
            new_hide = (hide & rparen_hide) | {macro.name}
            body = self._substitute(macro, args, token, header)
            pending[i : end + 1] = [(t, new_hide | h) for t, h in body]
        return output

    @staticmethod
    def _defined_operand_end(tokens: list[_Hidden], index: int) -> int:
        """Index just past ``defined X`` or ``defined ( X )`` starting at ``index``."""
        if index + 1 < len(tokens) and tokens[index + 1][0].kind == IDENT:
            return index + 2
        if (
            index + 3 < len(tokens)
            and tokens[index + 1][0].is_punct("(")
            and tokens[index + 2][0].kind == IDENT
            and tokens[index + 3][0].is_punct(")")
        ):
            return index + 4
        return index + 1

    @staticmethod
    def _check_cycle(name: str, hide: frozenset[str]) -> None:
        if name in hide:
            raise MacroCycleError(name)

    def _report_cycle(self, exc: MacroCycleError, token: Token, header: str | None) -> None:
        if exc.name in self._reported_cycles:
            return
        self._reported_cycles.add(exc.name)
        self._diagnostics.report(
            MACRO_CYCLE,
            f"{exc}; left unexpanded",
            header=header,
            line=token.line or None,
            symbol=exc.name,
        )

    @staticmethod
    def _relocate(token: Token, origin: Token) -> Token:
        return Token(token.kind, token.text, origin.line)

    @staticmethod
    def _collect_arguments(
        tokens: list[_Hidden], open_index: int
    ) -> tuple[list[list[_Hidden]], int, frozenset[str]] | None:
        """Split the arguments of an invocation whose ``(`` is at ``open_index``.

        Returns the arguments, the index of the closing ``)`` and its hide set,
        or None if the parenthesis is never closed.
        """
        args: list[list[_Hidden]] = [[]]
        depth = 0
        for index in range(open_index, len(tokens)):
            token, hide = tokens[index]
            if token.is_punct("("):
                depth += 1
                if depth == 1:
                    continue
            elif token.is_punct(")"):
                depth -= 1
                if depth == 0:
                    if len(args) == 1 and not args[0]:
                        args = []
                    return args, index, hide
            elif token.is_punct(",") and depth == 1:
                args.append([])
                continue
            args[-1].append((token, hide))
        return None

    def _substitute(
        self,
        macro: MacroDefinition,
        args: list[list[_Hidden]],
        origin: Token,
        header: str | None,
    ) -> list[_Hidden]:
        params = list(macro.params or [])
        if macro.is_variadic:
            params.append("__VA_ARGS__")
            if len(args) > len(params):
                head = args[: len(params) - 1]
                rest: list[_Hidden] = []
                for n, arg in enumerate(args[len(params) - 1 :]):
                    if n:
                        rest.append((Token(PUNCT, ",", origin.line), frozenset()))
                    rest.extend(arg)
                args = head + [rest]
        while len(args) < len(params):
            args.append([])
        raw = dict(zip(params, args))
        expanded_cache: dict[str, list[_Hidden]] = {}

        def expanded(name: str) -> list[_Hidden]:
            if name not in expanded_cache:
                expanded_cache[name] = self._expand(raw[name], header)
            return expanded_cache[name]

        body = macro.body
        result: list[_Hidden] = []
        i = 0
        while i < len(body):
            token = body[i]
            # Stringize.
            if token.is_punct("#") and i + 1 < len(body) and body[i + 1].text in raw:
                text = spell([t for t, _ in raw[body[i + 1].text]])
                escaped = text.replace("\\", "\\\\").replace('"', '\\"')
                result.append((Token(STRING, f'"{escaped}"', origin.line), frozenset()))
                i += 2
                continue
            # Token paste: glue the last emitted token to the next operand.
            if token.is_punct("##") and result and i + 1 < len(body):
                right_token = body[i + 1]
                right = [t for t, _ in raw[right_token.text]] if right_token.text in raw else [right_token]
                if macro.is_variadic and right_token.text == "__VA_ARGS__" and result[-1][0].is_punct(","):
                    if not right:
                        result.pop()
                    result.extend((self._relocate(t, origin), frozenset()) for t in right)
                    i += 2
                    continue
                left, _ = result.pop()
                if right:
                    glued = tokenize(left.text + right[0].text, origin.line)
                    result.extend((t, frozenset()) for t in glued)
                    result.extend((self._relocate(t, origin), frozenset()) for t in right[1:])
                else:
                    result.append((left, frozenset()))
                i += 2
                continue
            if token.kind == IDENT and token.text in raw:
                next_is_paste = i + 1 < len(body) and body[i + 1].is_punct("##")
                source = raw[token.text] if next_is_paste else expanded(token.text)
                result.extend((self._relocate(t, origin), h) for t, h in source)
                i += 1
                continue
            result.append((self._relocate(token, origin), frozenset()))
            i += 1
        return result

    # -- conditions ----------------------------------------------------------

    def _resolve_defined(self, tokens: list[Token]) -> list[Token]:
        """Replace ``defined X`` and ``defined(X)`` with 1 or 0."""
        result: list[Token] = []
        i = 0
        while i < len(tokens):
            token = tokens[i]
            if not token.is_ident("defined"):
                result.append(token)
                i += 1
                continue
            if i + 1 < len(tokens) and tokens[i + 1].kind == IDENT:
                name, i = tokens[i + 1].text, i + 2
            elif (
                i + 3 < len(tokens)
                and tokens[i + 1].is_punct("(")
                and tokens[i + 2].kind == IDENT
                and tokens[i + 3].is_punct(")")
            ):
                name, i = tokens[i + 2].text, i + 4
            else:
                raise ExpressionError("malformed 'defined' operator")
            result.append(Token(NUMBER, "1" if self.is_defined(name) else "0", token.line))
        return result

    def evaluate_condition(self, tokens: list[Token], header: str | None = None, line: int | None = None) -> bool:
        """Evaluate the expression of an ``#if`` or ``#elif``.

        Identifiers left after expansion count as 0, as in C. Anything the
        expression core cannot handle (leftover function-like calls,
        ``__has_include``, division by zero...) makes the condition false
        and records an ``unsupported_expression`` diagnostic.
        """

        def resolve_name(name: str) -> IntValue:
            return IntValue(1 if name == "true" else 0, LLONG)

        try:
            resolved = self._resolve_defined(tokens)
            expanded = self._resolve_defined(self.expand(resolved, header))
            node = parse_expression(expanded, self._long_width)
            return evaluate(node, resolve_name, widen=True).value != 0
        except ExpressionError as exc:
            self._diagnostics.report(
                UNSUPPORTED_EXPRESSION,
                f"cannot evaluate '#if {spell(tokens)}' ({exc}); treating as false",
                header=header,
                line=line,
            )
            return False
