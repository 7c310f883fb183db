from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence

import numpy as np

from lexer import MiniPyError, Token
from segmenter import SourceLocation


INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1


class MiniPyRuntimeError(MiniPyError):
    """Raised for runtime faults."""

    def __init__(
        self,
        message: str,
        *,
        location: Optional[SourceLocation] = None,
        rule: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.location = location
        self.rule = rule
        self.step_index: Optional[int] = None


class UnexpectedTokenError(MiniPyRuntimeError):
    pass


class MissingOperandError(MiniPyRuntimeError):
    pass


class DivisionByZeroError(MiniPyRuntimeError):
    pass


class IntegerLiteralError(MiniPyRuntimeError):
    pass


class StepLimitError(MiniPyRuntimeError):
    pass


def wrap_int32(value: int) -> int:
    """Reduce an exact integer result to signed 32-bit two's complement."""
    # Operands are int32, so every exact result fits in int64 before the cast.
    return int(np.int64(value).astype(np.int32))


def trunc_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def trunc_mod(a: int, b: int) -> int:
    return a - b * trunc_div(a, b)


BinaryImpl = Callable[[int, int, Optional[SourceLocation]], int]


@dataclass
class BinaryOperator:
    name: str
    impl: BinaryImpl


class ExpressionEvaluator:
    """Folds a flat token run strictly left to right into one int32.

    There is no precedence and no grouping: ``1 + 2 * 3`` is ``(1 + 2) * 3``
    and ``a < b < c`` compares the 0/1 result of ``a < b`` against ``c``.
    """

    def __init__(self) -> None:
        self.table: Dict[str, BinaryOperator] = {}
        self._register("PLUS", lambda a, b, _: a + b)
        self._register("MINUS", lambda a, b, _: a - b)
        self._register("STAR", lambda a, b, _: a * b)
        self._register("SLASH", self._safe_div)
        self._register("MOD", self._safe_mod)
        self._register("EQEQ", lambda a, b, _: 1 if a == b else 0)
        self._register("NEQ", lambda a, b, _: 1 if a != b else 0)
        self._register("GT", lambda a, b, _: 1 if a > b else 0)
        self._register("GTE", lambda a, b, _: 1 if a >= b else 0)
        self._register("LT", lambda a, b, _: 1 if a < b else 0)
        self._register("LTE", lambda a, b, _: 1 if a <= b else 0)

    def _register(self, name: str, impl: BinaryImpl) -> None:
        self.table[name] = BinaryOperator(name=name, impl=impl)

    def is_operator(self, token: Token) -> bool:
        return token.type in self.table

    def evaluate(
        self,
        tokens: Sequence[Token],
        variables: Callable[[str], int],
        location: Optional[SourceLocation] = None,
    ) -> int:
        if not tokens:
            return 0
        resolve = self._resolve
        table = self.table
        value = resolve(tokens[0], variables, location)
        n = len(tokens)
        i = 1
        while i < n:
            op = table.get(tokens[i].type)
            if op is None:
                # Stray tokens between operands are tolerated.
                i += 1
                continue
            if i + 1 >= n:
                raise MissingOperandError(
                    "Operator at end with no operand",
                    location=location,
                    rule=op.name,
                )
            right = resolve(tokens[i + 1], variables, location)
            value = wrap_int32(op.impl(value, right, location))
            i += 2
        return value

    def _resolve(
        self,
        token: Token,
        variables: Callable[[str], int],
        location: Optional[SourceLocation],
    ) -> int:
        if token.type == "NUMBER":
            number = int(token.value)
            if number > INT32_MAX:
                raise IntegerLiteralError(
                    f"Integer literal {token.value} is out of range",
                    location=location,
                    rule="NUMBER",
                )
            return number
        if token.type == "IDENT":
            return variables(token.value)
        raise UnexpectedTokenError(
            f"Unexpected token in expression: {token.type} '{token.value}'",
            location=location,
            rule="VALUE",
        )

    def _safe_div(self, a: int, b: int, location: Optional[SourceLocation]) -> int:
        if b == 0:
            raise DivisionByZeroError("Division by zero", location=location, rule="SLASH")
        return trunc_div(a, b)

    def _safe_mod(self, a: int, b: int, location: Optional[SourceLocation]) -> int:
        if b == 0:
            raise DivisionByZeroError("Modulo by zero", location=location, rule="MOD")
        return trunc_mod(a, b)
