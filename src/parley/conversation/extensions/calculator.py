"""
Calculator extension.

Arithmetic, a few transcendental functions (angles in degrees) and simple
statistics over number lists. Results are rounded to ``max_decimal_places``
and rendered without a trailing ``.0`` for whole numbers.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from parley.conversation.extensions.base import BaseFunctionExtension

logger = logging.getLogger(__name__)


def _number_params(*names: str, descriptions: dict[str, str] | None = None) -> dict[str, Any]:
    descriptions = descriptions or {}
    return {
        "type": "object",
        "properties": {
            n: {"type": "number", "description": descriptions.get(n, n)} for n in names
        },
        "required": list(names),
    }


_NUMBERS_PARAMS: dict[str, Any] = {
    "type": "object",
    "properties": {
        "numbers": {
            "type": "array",
            "items": {"type": "number"},
            "description": "Array of numbers",
        }
    },
    "required": ["numbers"],
}


class CalculatorExtension(BaseFunctionExtension):
    """Mathematical functions for agents.

    Args:
        enable_advanced_math: Register sqrt, sin, cos and log.
        enable_statistics: Register average, sum, min and max.
        max_decimal_places: Rounding applied to every result.
    """

    name = "Calculator"
    description = "Provides mathematical calculation functions"

    def __init__(
        self,
        enable_advanced_math: bool = True,
        enable_statistics: bool = True,
        max_decimal_places: int = 6,
        enabled: bool = True,
    ) -> None:
        self.enable_advanced_math = enable_advanced_math
        self.enable_statistics = enable_statistics
        self.max_decimal_places = max_decimal_places
        super().__init__(enabled=enabled)

    def register_functions(self) -> None:
        self.add_function(
            "add", "Add two numbers",
            _number_params("a", "b", descriptions={"a": "First number", "b": "Second number"}),
            self._binary(lambda a, b: a + b), "add(5, 3) = 8",
        )
        self.add_function(
            "subtract", "Subtract two numbers",
            _number_params(
                "a", "b",
                descriptions={"a": "Number to subtract from", "b": "Number to subtract"},
            ),
            self._binary(lambda a, b: a - b), "subtract(10, 3) = 7",
        )
        self.add_function(
            "multiply", "Multiply two numbers",
            _number_params("a", "b", descriptions={"a": "First number", "b": "Second number"}),
            self._binary(lambda a, b: a * b), "multiply(4, 5) = 20",
        )
        self.add_function(
            "divide", "Divide two numbers",
            _number_params("a", "b", descriptions={"a": "Dividend", "b": "Divisor"}),
            self._divide, "divide(15, 3) = 5",
        )
        self.add_function(
            "power", "Raise a number to a power",
            _number_params(
                "base", "exponent",
                descriptions={"base": "Base number", "exponent": "Exponent"},
            ),
            self._power, "power(2, 3) = 8",
        )

        if self.enable_advanced_math:
            self.add_function(
                "sqrt", "Calculate square root",
                _number_params("number", descriptions={"number": "Number to find square root of"}),
                self._sqrt, "sqrt(16) = 4",
            )
            self.add_function(
                "sin", "Calculate sine of angle in degrees",
                _number_params("angle", descriptions={"angle": "Angle in degrees"}),
                self._unary(lambda x: math.sin(math.radians(x)), "angle"), "sin(90) = 1",
            )
            self.add_function(
                "cos", "Calculate cosine of angle in degrees",
                _number_params("angle", descriptions={"angle": "Angle in degrees"}),
                self._unary(lambda x: math.cos(math.radians(x)), "angle"), "cos(0) = 1",
            )
            log_params = _number_params(
                "number", descriptions={"number": "Number to find logarithm of"}
            )
            log_params["properties"]["base"] = {
                "type": "number",
                "description": "Logarithm base",
                "default": 10,
            }
            self.add_function(
                "log", "Calculate logarithm", log_params, self._log, "log(100, 10) = 2"
            )

        if self.enable_statistics:
            self.add_function(
                "average", "Calculate average of numbers", _NUMBERS_PARAMS,
                self._aggregate(lambda xs: sum(xs) / len(xs)), "average([1,2,3,4,5]) = 3",
            )
            self.add_function(
                "sum", "Calculate sum of numbers", _NUMBERS_PARAMS,
                self._aggregate(sum), "sum([1,2,3,4,5]) = 15",
            )
            self.add_function(
                "min", "Find minimum value", _NUMBERS_PARAMS,
                self._aggregate(min), "min([1,2,3,4,5]) = 1",
            )
            self.add_function(
                "max", "Find maximum value", _NUMBERS_PARAMS,
                self._aggregate(max), "max([1,2,3,4,5]) = 5",
            )

        logger.debug("Initialized Calculator with %d functions", len(self))

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _binary(self, op):
        async def _call(args: dict[str, Any]) -> str:
            return self.format_result(op(_number(args, "a"), _number(args, "b")))

        return _call

    def _unary(self, op, key: str):
        async def _call(args: dict[str, Any]) -> str:
            return self.format_result(op(_number(args, key)))

        return _call

    def _aggregate(self, op):
        async def _call(args: dict[str, Any]) -> str:
            numbers = _number_list(args, "numbers")
            if not numbers:
                raise ValueError("Parameter numbers must not be empty")
            return self.format_result(op(numbers))

        return _call

    async def _divide(self, args: dict[str, Any]) -> str:
        divisor = _number(args, "b")
        if abs(divisor) < 1e-10:
            raise ZeroDivisionError("Cannot divide by zero")
        return self.format_result(_number(args, "a") / divisor)

    async def _power(self, args: dict[str, Any]) -> str:
        return self.format_result(math.pow(_number(args, "base"), _number(args, "exponent")))

    async def _sqrt(self, args: dict[str, Any]) -> str:
        number = _number(args, "number")
        if number < 0:
            raise ValueError("Cannot calculate square root of negative number")
        return self.format_result(math.sqrt(number))

    async def _log(self, args: dict[str, Any]) -> str:
        number = _number(args, "number")
        base = _number(args, "base") if "base" in args else 10.0
        if number <= 0:
            raise ValueError("Logarithm input must be positive")
        return self.format_result(math.log(number, base))

    def format_result(self, value: float) -> str:
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        rounded = round(value, self.max_decimal_places)
        if rounded == int(rounded):
            return str(int(rounded))
        return str(rounded)


def _number(args: dict[str, Any], key: str) -> float:
    value = args.get(key)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Parameter {key} must be a number") from None


def _number_list(args: dict[str, Any], key: str) -> list[float]:
    value = args.get(key)
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"Parameter {key} must be an array of numbers")
    return [_number({key: item}, key) for item in value]
