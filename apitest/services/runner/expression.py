"""Sandboxed boolean expressions over decoded response bodies."""

from typing import Any, Callable

from jinja2 import StrictUndefined, TemplateSyntaxError
from jinja2.sandbox import SandboxedEnvironment

from apitest.services.runner.errors import ExpressionCompileError, ExpressionEvalError

EXPRESSION_FUNCTIONS = {
    "len": len,
    "abs": abs,
    "int": int,
    "float": float,
    "str": str,
    "bool": bool,
    "min": min,
    "max": max,
    "sum": sum,
    "any": any,
    "all": all,
    "round": round,
    "sorted": sorted,
}


class ExpressionEnvironment(SandboxedEnvironment):
    """Sandbox where ``obj.name`` on a mapping reads the key before any method."""

    def getattr(self, obj: Any, attribute: str) -> Any:
        # JSON keys like "items" or "values" must not resolve to dict methods
        if isinstance(obj, dict) and attribute in obj:
            return obj[attribute]
        return super().getattr(obj, attribute)


class ExpressionEvaluator:
    """
    Compiles and evaluates side-effect-free boolean expressions.

    Expressions use Jinja expression syntax, e.g.
    ``len(data) == 3``, ``data.user.id == 5 and data.user.name != ""``
    or ``"admin" in data.roles``. Names resolve against the environment
    passed to ``evaluate``; an unknown name is an evaluation error.
    """

    def __init__(self):
        self.env = ExpressionEnvironment(undefined=StrictUndefined)
        self.env.globals.update(EXPRESSION_FUNCTIONS)

    def compile(self, expression: str) -> Callable[..., Any]:
        """Compile an expression, raising ExpressionCompileError on bad syntax."""
        if not expression or not expression.strip():
            raise ExpressionCompileError(expression, "empty expression")
        try:
            return self.env.compile_expression(expression, undefined_to_none=False)
        except TemplateSyntaxError as e:
            raise ExpressionCompileError(expression, str(e)) from e

    def evaluate(self, expression: str, environment: dict[str, Any]) -> bool:
        """
        Evaluate an expression to a boolean.

        Raises:
            ExpressionCompileError: Invalid syntax
            ExpressionEvalError: Evaluation failed or did not yield a bool
        """
        program = self.compile(expression)
        try:
            result = program(**environment)
        except Exception as e:
            raise ExpressionEvalError(expression, str(e)) from e

        if not isinstance(result, bool):
            raise ExpressionEvalError(expression, f"expected a boolean result, got {type(result).__name__}")
        return result
