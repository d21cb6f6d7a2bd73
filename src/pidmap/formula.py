"""Compilation of configured probability expressions into callables.

Expressions are written over the candidate kinematics `pt`, `eta`, `phi` and
`energy`, e.g. ``(abs(eta) <= 2.5) * (pt > 1.0) * 0.95``. Comparisons
evaluate to 0/1, ``&&``/``||`` and ``^`` (power) are accepted for
compatibility with TFormula-style cards, as are the placeholders
``x, y, z, t`` and ``TMath::`` prefixes.

Numeric literals and variables are evaluated as floats, so ``^`` and ``**``
use `math.pow` and overflow raises `OverflowError` instead of building huge
integers.

Only a whitelisted subset of Python expression syntax is compiled; anything
else raises `FormulaError` when the table is built.
"""

from __future__ import annotations

import ast
import math
import operator
import re
from dataclasses import dataclass

_ARGUMENT_NAMES = ("pt", "eta", "phi", "energy")

_ALIASES = {
    "x": "pt",
    "y": "eta",
    "z": "phi",
    "t": "energy",
    "e": "energy",
    "E": "energy",
    "PT": "pt",
    "Eta": "eta",
    "Phi": "phi",
}

_FUNCTIONS = {
    "abs": abs,
    "sqrt": math.sqrt,
    "exp": math.exp,
    "log": math.log,
    "log10": math.log10,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "atan": math.atan,
    "atan2": math.atan2,
    "pow": math.pow,
    "min": min,
    "max": max,
    "erf": math.erf,
    "Abs": abs,
    "Sqrt": math.sqrt,
    "Exp": math.exp,
    "Log": math.log,
    "Erf": math.erf,
}

_CONSTANTS = {"pi": math.pi, "Pi": math.pi}

_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Mod: operator.mod,
    ast.Pow: math.pow,
}

_UNARY_OPS = {
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}

_COMPARE_OPS = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
}

_ALLOWED_NODES = (
    ast.Expression,
    ast.BinOp,
    ast.UnaryOp,
    ast.BoolOp,
    ast.Compare,
    ast.IfExp,
    ast.Call,
    ast.Name,
    ast.Load,
    ast.Constant,
    ast.Not,
    ast.And,
    ast.Or,
    *_BINARY_OPS,
    *_UNARY_OPS,
    *_COMPARE_OPS,
)


class FormulaError(ValueError):
    """Raised when a probability expression cannot be compiled."""


@dataclass(frozen=True)
class CompiledFormula:
    """Callable `(pt, eta, phi, energy) -> float` built from an expression."""

    expression: str
    _body: ast.expr

    def __call__(self, pt: float, eta: float, phi: float, energy: float) -> float:
        env = {"pt": float(pt), "eta": float(eta), "phi": float(phi), "energy": float(energy)}
        return _eval_node(self._body, env)


def compile_formula(expression: str) -> CompiledFormula:
    """Compile a probability expression, raising `FormulaError` on bad input."""
    if not isinstance(expression, str) or not expression.strip():
        raise FormulaError(f"Formula expression must be a non-empty string, got {expression!r}.")
    source = _translate(expression)
    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError as exc:
        raise FormulaError(f"Cannot parse formula '{expression}': {exc.msg}") from exc
    tree = _validate(tree, expression)
    return CompiledFormula(expression=expression, _body=tree.body)


def _translate(expression: str) -> str:
    """Map TFormula spellings onto Python expression syntax."""
    source = expression.replace("TMath::", "")
    source = source.replace("&&", " and ").replace("||", " or ")
    source = source.replace("^", "**")
    # `!x` but not `!=`
    source = re.sub(r"!(?!=)", " not ", source)
    return source.strip()


def _validate(tree: ast.Expression, expression: str) -> ast.Expression:
    """Check node types and names, rewriting aliases to canonical arguments."""
    callees = {id(node.func) for node in ast.walk(tree) if isinstance(node, ast.Call)}
    for node in ast.walk(tree):
        if not isinstance(node, _ALLOWED_NODES):
            raise FormulaError(
                f"Unsupported syntax '{type(node).__name__}' in formula '{expression}'."
            )
        if isinstance(node, ast.Constant) and (
            isinstance(node.value, bool) or not isinstance(node.value, (int, float))
        ):
            raise FormulaError(f"Only numeric literals are allowed in formula '{expression}'.")
        if isinstance(node, ast.Call):
            if not isinstance(node.func, ast.Name) or node.func.id not in _FUNCTIONS:
                raise FormulaError(f"Unsupported function call in formula '{expression}'.")
            if node.keywords:
                raise FormulaError(f"Keyword arguments are not allowed in formula '{expression}'.")
        if isinstance(node, ast.Name):
            if id(node) in callees:
                continue
            if node.id in _ALIASES:
                node.id = _ALIASES[node.id]
            elif node.id in _FUNCTIONS:
                raise FormulaError(
                    f"Function '{node.id}' used without arguments in formula '{expression}'."
                )
            elif node.id not in _ARGUMENT_NAMES and node.id not in _CONSTANTS:
                supported = ", ".join(_ARGUMENT_NAMES)
                raise FormulaError(
                    f"Unknown variable '{node.id}' in formula '{expression}'. Supported variables: {supported}"
                )
    return tree


def _eval_node(node: ast.expr, env: dict[str, float]) -> float:
    """Evaluate a validated expression node; every intermediate value is a float."""
    if isinstance(node, ast.Constant):
        return float(node.value)
    if isinstance(node, ast.Name):
        if node.id in env:
            return env[node.id]
        return _CONSTANTS[node.id]
    if isinstance(node, ast.BinOp):
        op = _BINARY_OPS[type(node.op)]
        return op(_eval_node(node.left, env), _eval_node(node.right, env))
    if isinstance(node, ast.UnaryOp):
        operand = _eval_node(node.operand, env)
        if isinstance(node.op, ast.Not):
            return 0.0 if operand else 1.0
        return _UNARY_OPS[type(node.op)](operand)
    if isinstance(node, ast.BoolOp):
        if isinstance(node.op, ast.And):
            return 1.0 if all(_eval_node(value, env) for value in node.values) else 0.0
        return 1.0 if any(_eval_node(value, env) for value in node.values) else 0.0
    if isinstance(node, ast.Compare):
        left = _eval_node(node.left, env)
        for op, comparator in zip(node.ops, node.comparators):
            right = _eval_node(comparator, env)
            if not _COMPARE_OPS[type(op)](left, right):
                return 0.0
            left = right
        return 1.0
    if isinstance(node, ast.IfExp):
        branch = node.body if _eval_node(node.test, env) else node.orelse
        return _eval_node(branch, env)
    if isinstance(node, ast.Call):
        args = [_eval_node(arg, env) for arg in node.args]
        return float(_FUNCTIONS[node.func.id](*args))
    raise FormulaError(f"Unsupported syntax '{type(node).__name__}'.")
