"""Restricted row filter expressions for the transform executor.

Expressions are Python expressions over a single name, ``row``, e.g.
``row.price > 100 and row["in stock"] == "yes"``. They are parsed once,
checked against a whitelist of AST nodes, and evaluated with no
builtins. The JavaScript spellings ``===``, ``!==``, ``&&``, ``||``,
``true``, ``false`` and ``null`` are accepted for compatibility with
recipes written for the browser-side editor.
"""

import ast
import re
from collections.abc import Iterable, Mapping
from typing import Any

SAFE_FUNCTIONS: dict[str, Any] = {
    "len": len,
    "any": any,
    "all": all,
    "min": min,
    "max": max,
    "sum": sum,
    "str": str,
    "int": int,
    "float": float,
    "abs": abs,
}

CONSTANTS: dict[str, Any] = {"true": True, "false": False, "null": None}

_JS_OPERATORS = (("===", "=="), ("!==", "!="), ("&&", " and "), ("||", " or "))
_NUMBER = re.compile(r"^-?\d+(\.\d+)?$")
_STRING_LITERAL = re.compile(r"""("(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')""")


class FilterExpressionError(ValueError):
    pass


def _translate_js(expression: str) -> str:
    """Rewrite JavaScript operators outside string literals."""
    parts = _STRING_LITERAL.split(expression)
    # Odd indices are the captured literals
    for i in range(0, len(parts), 2):
        for js, py in _JS_OPERATORS:
            parts[i] = parts[i].replace(js, py)
    return "".join(parts)


def _coerce(value: Any) -> Any:
    """Numeric-looking strings compare as numbers (CSV cells are all strings)."""
    if isinstance(value, str) and _NUMBER.match(value.strip()):
        text = value.strip()
        return float(text) if "." in text else int(text)
    return value


class _Row:
    """Read-only view of a row supporting ``row.field`` and ``row["field"]``."""

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any]):
        self._data = data

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return _coerce(self._data.get(name))

    def __getitem__(self, key: str) -> Any:
        return _coerce(self._data.get(key))


class _ExpressionValidator(ast.NodeVisitor):
    ALLOWED_NODES = (
        ast.Expression,
        ast.BoolOp,
        ast.BinOp,
        ast.UnaryOp,
        ast.Compare,
        ast.Call,
        ast.Name,
        ast.Load,
        ast.Constant,
        ast.Attribute,
        ast.Subscript,
        ast.List,
        ast.Tuple,
    )

    ALLOWED_BINOPS = (ast.Add, ast.Sub, ast.Mult, ast.Div, ast.FloorDiv, ast.Mod)

    ALLOWED_UNARY = (ast.Not, ast.USub, ast.UAdd)

    ALLOWED_CMPS = (
        ast.Eq,
        ast.NotEq,
        ast.Lt,
        ast.Gt,
        ast.LtE,
        ast.GtE,
        ast.In,
        ast.NotIn,
        ast.Is,
        ast.IsNot,
    )

    def __init__(self, allowed_names: Iterable[str]) -> None:
        self.allowed_names = set(allowed_names)

    def generic_visit(self, node: ast.AST) -> None:
        if isinstance(node, (ast.cmpop, ast.operator, ast.boolop, ast.unaryop)):
            return
        if not isinstance(node, self.ALLOWED_NODES):
            raise FilterExpressionError(f"Disallowed expression node: {type(node).__name__}")
        super().generic_visit(node)

    def visit_Call(self, node: ast.Call) -> None:
        if not isinstance(node.func, ast.Name) or node.func.id not in SAFE_FUNCTIONS:
            raise FilterExpressionError("Only whitelisted helper functions can be called")
        self.generic_visit(node)

    def visit_Name(self, node: ast.Name) -> None:
        if node.id not in self.allowed_names and node.id not in SAFE_FUNCTIONS:
            raise FilterExpressionError(f"Unknown variable '{node.id}' in expression")

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if not isinstance(node.value, ast.Name) or node.value.id != "row":
            raise FilterExpressionError("Only row fields can be accessed with '.'")
        if node.attr.startswith("_"):
            raise FilterExpressionError(f"Field '{node.attr}' is not accessible")
        self.generic_visit(node)

    def visit_Subscript(self, node: ast.Subscript) -> None:
        if not isinstance(node.value, ast.Name) or node.value.id != "row":
            raise FilterExpressionError("Only row can be subscripted")
        self.generic_visit(node)

    def visit_BinOp(self, node: ast.BinOp) -> None:
        if not isinstance(node.op, self.ALLOWED_BINOPS):
            raise FilterExpressionError(f"Operator '{type(node.op).__name__}' is not allowed")
        self.generic_visit(node)

    def visit_UnaryOp(self, node: ast.UnaryOp) -> None:
        if not isinstance(node.op, self.ALLOWED_UNARY):
            raise FilterExpressionError(f"Unary op '{type(node.op).__name__}' is not allowed")
        self.generic_visit(node)

    def visit_Compare(self, node: ast.Compare) -> None:
        for op in node.ops:
            if not isinstance(op, self.ALLOWED_CMPS):
                raise FilterExpressionError(f"Comparator '{type(op).__name__}' is not allowed")
        self.generic_visit(node)


class RowFilter:
    """A compiled filter expression.

    Raises:
        FilterExpressionError: On construction, if the expression is empty,
            does not parse, or uses anything outside the whitelist.
    """

    def __init__(self, expression: str):
        source = _translate_js(expression.strip())
        if not source:
            raise FilterExpressionError("Filter expression is empty")
        try:
            tree = ast.parse(source, mode="eval")
        except SyntaxError as e:
            raise FilterExpressionError(f"Invalid filter expression: {e.msg}") from e
        _ExpressionValidator({"row", *CONSTANTS}).visit(tree)
        self.expression = expression
        self._code = compile(tree, "<filter>", "eval")

    def matches(self, row: Mapping[str, Any]) -> bool:
        """Evaluate against ``row``; any evaluation error counts as no match."""
        scope = {**SAFE_FUNCTIONS, **CONSTANTS, "row": _Row(row)}
        try:
            return bool(eval(self._code, {"__builtins__": {}}, scope))
        except Exception:
            return False
