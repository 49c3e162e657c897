"""
Filter expression trees.

A group's filter is a small boolean tree: leaves are Condition(field,
operator, value) triples, inner nodes are And / Or over other nodes.
Values may contain symbolic time placeholders (":startOfDay", ":endOfDay",
":startOfTime") that are only resolved at evaluation time.

Stored JSON shape:

    {"and": [{"field": "card.dueAt", "operator": "lt", "value": ":startOfDay"}]}
"""
from dataclasses import dataclass, field
from datetime import datetime, time, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union
import json


class FilterError(ValueError):
    """Raised when a filter tree is malformed."""
    pass


class Operator(Enum):
    EQ = "eq"
    NEQ = "neq"
    LT = "lt"
    LTE = "lte"
    GT = "gt"
    GTE = "gte"
    BETWEEN = "between"
    IN = "in"
    IS_NULL = "isNull"
    IS_NOT_NULL = "isNotNull"


START_OF_DAY = ":startOfDay"
END_OF_DAY = ":endOfDay"
START_OF_TIME = ":startOfTime"

PLACEHOLDERS = (START_OF_DAY, END_OF_DAY, START_OF_TIME)


@dataclass(frozen=True)
class Condition:
    """Leaf: field path, operator, value (or value list)."""
    field: str
    operator: Operator
    value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "operator": self.operator.value, "value": self.value}


@dataclass(frozen=True)
class And:
    items: List["Expression"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"and": [item.to_dict() for item in self.items]}


@dataclass(frozen=True)
class Or:
    items: List["Expression"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"or": [item.to_dict() for item in self.items]}


Expression = Union[Condition, And, Or]


def where(*conditions: Condition) -> And:
    """Shorthand for the single-conjunction trees the strategies emit."""
    return And(list(conditions))


def parse_where(data: Union[str, Dict[str, Any]]) -> Expression:
    """Build an expression tree from its JSON (or already-decoded) form."""
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise FilterError(f"Filter is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise FilterError(f"Filter node must be an object, got {type(data).__name__}")

    if "and" in data or "or" in data:
        if len(data) != 1:
            raise FilterError(f"Boolean node must have exactly one key, got {sorted(data)}")
        key, items = next(iter(data.items()))
        if not isinstance(items, list):
            raise FilterError(f"'{key}' must hold a list")
        children = [parse_where(item) for item in items]
        return And(children) if key == "and" else Or(children)

    if "field" not in data or "operator" not in data:
        raise FilterError(f"Condition needs 'field' and 'operator': {data}")
    try:
        operator = Operator(data["operator"])
    except ValueError:
        raise FilterError(f"Unknown operator: {data['operator']}") from None
    value = data.get("value")
    _check_value_shape(operator, value)
    return Condition(field=data["field"], operator=operator, value=value)


_RANGE_OPERATORS = (Operator.LT, Operator.LTE, Operator.GT, Operator.GTE)


def _check_value_shape(operator: Operator, value: Any) -> None:
    if operator == Operator.BETWEEN:
        if not isinstance(value, list) or len(value) != 2:
            raise FilterError(f"'between' needs a [low, high] list, got {value!r}")
    elif operator == Operator.IN:
        if not isinstance(value, list):
            raise FilterError(f"'in' needs a list, got {value!r}")
    elif operator in _RANGE_OPERATORS:
        if value is None or isinstance(value, (list, dict)):
            raise FilterError(f"'{operator.value}' needs a single value, got {value!r}")


def dump_where(expr: Expression) -> str:
    return json.dumps(expr.to_dict())


# ── Evaluation ──────────────────────────────────────────────────────────────

def resolve_placeholders(value: Any, now: datetime) -> Any:
    """Replace time placeholders with concrete datetimes relative to `now`."""
    if isinstance(value, list):
        return [resolve_placeholders(v, now) for v in value]
    if value == START_OF_DAY:
        return datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
    if value == END_OF_DAY:
        return datetime.combine(now.date(), time.max, tzinfo=now.tzinfo)
    if value == START_OF_TIME:
        return datetime.min.replace(tzinfo=now.tzinfo)
    return value


def _coerce(expected: Any, actual: Any) -> Any:
    """Read ISO-8601 strings as datetimes when compared against one."""
    if isinstance(expected, list):
        return [_coerce(e, actual) for e in expected]
    if isinstance(actual, datetime) and isinstance(expected, str):
        try:
            parsed = datetime.fromisoformat(expected)
        except ValueError:
            raise FilterError(f"Not an ISO-8601 datetime: {expected!r}") from None
        if parsed.tzinfo is None and actual.tzinfo is not None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return expected


def _is_null(value: Any) -> bool:
    return value is None or value == []


def _check(operator: Operator, actual: Any, expected: Any) -> bool:
    if operator == Operator.IS_NULL:
        return actual is None
    if operator == Operator.IS_NOT_NULL:
        return actual is not None
    if actual is None:
        return False
    expected = _coerce(expected, actual)
    try:
        return _compare(operator, actual, expected)
    except (TypeError, ValueError) as e:
        raise FilterError(f"Cannot apply '{operator.value}' to {actual!r} and {expected!r}: {e}") from e


def _compare(operator: Operator, actual: Any, expected: Any) -> bool:
    if operator == Operator.EQ:
        return actual == expected
    if operator == Operator.NEQ:
        return actual != expected
    if operator == Operator.LT:
        return actual < expected
    if operator == Operator.LTE:
        return actual <= expected
    if operator == Operator.GT:
        return actual > expected
    if operator == Operator.GTE:
        return actual >= expected
    if operator == Operator.BETWEEN:
        low, high = expected
        return low <= actual <= high
    if operator == Operator.IN:
        return actual in expected
    raise FilterError(f"Unsupported operator: {operator}")


def _match_condition(cond: Condition, record: Dict[str, Any], now: datetime) -> bool:
    actual = record.get(cond.field)
    expected = resolve_placeholders(cond.value, now)

    # A list-valued field (e.g. the assignees of a card) matches if any member does
    if isinstance(actual, list):
        if cond.operator == Operator.IS_NULL:
            return _is_null(actual)
        if cond.operator == Operator.IS_NOT_NULL:
            return not _is_null(actual)
        return any(_check(cond.operator, a, expected) for a in actual)
    return _check(cond.operator, actual, expected)


def evaluate(expr: Expression, record: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    """Test a flattened record (field path -> value) against an expression."""
    if now is None:
        now = datetime.now(timezone.utc)
    if isinstance(expr, Condition):
        return _match_condition(expr, record, now)
    if isinstance(expr, And):
        return all(evaluate(item, record, now) for item in expr.items)
    if isinstance(expr, Or):
        return any(evaluate(item, record, now) for item in expr.items)
    raise FilterError(f"Not a filter expression: {expr!r}")
