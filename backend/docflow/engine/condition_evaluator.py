"""Condition Evaluator - Safe evaluation of field predicates against documents"""
import math
import re
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from ..domain.models import Condition, Document, Workflow
from ..domain.enums import ConditionOperator
from ..utils.logger import get_logger

logger = get_logger(__name__)


class _Missing:
    """Marker for a dot-path that does not exist in the document"""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()

_OPERATORS = {op.value for op in ConditionOperator}

_EXPRESSION_RE = re.compile(
    r"^([\w$]+(?:\.[\w$]+)*)\s+(eq|ne|gt|lt|gte|lte|contains|not_contains|starts_with|ends_with)\s+(.+)$"
)

DocumentLike = Union[Document, Mapping[str, Any]]


def _to_number(value: Any) -> Optional[float]:
    """Numeric view of a value, None when it is not numeric-like"""
    if isinstance(value, bool) or value is None or value is MISSING:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            number = float(value.strip())
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def _is_bool_like(value: Any) -> bool:
    return isinstance(value, bool) or (isinstance(value, str) and value.strip().lower() in ("true", "false"))


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "false"):
            return lowered == "true"
    return bool(value)


def _normalize(value: Any) -> str:
    return str(value).strip().lower()


class ConditionEvaluator:
    """
    Evaluate field conditions safely

    Pure functions over their inputs: no I/O and no eval(). Malformed input
    degrades to a logged mismatch and never raises.
    """

    # =========================================================================
    # Public API
    # =========================================================================

    def evaluate_all(self, conditions: Sequence[Condition], document: DocumentLike) -> bool:
        """
        Evaluate a conjunction of conditions

        Args:
            conditions: Conditions to check (empty means always true)
            document: Document or a prepared field mapping

        Returns:
            True if every condition holds
        """
        if not conditions:
            return True

        context = self._context(document)
        for condition in conditions:
            field_value = self.get_field_value(context, condition.path)
            if not self.evaluate_one(field_value, condition.operator, condition.value, condition.multiple_values):
                return False
        return True

    def evaluate_one(
        self,
        field_value: Any,
        operator: str,
        raw_value: Optional[str],
        multiple_values: Optional[Iterable[Any]] = None
    ) -> bool:
        """
        Evaluate a single predicate

        Args:
            field_value: Live value read from the document (MISSING if absent)
            operator: Operator name
            raw_value: Literal comparison value as typed in the definition
            multiple_values: Candidate values for in / not_in

        Returns:
            True if the predicate holds
        """
        op = str(operator or "").strip().lower()
        if op not in _OPERATORS:
            logger.warning(f"Unknown condition operator: {operator}")
            return False

        try:
            return self._apply(field_value, op, "" if raw_value is None else str(raw_value), multiple_values)
        except Exception as e:
            logger.warning(f"Condition evaluation failed for operator {op}: {e}")
            return False

    def get_field_value(self, document: DocumentLike, field_path: str) -> Any:
        """
        Get field value using dot notation

        Example: "meta.amount" -> document["meta"]["amount"]
        Returns MISSING when any segment is absent.
        """
        value: Any = self._context(document)
        for part in field_path.split("."):
            if isinstance(value, Mapping) and part in value:
                value = value[part]
            else:
                return MISSING
        return value

    def evaluate_workflow_assignment(self, workflow: Workflow, document: DocumentLike) -> bool:
        """A workflow may be auto-assigned when it has steps and its trigger conditions hold"""
        if not workflow.steps:
            return False
        return self.evaluate_all(workflow.trigger_conditions, document)

    def evaluate_expression(self, expression: str, document: DocumentLike) -> bool:
        """
        Evaluate a compact "<path> <operator> <value>" expression

        Example: "amount gt 10000"
        """
        match = _EXPRESSION_RE.match(expression.strip())
        if not match:
            logger.warning(f"Invalid condition expression: {expression}")
            return False

        field, operator, value = match.groups()
        return self.evaluate_one(self.get_field_value(document, field), operator, value.strip())

    # =========================================================================
    # Internals
    # =========================================================================

    def _context(self, document: DocumentLike) -> Mapping[str, Any]:
        if isinstance(document, Document):
            return document.to_context()
        return document

    def _apply(
        self,
        field_value: Any,
        op: str,
        raw_value: str,
        multiple_values: Optional[Iterable[Any]]
    ) -> bool:
        if op == ConditionOperator.IS_EMPTY.value:
            return self._is_empty(field_value)
        if op == ConditionOperator.IS_NOT_EMPTY.value:
            return not self._is_empty(field_value)
        if op == ConditionOperator.IS_NULL.value:
            return field_value is MISSING or field_value is None
        if op == ConditionOperator.IS_NOT_NULL.value:
            return not (field_value is MISSING or field_value is None)

        if op == ConditionOperator.IN.value:
            return self._in(field_value, multiple_values)
        if op == ConditionOperator.NOT_IN.value:
            return not self._in(field_value, multiple_values)

        if op == ConditionOperator.EQ.value:
            return self._equals(field_value, raw_value)
        if op == ConditionOperator.NE.value:
            return not self._equals(field_value, raw_value)

        if op in ("gt", "lt", "gte", "lte"):
            return self._compare_numeric(field_value, raw_value, op)

        if op == ConditionOperator.CONTAINS.value:
            return self._contains(field_value, raw_value)
        if op == ConditionOperator.NOT_CONTAINS.value:
            return not self._contains(field_value, raw_value)

        if field_value is MISSING or field_value is None or isinstance(field_value, (list, dict)):
            return False
        if op == ConditionOperator.STARTS_WITH.value:
            return _normalize(field_value).startswith(raw_value.lower())
        if op == ConditionOperator.ENDS_WITH.value:
            return _normalize(field_value).endswith(raw_value.lower())

        return False

    def _is_empty(self, value: Any) -> bool:
        if value is MISSING or value is None:
            return True
        if isinstance(value, str):
            return value.strip() == ""
        if isinstance(value, (list, tuple, dict, set)):
            return len(value) == 0
        return False

    def _equals(self, field_value: Any, expected: Any) -> bool:
        """Coerced equality: numeric, then boolean, then case-normalized string"""
        if field_value is MISSING:
            return False
        if isinstance(field_value, list):
            return any(self._equals(item, expected) for item in field_value)

        field_num = _to_number(field_value)
        expected_num = _to_number(expected)
        if field_num is not None or expected_num is not None:
            if field_num is None or expected_num is None:
                return False
            return field_num == expected_num

        if _is_bool_like(field_value) or _is_bool_like(expected):
            return _to_bool(field_value) == _to_bool(expected)

        if field_value is None:
            return expected in (None, "")
        return _normalize(field_value) == _normalize(expected)

    def _in(self, field_value: Any, multiple_values: Optional[Iterable[Any]]) -> bool:
        if field_value is MISSING:
            return False
        return any(self._equals(field_value, candidate) for candidate in (multiple_values or []))

    def _compare_numeric(self, field_value: Any, raw_value: str, op: str) -> bool:
        a = _to_number(field_value)
        b = _to_number(raw_value)
        if a is None or b is None:
            return False
        if op == "gt":
            return a > b
        if op == "lt":
            return a < b
        if op == "gte":
            return a >= b
        return a <= b

    def _contains(self, field_value: Any, raw_value: str) -> bool:
        if field_value is MISSING or field_value is None:
            return False
        if isinstance(field_value, (list, tuple, set)):
            return any(self._equals(item, raw_value) for item in field_value)
        if isinstance(field_value, dict):
            return raw_value in field_value
        return raw_value.lower() in _normalize(field_value)

