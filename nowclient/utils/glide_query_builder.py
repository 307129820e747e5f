"""ServiceNow Encoded Query Builder.

This module implements a fluent builder for ServiceNow's encoded query
language. Calls are recorded as tokens in the order they are made and
``build()`` joins them without separators:

    query = (QueryBuilder()
        .field("active").equals("true")
        .and_()
        .field("priority").less_than_or_is(2)
        .field("sys_created_on").order_descending()
        .build())
    # "active=true^priority<=2ORDERBYDESCsys_created_on"

Operand handling:
- Every operation accepts a fixed set of operand kinds (text, number,
  date-time, sequence) and raises QueryTypeError for anything else
- Sequences are validated element-wise and joined with ","
- Date-times are rendered in UTC as "YYYY-MM-DD HH:MM:SS"
- Validation happens before a token is appended, so a failed call never
  changes the query
"""

from datetime import datetime
from enum import Enum
from typing import Any, FrozenSet, List, Optional, Sequence, Union

from nowclient.exceptions import (
    QueryEmptyError,
    QueryError,
    QueryMissingFieldError,
    QueryTypeError,
)
from nowclient.utils.config.constants import QUERY_COMPONENT
from nowclient.utils.logging import get_logger
from nowclient.utils.platform.servicenow.glide_helpers import (
    format_glide_datetime,
    format_glide_number,
)

logger = get_logger(QUERY_COMPONENT)

Scalar = Union[str, int, float]
Comparable = Union[str, int, float, datetime]


class GlideOperator(Enum):
    """ServiceNow encoded query operators."""
    # Basic operators
    EQUALS = "="
    NOT_EQUALS = "!="
    GREATER_THAN = ">"
    LESS_THAN = "<"
    GREATER_OR_EQUAL = ">="
    LESS_OR_EQUAL = "<="

    # String operators
    CONTAINS = "LIKE"
    NOT_CONTAINS = "NOTLIKE"
    STARTS_WITH = "STARTSWITH"
    ENDS_WITH = "ENDSWITH"

    # List operators
    IN = "IN"
    NOT_IN = "NOT IN"

    # Null operators
    IS_EMPTY = "ISEMPTY"
    IS_NOT_EMPTY = "ISNOTEMPTY"
    EMPTY_STRING = "EMPTYSTRING"

    # Special operators
    BETWEEN = "BETWEEN"
    ANYTHING = "ANYTHING"
    SAME_AS = "SAMEAS"
    DIFFERENT_FROM = "NSAMEAS"

    # Field comparison operators
    GT_FIELD = "GT_FIELD"
    GT_OR_EQUALS_FIELD = "GT_OR_EQUALS_FIELD"
    LT_FIELD = "LT_FIELD"
    LT_OR_EQUALS_FIELD = "LT_OR_EQUALS_FIELD"

    # Relative date operators
    RELATIVE_GT = "RELATIVEGT"
    RELATIVE_LT = "RELATIVELT"
    MORE_THAN = "MORETHAN"
    LESS_THAN_RELATIVE = "LESSTHAN"

    # Ordering
    ORDER_BY = "ORDERBY"
    ORDER_BY_DESC = "ORDERBYDESC"


class LogicalOperator(Enum):
    """Join markers between conditions."""
    AND = "^"
    OR = "^OR"
    NQ = "^NQ"


class OperandKind(Enum):
    """Kinds of values an operation can accept."""
    TEXT = "str"
    NUMBER = "number"
    DATETIME = "datetime"
    SEQUENCE = "sequence"


TEXT_ONLY: FrozenSet[OperandKind] = frozenset({OperandKind.TEXT})
TEXT_OR_NUMBER: FrozenSet[OperandKind] = frozenset({OperandKind.TEXT, OperandKind.NUMBER})
COMPARABLE: FrozenSet[OperandKind] = frozenset(
    {OperandKind.TEXT, OperandKind.NUMBER, OperandKind.DATETIME}
)
# A list/tuple whose elements are strings or numbers
LIST_OF_TEXT_OR_NUMBER: FrozenSet[OperandKind] = TEXT_OR_NUMBER | {OperandKind.SEQUENCE}

# Units accepted by the two-step MORETHAN/LESSTHAN conditions
RELATIVE_FIELD_UNITS = ("year", "month", "week", "day", "hour")


def operand_kind(value: Any) -> Optional[OperandKind]:
    """Classify a value, or return None for unsupported values.

    bool is rejected even though it subclasses int.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return OperandKind.TEXT
    if isinstance(value, (int, float)):
        return OperandKind.NUMBER
    if isinstance(value, datetime):
        return OperandKind.DATETIME
    if isinstance(value, (list, tuple)):
        return OperandKind.SEQUENCE
    return None


def _describe_kinds(kinds: FrozenSet[OperandKind]) -> str:
    ordered = [kind.value for kind in OperandKind if kind in kinds]
    return ", ".join(ordered)


def _type_name(value: Any) -> str:
    return type(value).__name__


class RelativeDateBuilder:
    """Second half of a MORETHAN/LESSTHAN condition.

    Returned by ``QueryBuilder.is_more_than`` and ``QueryBuilder.is_less_than``.
    The builder's active field is captured when it is created; ``before()``
    names the field it is compared against, appends the condition and hands
    back the parent builder. It can only be completed once.
    """

    def __init__(self, parent: "QueryBuilder", quantifier: str, n: Union[int, float], unit: str):
        self.parent = parent
        self.field = parent.current_field
        self.quantifier = quantifier.upper()
        self.n = n
        self.unit = unit
        self.completed = False

    def before(self, field: str) -> "QueryBuilder":
        """Complete the condition and return control to the parent builder.

        Args:
            field: Date field that must lie before the captured field

        Returns:
            The parent QueryBuilder

        Raises:
            QueryError: If the condition was already completed
            QueryMissingFieldError: If no field was active when the
                condition was started, or the builder has no active field now
            QueryTypeError: If field is not a string
        """
        if self.completed:
            raise QueryError("Relative date condition has already been completed.")
        self.parent._require_field(self.parent.current_field)

        operand = f"{self.field}@{self.unit}@before@{format_glide_number(self.n)}"
        self.parent._append_condition(
            self.field,
            field,
            GlideOperator(f"{self.quantifier}THAN").value,
            operand,
            TEXT_ONLY
        )
        self.completed = True
        return self.parent


class QueryBuilder:
    """Fluent builder for ServiceNow encoded queries.

    Choose a field with ``field()`` and then add conditions, join markers
    and ordering directives. The field stays active until ``field()`` is
    called again.

    Example:
        ```python
        query = (QueryBuilder()
            .field("state").not_equals(7)
            .and_()
            .field("priority").is_one_of([1, 2])
            .or_()
            .field("assigned_to").is_empty()
            .build())
        # "state!=7^priorityIN1,2^ORassigned_toISEMPTY"
        ```

    Not safe for concurrent use; give every thread its own builder.
    """

    def __init__(self):
        """Initialize an empty query."""
        self.query: List[str] = []
        self.current_field: str = ""

    def field(self, field_name: str) -> "QueryBuilder":
        """Set the field subsequent operations apply to."""
        self.current_field = field_name
        return self

    # Ordering

    def order_descending(self) -> "QueryBuilder":
        """Order results by the current field, descending."""
        self._require_field(self.current_field)
        self.query.append(GlideOperator.ORDER_BY_DESC.value + self.current_field)
        return self

    def order_ascending(self) -> "QueryBuilder":
        """Order results by the current field, ascending."""
        self._require_field(self.current_field)
        self.query.append(GlideOperator.ORDER_BY.value + self.current_field)
        return self

    # String conditions

    def starts_with(self, starts_with_str: str) -> "QueryBuilder":
        """Add a STARTSWITH condition."""
        return self._add_condition(GlideOperator.STARTS_WITH, starts_with_str, TEXT_ONLY)

    def ends_with(self, ends_with_str: str) -> "QueryBuilder":
        """Add an ENDSWITH condition."""
        return self._add_condition(GlideOperator.ENDS_WITH, ends_with_str, TEXT_ONLY)

    def contains(self, contains_str: str) -> "QueryBuilder":
        """Add a LIKE condition."""
        return self._add_condition(GlideOperator.CONTAINS, contains_str, TEXT_ONLY)

    def does_not_contain(self, not_contains_str: str) -> "QueryBuilder":
        """Add a NOTLIKE condition."""
        return self._add_condition(GlideOperator.NOT_CONTAINS, not_contains_str, TEXT_ONLY)

    # Operand-less conditions

    def is_empty(self) -> "QueryBuilder":
        """Add an ISEMPTY condition."""
        return self._add_condition(GlideOperator.IS_EMPTY)

    def is_not_empty(self) -> "QueryBuilder":
        """Add an ISNOTEMPTY condition."""
        return self._add_condition(GlideOperator.IS_NOT_EMPTY)

    def is_empty_string(self) -> "QueryBuilder":
        """Add an EMPTYSTRING condition."""
        return self._add_condition(GlideOperator.EMPTY_STRING)

    def is_anything(self) -> "QueryBuilder":
        """Add an ANYTHING condition."""
        return self._add_condition(GlideOperator.ANYTHING)

    # Equality and membership

    def equals(self, data: Union[Scalar, Sequence[Scalar]]) -> "QueryBuilder":
        """Add an equality condition.

        A string or number produces ``field=value``; a list or tuple of
        strings/numbers produces ``fieldINv1,v2``.

        Raises:
            QueryTypeError: For any other operand
        """
        return self._add_equality(data, GlideOperator.EQUALS, GlideOperator.IN)

    def not_equals(self, data: Union[Scalar, Sequence[Scalar]]) -> "QueryBuilder":
        """Add a non-equality condition (``!=`` or ``NOT IN`` for sequences)."""
        return self._add_equality(data, GlideOperator.NOT_EQUALS, GlideOperator.NOT_IN)

    def is_one_of(self, data: Sequence[Scalar]) -> "QueryBuilder":
        """Add an IN condition."""
        self._require_sequence(data)
        return self._add_condition(GlideOperator.IN, data, LIST_OF_TEXT_OR_NUMBER)

    def is_none_of(self, data: Sequence[Scalar]) -> "QueryBuilder":
        """Add a NOT IN condition."""
        self._require_sequence(data)
        return self._add_condition(GlideOperator.NOT_IN, data, LIST_OF_TEXT_OR_NUMBER)

    # Comparisons

    def greater_than(self, value: Comparable) -> "QueryBuilder":
        """Add a '>' condition."""
        return self._add_condition(GlideOperator.GREATER_THAN, value, COMPARABLE)

    def greater_than_or_is(self, value: Comparable) -> "QueryBuilder":
        """Add a '>=' condition."""
        return self._add_condition(GlideOperator.GREATER_OR_EQUAL, value, COMPARABLE)

    def less_than(self, value: Comparable) -> "QueryBuilder":
        """Add a '<' condition."""
        return self._add_condition(GlideOperator.LESS_THAN, value, COMPARABLE)

    def less_than_or_is(self, value: Comparable) -> "QueryBuilder":
        """Add a '<=' condition."""
        return self._add_condition(GlideOperator.LESS_OR_EQUAL, value, COMPARABLE)

    def between(self, start_value: Comparable, end_value: Comparable) -> "QueryBuilder":
        """Add a BETWEEN condition.

        Both values must be of the same kind: two numbers, two strings or
        two datetimes.

        Raises:
            QueryTypeError: If the kinds differ or are not supported
        """
        start_kind = operand_kind(start_value)
        end_kind = operand_kind(end_value)
        if start_kind != end_kind or start_kind not in COMPARABLE:
            raise QueryTypeError(
                f"Expected two values of the same type, one of: {_describe_kinds(COMPARABLE)}; "
                f"found start_value: {_type_name(start_value)}, end_value: {_type_name(end_value)}"
            )
        operand = f"{self._encode(start_value)}@{self._encode(end_value)}"
        return self._add_condition(GlideOperator.BETWEEN, operand, TEXT_ONLY)

    # Field to field comparisons

    def is_same_as(self, field: str) -> "QueryBuilder":
        """Add a SAMEAS condition against another field."""
        return self._add_condition(GlideOperator.SAME_AS, field, TEXT_ONLY)

    def is_not_same_as(self, field: str) -> "QueryBuilder":
        """Add an NSAMEAS condition against another field."""
        return self._add_condition(GlideOperator.DIFFERENT_FROM, field, TEXT_ONLY)

    def greater_than_field(self, field: str) -> "QueryBuilder":
        """Add a GT_FIELD condition."""
        return self._add_condition(GlideOperator.GT_FIELD, field, TEXT_ONLY)

    def greater_than_or_equal_to_field(self, field: str) -> "QueryBuilder":
        """Add a GT_OR_EQUALS_FIELD condition."""
        return self._add_condition(GlideOperator.GT_OR_EQUALS_FIELD, field, TEXT_ONLY)

    def less_than_field(self, field: str) -> "QueryBuilder":
        """Add an LT_FIELD condition."""
        return self._add_condition(GlideOperator.LT_FIELD, field, TEXT_ONLY)

    def less_than_or_equal_to_field(self, field: str) -> "QueryBuilder":
        """Add an LT_OR_EQUALS_FIELD condition."""
        return self._add_condition(GlideOperator.LT_OR_EQUALS_FIELD, field, TEXT_ONLY)

    # Relative dates

    def since(self, n: Union[int, float], unit: str) -> "QueryBuilder":
        """Add a RELATIVEGT condition: the field is within the last n units.

        Args:
            n: Number of units
            unit: Unit of time (year, month, hour, minute, ...)
        """
        self._validate_relative(n, unit)
        return self._add_condition(
            GlideOperator.RELATIVE_GT, f"@{unit}@ago@{format_glide_number(n)}", TEXT_ONLY
        )

    def not_since(self, n: Union[int, float], unit: str) -> "QueryBuilder":
        """Add a RELATIVELT condition: the field is older than n units."""
        self._validate_relative(n, unit)
        return self._add_condition(
            GlideOperator.RELATIVE_LT, f"@{unit}@ago@{format_glide_number(n)}", TEXT_ONLY
        )

    def is_more_than(self, n: Union[int, float], unit: str) -> RelativeDateBuilder:
        """Start a two-step MORETHAN condition.

        Example:
            builder.field("resolved_at").is_more_than(2, "day").before("opened_at")
            # "opened_atMORETHANresolved_at@day@before@2"

        Args:
            n: Number of units
            unit: One of year, month, week, day, hour

        Returns:
            RelativeDateBuilder whose ``before(field)`` returns this builder
        """
        self._validate_relative(n, unit, RELATIVE_FIELD_UNITS)
        return RelativeDateBuilder(self, "more", n, unit)

    def is_less_than(self, n: Union[int, float], unit: str) -> RelativeDateBuilder:
        """Start a two-step LESSTHAN condition (see ``is_more_than``)."""
        self._validate_relative(n, unit, RELATIVE_FIELD_UNITS)
        return RelativeDateBuilder(self, "less", n, unit)

    # Join markers

    def and_(self) -> "QueryBuilder":
        """Add an AND operator."""
        return self._add_logical_operator(LogicalOperator.AND)

    def or_(self) -> "QueryBuilder":
        """Add an OR operator."""
        return self._add_logical_operator(LogicalOperator.OR)

    def nq(self) -> "QueryBuilder":
        """Add a new query (NQ) operator."""
        return self._add_logical_operator(LogicalOperator.NQ)

    def build(self) -> str:
        """Build the encoded query string.

        Raises:
            QueryEmptyError: If nothing has been added to the query
        """
        if not self.query:
            raise QueryEmptyError("At least one condition is required in query.")

        encoded_query = "".join(self.query)
        logger.debug("glide_query_built",
            component=QUERY_COMPONENT,
            query=encoded_query,
            token_count=len(self.query)
        )
        return encoded_query

    def _add_logical_operator(self, operator: LogicalOperator) -> "QueryBuilder":
        self.query.append(operator.value)
        return self

    def _add_equality(self, data: Any, scalar_operator: GlideOperator,
                      sequence_operator: GlideOperator) -> "QueryBuilder":
        kind = operand_kind(data)
        if kind in TEXT_OR_NUMBER:
            return self._add_condition(scalar_operator, data, TEXT_OR_NUMBER)
        if kind == OperandKind.SEQUENCE:
            return self._add_condition(sequence_operator, data, LIST_OF_TEXT_OR_NUMBER)

        raise QueryTypeError(f"Expected str, number or list type, found: {_type_name(data)}")

    def _add_condition(self, operator: GlideOperator, operand: Any = "",
                       kinds: FrozenSet[OperandKind] = TEXT_ONLY) -> "QueryBuilder":
        """Validate and append a condition on the current field."""
        return self._append_condition(self.current_field, self.current_field,
                                      operator.value, operand, kinds)

    def _append_condition(self, required_field: str, left: Any, operator: str,
                          operand: Any, kinds: FrozenSet[OperandKind]) -> "QueryBuilder":
        """Shared append routine: every check runs before the query changes.

        Args:
            required_field: Field that must be set for the condition
            left: Text placed before the operator (normally the field itself)
            operator: Operator tag
            operand: Scalar operand or list/tuple of scalars
            kinds: Operand kinds accepted by the operation
        """
        self._require_field(required_field)
        self._validate_kind(left, TEXT_ONLY)

        if operand_kind(operand) == OperandKind.SEQUENCE and OperandKind.SEQUENCE in kinds:
            element_kinds = kinds - {OperandKind.SEQUENCE}
            for value in operand:
                self._validate_kind(value, element_kinds)
            encoded = ",".join(self._encode(value) for value in operand)
        else:
            self._validate_kind(operand, kinds)
            encoded = self._encode(operand)

        self.query.append(f"{left}{operator}{encoded}")
        return self

    def _require_field(self, field: str):
        if not field:
            raise QueryMissingFieldError("Conditions requires a field.")

    def _require_sequence(self, data: Any):
        if operand_kind(data) != OperandKind.SEQUENCE:
            raise QueryTypeError(f"Expected list type, found: {_type_name(data)}")

    def _validate_kind(self, value: Any, kinds: FrozenSet[OperandKind]):
        """Raise QueryTypeError unless value is one of the accepted kinds."""
        if operand_kind(value) in kinds:
            return

        if len(kinds) > 1:
            message = f"Invalid type passed. Expected one of: {_describe_kinds(kinds)}"
        else:
            message = f"Invalid type passed. Expected: {_describe_kinds(kinds)}"
        raise QueryTypeError(f"{message}; found: {_type_name(value)}")

    def _validate_relative(self, n: Any, unit: Any, units: Optional[Sequence[str]] = None):
        if operand_kind(n) != OperandKind.NUMBER or operand_kind(unit) != OperandKind.TEXT:
            raise QueryTypeError(
                f"Expected (number, str); got ({_type_name(n)}, {_type_name(unit)})"
            )
        if units is not None and unit not in units:
            raise QueryTypeError(f"Expected unit to be one of: {', '.join(units)}; got: {unit}")

    def _encode(self, value: Any) -> str:
        kind = operand_kind(value)
        if kind == OperandKind.DATETIME:
            return format_glide_datetime(value)
        if kind == OperandKind.NUMBER:
            return format_glide_number(value)
        return value
