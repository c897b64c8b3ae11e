"""
Compilation of filter trees into parameterized statements.

Every condition compiles to one parenthesized predicate bound to a freshly
generated variable name; groups join their non-empty children with AND/OR.
The statement uses ``:name`` placeholders, so it can be handed to
SQLAlchemy's ``text()`` together with ``FilterCriteria.variables``.

Example:
    >>> criteria = Filter.to_criteria(
    ...     Filter.and_(Condition.eq("city", "Paris"), Condition.gre("places", 5))
    ... )
    >>> criteria.statement
    '((city = :v1) AND (places >= :v2))'
"""
import re
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import TextClause, bindparam, text

from doccrud.core.exceptions import UnsupportedFilterOperationError
from doccrud.core.ids import generate_var_name
from doccrud.schemas.filtering import (
    FilterCondition,
    FilterCriteria,
    FilterGroup,
    FilterItem,
    FilterLevel,
    FilterOperator,
    GroupOperation,
)

FieldRenderer = Callable[[str], str]

FIELD_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")

OPERANDS: dict[FilterOperator, Callable[[str, str], str]] = {
    FilterOperator.NEQ: lambda field, var: f"({field} != :{var})",
    FilterOperator.EQ: lambda field, var: f"({field} = :{var})",
    FilterOperator.GR: lambda field, var: f"({field} > :{var})",
    FilterOperator.GRE: lambda field, var: f"({field} >= :{var})",
    FilterOperator.LS: lambda field, var: f"({field} < :{var})",
    FilterOperator.LSE: lambda field, var: f"({field} <= :{var})",
    FilterOperator.LIKE: lambda field, var: f"(LOWER({field}) LIKE LOWER(:{var}))",
    FilterOperator.IN: lambda field, var: f"({field} IN :{var})",
    FilterOperator.EMPTY: lambda field, var: f"({field} IS NULL)",
}

_filter_adapter: TypeAdapter[FilterCondition | FilterGroup] = TypeAdapter(FilterItem)


def validate_field_name(name: str) -> str:
    if not isinstance(name, str) or not FIELD_NAME_PATTERN.match(name):
        raise UnsupportedFilterOperationError(details={"field": name})
    return name


def plain_field(name: str) -> str:
    return validate_field_name(name)


def parse_filter(literal: FilterCondition | FilterGroup | Mapping[str, Any]) -> FilterCondition | FilterGroup:
    """Validate a filter literal; unrecognizable shapes are unsupported operations."""
    if isinstance(literal, (FilterCondition, FilterGroup)):
        return literal
    try:
        return _filter_adapter.validate_python(dict(literal))
    except (ValidationError, TypeError, ValueError) as exc:
        raise UnsupportedFilterOperationError(details={"filter": repr(literal)}) from exc


def compile_condition(
    condition: FilterCondition | Mapping[str, Any],
    field_renderer: FieldRenderer | None = None,
) -> FilterCriteria:
    condition = parse_filter(condition)
    if condition.level != FilterLevel.CONDITION.value:
        raise UnsupportedFilterOperationError(details={"level": condition.level})
    try:
        operation = FilterOperator(condition.operation)
    except ValueError as exc:
        raise UnsupportedFilterOperationError(details={"operation": condition.operation}) from exc

    field = (field_renderer or plain_field)(condition.field)
    if operation is FilterOperator.EMPTY:
        return FilterCriteria(statement=OPERANDS[operation](field, ""))
    if operation is FilterOperator.IN and not isinstance(condition.value, (list, tuple, set, frozenset)):
        raise UnsupportedFilterOperationError(
            details={"operation": condition.operation, "value": repr(condition.value)}
        )

    var_name = generate_var_name()
    return FilterCriteria(
        statement=OPERANDS[operation](field, var_name),
        variables={var_name: condition.value},
    )


def compile_group(
    group: FilterGroup | Mapping[str, Any] | None,
    field_renderer: FieldRenderer | None = None,
) -> FilterCriteria:
    if group is None:
        return FilterCriteria()
    group = parse_filter(group)
    if group.level != FilterLevel.GROUP.value:
        raise UnsupportedFilterOperationError(details={"level": group.level})

    statements: list[str] = []
    variables: dict[str, Any] = {}
    for item in group.items:
        if item.level == FilterLevel.GROUP.value:
            item_criteria = compile_group(item, field_renderer)
        elif item.level == FilterLevel.CONDITION.value:
            item_criteria = compile_condition(item, field_renderer)
        else:
            raise UnsupportedFilterOperationError(details={"level": item.level})
        if not item_criteria.statement.strip():
            continue
        statements.append(item_criteria.statement)
        variables.update(item_criteria.variables)

    if not statements:
        return FilterCriteria()
    joined = f" {group.operation.value} ".join(statements)
    return FilterCriteria(statement=f"({joined})", variables=variables)


def compile_filter(
    literal: FilterCondition | FilterGroup | Mapping[str, Any] | None,
    field_renderer: FieldRenderer | None = None,
) -> FilterCriteria:
    """Compile either variant of the filter tree."""
    if literal is None:
        return FilterCriteria()
    item = parse_filter(literal)
    if item.level == FilterLevel.GROUP.value:
        return compile_group(item, field_renderer)
    return compile_condition(item, field_renderer)


def props_to_criteria(
    props: Mapping[str, Any],
    join: GroupOperation | str = GroupOperation.AND,
    field_renderer: FieldRenderer | None = None,
) -> FilterCriteria:
    """Equality criteria over every prop, joined by AND or OR. None compares as NULL."""
    operation = GroupOperation(join.upper() if isinstance(join, str) else join)
    items = [
        Condition.empty(name) if value is None else Condition.eq(name, value)
        for name, value in props.items()
    ]
    return compile_group(FilterGroup(operation=operation, items=tuple(items)), field_renderer)


def to_text_clause(criteria: FilterCriteria) -> TextClause:
    """SQLAlchemy text clause for a compiled criteria; sequence values expand for IN."""
    params = []
    for name, value in criteria.variables.items():
        if isinstance(value, (list, tuple, set, frozenset)):
            params.append(bindparam(name, list(value), expanding=True))
        else:
            params.append(bindparam(name, value))
    return text(criteria.statement).bindparams(*params)


class Condition:
    """Constructors for filter conditions."""

    @staticmethod
    def eq(field: str, value: Any) -> FilterCondition:
        return FilterCondition(field=field, operation=FilterOperator.EQ.value, value=value)

    @staticmethod
    def noteq(field: str, value: Any) -> FilterCondition:
        return FilterCondition(field=field, operation=FilterOperator.NEQ.value, value=value)

    @staticmethod
    def gr(field: str, value: Any) -> FilterCondition:
        return FilterCondition(field=field, operation=FilterOperator.GR.value, value=value)

    @staticmethod
    def gre(field: str, value: Any) -> FilterCondition:
        return FilterCondition(field=field, operation=FilterOperator.GRE.value, value=value)

    @staticmethod
    def ls(field: str, value: Any) -> FilterCondition:
        return FilterCondition(field=field, operation=FilterOperator.LS.value, value=value)

    @staticmethod
    def lse(field: str, value: Any) -> FilterCondition:
        return FilterCondition(field=field, operation=FilterOperator.LSE.value, value=value)

    @staticmethod
    def like(field: str, value: Any) -> FilterCondition:
        return FilterCondition(field=field, operation=FilterOperator.LIKE.value, value=value)

    @staticmethod
    def in_(field: str, value: Any) -> FilterCondition:
        return FilterCondition(field=field, operation=FilterOperator.IN.value, value=value)

    @staticmethod
    def empty(field: str) -> FilterCondition:
        return FilterCondition(field=field, operation=FilterOperator.EMPTY.value)

    @staticmethod
    def to_criteria(condition: FilterCondition, field_renderer: FieldRenderer | None = None) -> FilterCriteria:
        return compile_condition(condition, field_renderer)


class Filter:
    """Constructors for filter groups. None items are dropped."""

    @staticmethod
    def and_(*items: FilterCondition | FilterGroup | None) -> FilterGroup:
        return FilterGroup(operation=GroupOperation.AND, items=tuple(i for i in items if i is not None))

    @staticmethod
    def or_(*items: FilterCondition | FilterGroup | None) -> FilterGroup:
        return FilterGroup(operation=GroupOperation.OR, items=tuple(i for i in items if i is not None))

    @staticmethod
    def to_criteria(group: FilterGroup | None, field_renderer: FieldRenderer | None = None) -> FilterCriteria:
        return compile_group(group, field_renderer)
