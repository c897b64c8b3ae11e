from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from doccrud.core.exceptions import UnsupportedFilterOperationError
from doccrud.filters.criteria import validate_field_name
from doccrud.schemas.filtering import Group, GroupCondition


def _parse_condition(item: GroupCondition | Mapping[str, Any]) -> GroupCondition:
    if isinstance(item, GroupCondition):
        return item
    try:
        return GroupCondition.model_validate(item)
    except (ValidationError, TypeError, ValueError) as exc:
        raise UnsupportedFilterOperationError(details={"group": repr(item)}) from exc


def parse_group(literal: Iterable[GroupCondition | Mapping[str, Any]]) -> Group:
    """Validate a group-by literal. Aliases double as result column labels."""
    group = tuple(_parse_condition(item) for item in literal)
    if not group:
        raise UnsupportedFilterOperationError(details={"group": "empty"})
    labels: set[str] = set()
    for condition in group:
        validate_field_name(condition.field)
        label = condition.label
        if "." in validate_field_name(label) or label in labels:
            raise UnsupportedFilterOperationError(details={"alias": label})
        labels.add(label)
    return group


def grouping_keys(group: Group) -> list[GroupCondition]:
    return [condition for condition in group if condition.aggregate is None]
