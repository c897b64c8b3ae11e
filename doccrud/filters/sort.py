"""Chainable sort builder; every field may appear only once."""
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from doccrud.core.exceptions import DuplicatedSortingConditionError, UnsupportedFilterOperationError
from doccrud.schemas.filtering import Sort, SortCondition, SortOrder


class Sorting:
    """
    Accumulates sort conditions in call order.

    Example:
        >>> sort_by().desc("places").asc("name").to_criteria()
        (SortCondition(field='places', order=<SortOrder.DESC: 'desc'>), SortCondition(field='name', order=<SortOrder.ASC: 'asc'>))
    """

    def __init__(self) -> None:
        self._sort: list[SortCondition] = []
        self._fields: set[str] = set()

    def _add_conditions(self, order: SortOrder, fields: Iterable[str]) -> "Sorting":
        for field in fields:
            if field in self._fields:
                raise DuplicatedSortingConditionError(details={"field": field})
            self._sort.append(SortCondition(field=field, order=order))
            self._fields.add(field)
        return self

    def asc(self, *fields: str) -> "Sorting":
        return self._add_conditions(SortOrder.ASC, fields)

    def desc(self, *fields: str) -> "Sorting":
        return self._add_conditions(SortOrder.DESC, fields)

    def to_criteria(self) -> Sort:
        return tuple(self._sort)


def sort_by() -> Sorting:
    return Sorting()


def parse_sort(literal: Iterable[SortCondition | Mapping[str, Any]] | None) -> Sort | None:
    """Validate a sort literal, rejecting repeated fields."""
    if literal is None:
        return None
    builder = Sorting()
    for item in literal:
        if isinstance(item, SortCondition):
            condition = item
        else:
            try:
                condition = SortCondition.model_validate(item)
            except (ValidationError, TypeError, ValueError) as exc:
                raise UnsupportedFilterOperationError(details={"sort": repr(item)}) from exc
        builder._add_conditions(condition.order, [condition.field])
    return builder.to_criteria()
