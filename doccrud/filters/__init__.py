"""Filter, sort and group criteria."""
from doccrud.filters.criteria import (
    Condition,
    Filter,
    compile_condition,
    compile_filter,
    compile_group,
    parse_filter,
    props_to_criteria,
)
from doccrud.filters.group import parse_group
from doccrud.filters.sort import Sorting, parse_sort, sort_by

__all__ = [
    "Condition",
    "Filter",
    "Sorting",
    "compile_condition",
    "compile_filter",
    "compile_group",
    "parse_filter",
    "parse_group",
    "parse_sort",
    "props_to_criteria",
    "sort_by",
]
