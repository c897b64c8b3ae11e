"""
Wire-level literal shapes for filters, sorting and grouping.

A filter is a condition ``{"field", "operation", "value"}`` or a group
``{"operation": "AND"|"OR", "items": [...]}``; ``level`` ("c" or "g") tags
the variant and is inferred from the shape when a literal omits it.
"""
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, field_validator


class FilterLevel(str, Enum):
    CONDITION = "c"
    GROUP = "g"


class FilterOperator(str, Enum):
    EQ = "="
    NEQ = "!="
    GR = ">"
    GRE = ">="
    LS = "<"
    LSE = "<="
    LIKE = "like"
    IN = "in"
    EMPTY = "empty"


class GroupOperation(str, Enum):
    AND = "AND"
    OR = "OR"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class Aggregate(str, Enum):
    COUNT = "COUNT"
    MAX = "MAX"
    MIN = "MIN"
    SUM = "SUM"
    AVG = "AVG"


class FilterCondition(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: Literal["c"] = "c"
    field: str
    # Kept as a plain code so unknown operations reach the compiler
    operation: str
    value: Any = None


def _filter_level(value: Any) -> str | None:
    if isinstance(value, dict):
        level = value.get("level")
        if level is None:
            if "items" in value:
                return FilterLevel.GROUP.value
            if "field" in value:
                return FilterLevel.CONDITION.value
        return level
    return getattr(value, "level", None)


FilterItem = Annotated[
    Union[
        Annotated[FilterCondition, Tag(FilterLevel.CONDITION.value)],
        Annotated["FilterGroup", Tag(FilterLevel.GROUP.value)],
    ],
    Discriminator(_filter_level),
]


class FilterGroup(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: Literal["g"] = "g"
    operation: GroupOperation = GroupOperation.AND
    items: tuple[FilterItem, ...] = ()

    @field_validator("operation", mode="before")
    @classmethod
    def _upper_operation(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


FilterGroup.model_rebuild()


class FilterCriteria(BaseModel):
    """Parameterized statement plus its bind variables."""
    statement: str = ""
    variables: dict[str, Any] = Field(default_factory=dict)


class SortCondition(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    order: SortOrder = SortOrder.ASC

    @field_validator("order", mode="before")
    @classmethod
    def _lower_order(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value


class GroupCondition(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    alias: str | None = None
    aggregate: Aggregate | None = None

    @field_validator("aggregate", mode="before")
    @classmethod
    def _upper_aggregate(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @property
    def label(self) -> str:
        return self.alias or self.field


Sort = tuple[SortCondition, ...]
Group = tuple[GroupCondition, ...]
