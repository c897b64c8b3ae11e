"""Document schema descriptors and document construction helpers."""
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

Document = dict[str, Any]

DEFAULT_ID_FIELD = "_id"


def get_document(
    properties: Iterable[str],
    data: Mapping[str, Any],
    defaults: Mapping[str, Any] | None = None,
) -> Document:
    """
    Build a document restricted to the declared properties.

    A value present in ``data`` wins over its default, even when it is None.
    Properties found in neither mapping are left out.
    """
    defaults = defaults or {}
    document: Document = {}
    for prop in properties:
        if prop in data:
            document[prop] = data[prop]
        elif prop in defaults:
            document[prop] = defaults[prop]
    return document


def get_document_from_row(properties: Sequence[str], row: Sequence[Any]) -> Document:
    """Map positional row values onto property names."""
    return {prop: value for prop, value in zip(properties, row)}


def _identity_factory(data: Mapping[str, Any]) -> Document:
    return dict(data)


@dataclass(frozen=True)
class DocumentSchema:
    """
    Immutable description of one collection (or table).

    Attributes:
        name: Collection/table name
        alias: Short name, used as id prefix by schema factories
        id: Identity field name
        generated_id: The backend assigns the identity on insert
        unique: Composite uniqueness indexes, one tuple of fields each
        get_document: Factory turning partial values into a full document
        to_string: Optional human-readable renderer
        validation: Backend validation descriptor (JSON schema with ``properties``)
        properties: Declared fields; taken from ``validation`` when omitted
    """

    name: str
    alias: str = ""
    id: str = DEFAULT_ID_FIELD
    generated_id: bool = False
    unique: Sequence[Sequence[str]] = ()
    get_document: Callable[[Mapping[str, Any]], Document] = _identity_factory
    to_string: Callable[[Document], str] | None = None
    validation: Mapping[str, Any] | None = None
    properties: Sequence[str] = field(default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, "unique", tuple(tuple(index) for index in self.unique))
        properties = tuple(self.properties) or tuple(self.validation_properties)
        if properties and self.id not in properties:
            properties = (self.id, *properties)
        object.__setattr__(self, "properties", properties)

    @property
    def validation_properties(self) -> Mapping[str, Any]:
        if not self.validation:
            return {}
        shape = self.validation.get("schema", self.validation)
        return shape.get("properties", {}) or {}

    def property_type(self, name: str) -> str | None:
        spec = self.validation_properties.get(name) or {}
        prop_type = spec.get("type")
        if isinstance(prop_type, list):
            prop_type = next((t for t in prop_type if t != "null"), None)
        return prop_type

    def build(self, values: Mapping[str, Any]) -> Document:
        return self.get_document(values)
