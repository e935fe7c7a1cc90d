"""
Form field model and value normalization.

Raw form values arrive in many shapes (strings, option ids, option records,
lists of either). They are resolved here, once, into a small set of tagged
variants so that prompt composition never has to guess.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

ARRAY_COMPONENTS = frozenset({
    "checkbox-list",
    "radio",
    "toggle-group",
    "tag-input",
    "list-input",
})

PARAMETER_SECTIONS = frozenset({"body", "extra"})

# Form field names whose API parameter name differs
FIELD_TO_API = {
    "responseFormat": "output_format",
    "aspectRatio": "aspect_ratio",
    "safetyTolerance": "safety_tolerance",
    "promptUpsampling": "prompt_upsampling",
}

DEFAULT_ORDER = 999

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def humanize(text: str) -> str:
    """Turn an identifier like 'targetAudience' or 'tone_of_voice' into 'Target Audience'."""
    if not text:
        return text
    if " " in text and text[0].isupper():
        return text
    words = _CAMEL_BOUNDARY.sub(" ", text).replace("_", " ").replace("-", " ").split()
    return " ".join(w[:1].upper() + w[1:] for w in words)


@dataclass
class FieldOption:
    """A selectable option of a field."""

    id: str
    label: Optional[str] = None
    value: Any = None
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FieldOption":
        option_id = data.get("id", data.get("value", data.get("label")))
        return cls(
            id=str(option_id),
            label=data.get("label"),
            value=data.get("value"),
            description=data.get("description") or None,
        )

    def matches(self, raw: Any) -> bool:
        return raw is not None and (raw == self.id or (self.value is not None and raw == self.value))


@dataclass
class FieldSpec:
    """
    Description of one form field.

    Only the attributes that affect prompt composition and parameter
    extraction are modeled.
    """

    id: str
    name: str
    label: Optional[str] = None
    component: str = "text-input"
    order: Optional[int] = None
    section_id: Optional[str] = None
    options: List[FieldOption] = field(default_factory=list)
    multiple: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FieldSpec":
        """Build a FieldSpec from a schema field record (camelCase keys)."""
        metadata = data.get("metadata") or {}
        multiple = bool(
            data.get("multiple")
            or metadata.get("allowMultiselect")
            or data.get("selectionType") == "multiple"
            or data.get("selectionMode") == "multiple"
            or data.get("mode") == "multiple"
        )
        name = data.get("name") or data.get("id")
        return cls(
            id=str(data.get("id") or name),
            name=str(name),
            label=data.get("label"),
            component=data.get("component") or "text-input",
            order=data.get("order"),
            section_id=data.get("sectionId") or data.get("section_id"),
            options=[FieldOption.from_dict(o) for o in data.get("options") or []],
            multiple=multiple,
        )

    @property
    def sort_key(self) -> int:
        return DEFAULT_ORDER if self.order is None else self.order

    @property
    def segment_label(self) -> str:
        return humanize(self.name or self.id)

    @property
    def display_label(self) -> str:
        return self.label or humanize(self.name)

    @property
    def is_array_like(self) -> bool:
        return self.component in ARRAY_COMPONENTS or self.multiple

    @property
    def is_language_field(self) -> bool:
        return "language" in self.name.lower() or self.name == "lang"

    @property
    def is_primary_text(self) -> bool:
        return self.name == "userPrompt" or self.id == "user-prompt"

    @property
    def is_prompt_field(self) -> bool:
        return self.id == "prompt" or self.name == "prompt"

    @property
    def is_parameter(self) -> bool:
        return self.section_id in PARAMETER_SECTIONS

    def find_option(self, raw: Any) -> Optional[FieldOption]:
        for option in self.options:
            if option.matches(raw):
                return option
        return None


@dataclass(frozen=True)
class ScalarValue:
    """Plain text or number."""

    value: Any


@dataclass(frozen=True)
class OptionValue:
    """A resolved option record."""

    id: Optional[str]
    label: Optional[str] = None
    value: Any = None
    description: Optional[str] = None

    @property
    def text(self) -> str:
        if self.label:
            return self.label
        if self.id:
            return self.id
        return "" if self.value is None else str(self.value)


@dataclass(frozen=True)
class ArrayValue:
    """A list of scalars or options."""

    items: Tuple[Union[ScalarValue, OptionValue], ...]


FieldValue = Union[ScalarValue, OptionValue, ArrayValue]


def _is_empty(raw: Any) -> bool:
    if raw is None:
        return True
    if isinstance(raw, str):
        return raw.strip() == ""
    if isinstance(raw, (list, tuple, dict)):
        return len(raw) == 0
    return False


def _option_from_record(record: Mapping[str, Any]) -> OptionValue:
    record_id = record.get("id")
    return OptionValue(
        id=None if record_id is None else str(record_id),
        label=record.get("label"),
        value=record.get("value"),
        description=record.get("description") or None,
    )


def _resolve_item(spec: FieldSpec, raw: Any) -> Union[ScalarValue, OptionValue]:
    if isinstance(raw, Mapping):
        return _option_from_record(raw)
    option = spec.find_option(raw)
    if option is not None:
        return OptionValue(
            id=option.id,
            label=option.label,
            value=option.value,
            description=option.description,
        )
    return ScalarValue(raw)


def normalize_value(spec: FieldSpec, raw: Any) -> Optional[FieldValue]:
    """
    Resolve a raw form value into a tagged variant.

    Args:
        spec: The field the value belongs to
        raw: Value as submitted by the form

    Returns:
        The normalized value, or None when the value is empty
    """
    if isinstance(raw, (ScalarValue, OptionValue, ArrayValue)):
        return raw
    if _is_empty(raw):
        return None
    if isinstance(raw, (list, tuple)):
        items = tuple(_resolve_item(spec, item) for item in raw if not _is_empty(item))
        return ArrayValue(items) if items else None
    return _resolve_item(spec, raw)


def resolve_option_label(spec: FieldSpec, raw: Any) -> Tuple[str, Optional[str]]:
    """
    Resolve a select value into its display label and description.

    Falls back to the raw value when no option matches.
    """
    value = normalize_value(spec, raw)
    if isinstance(value, OptionValue):
        return value.text, value.description
    if isinstance(value, ScalarValue):
        return str(value.value), None
    return "", None


def lookup_raw(values: Mapping[str, Any], spec: FieldSpec) -> Any:
    """Find a field's value by name, falling back to its id."""
    if spec.name in values:
        return values[spec.name]
    return values.get(spec.id)


def serialize_for_api(spec: FieldSpec, raw: Any) -> Any:
    """Reduce option records to the plain values the backend expects."""
    label_first = spec.component == "list-input"

    def _reduce(record: Mapping[str, Any]) -> Any:
        keys = ("label", "id", "value") if label_first else ("id", "value", "label")
        for key in keys:
            if record.get(key) is not None:
                return record[key]
        return None

    if isinstance(raw, (list, tuple)):
        return [_reduce(item) if isinstance(item, Mapping) else item for item in raw]
    if isinstance(raw, Mapping):
        return _reduce(raw)
    return raw


@dataclass
class FormParameters:
    """Request parameters routed out of the form."""

    body: Dict[str, Any] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)


def extract_parameters(fields: Sequence[FieldSpec], values: Mapping[str, Any]) -> FormParameters:
    """
    Collect body and extra_body parameters from fields in the parameter sections.

    Args:
        fields: Form fields
        values: Raw form values keyed by field name

    Returns:
        FormParameters with API-named keys
    """
    params = FormParameters()
    for spec in fields:
        if not spec.is_parameter:
            continue
        raw = lookup_raw(values, spec)
        if _is_empty(raw):
            continue
        target = params.body if spec.section_id == "body" else params.extra
        target[FIELD_TO_API.get(spec.name, spec.name)] = serialize_for_api(spec, raw)
    return params
