"""
Prompt composition from structured form input.

Turns ordered form fields and their values into one prompt string:
"Label: value" segments separated by blank lines, TOON blocks for
multi-value fields, and an optional output-language block.
"""

import logging
import re
from typing import Any, List, Mapping, Optional, Sequence

from .fields import (
    ArrayValue,
    FieldSpec,
    FieldValue,
    OptionValue,
    ScalarValue,
    humanize,
    lookup_raw,
    normalize_value,
)
from .language import LANGUAGE_FIELD_NAMES, build_language_instruction
from .toon import format_to_toon

logger = logging.getLogger(__name__)

SEGMENT_SEPARATOR = "\n\n"

_USER_PROMPT_PREFIX = re.compile(r"^User\s+Prompt:\s*", re.IGNORECASE)


def strip_user_prompt_prefix(text: str) -> str:
    return _USER_PROMPT_PREFIX.sub("", text).strip()


def _with_description(text: str, description: Optional[str]) -> str:
    return f"{text}\n\n{description}" if description else text


def _item_text(item: Any) -> str:
    if isinstance(item, OptionValue):
        return item.text
    return str(item.value)


def _render_toon(spec: FieldSpec, value: FieldValue) -> str:
    items = value.items if isinstance(value, ArrayValue) else (value,)
    rows = [{"label": humanize(_item_text(item))} for item in items]
    return f"{spec.display_label}:\n{format_to_toon(spec.name, rows, ['label'])}"


def _render_value(spec: FieldSpec, value: FieldValue) -> str:
    if isinstance(value, ArrayValue):
        if len(value.items) == 1 and isinstance(value.items[0], OptionValue):
            only = value.items[0]
            return _with_description(only.text, only.description)
        return ", ".join(_item_text(item) for item in value.items)
    if isinstance(value, OptionValue):
        return _with_description(value.text, value.description)

    text = str(value.value)
    if spec.is_primary_text:
        text = strip_user_prompt_prefix(text)
    return text


def render_segment(spec: FieldSpec, value: FieldValue) -> Optional[str]:
    """Render one field as a prompt segment, or None when it renders empty."""
    if spec.is_array_like:
        return _render_toon(spec, value)

    text = _render_value(spec, value)
    if not text:
        return None
    return f"{spec.segment_label}: {text}"


def detect_language(fields: Sequence[FieldSpec], values: Mapping[str, Any]) -> Optional[str]:
    """Find the output language among the form values."""
    for name in LANGUAGE_FIELD_NAMES:
        raw = values.get(name)
        if isinstance(raw, str) and raw.strip():
            return raw.strip()
    for spec in fields:
        if spec.is_language_field:
            raw = lookup_raw(values, spec)
            if isinstance(raw, str) and raw.strip():
                return raw.strip()
    return None


def compose(
    fields: Sequence[FieldSpec],
    values: Mapping[str, Any],
    selected_language: Optional[str] = None,
) -> str:
    """
    Compose a prompt from form fields and values.

    Fields are ordered by their order attribute (999 when unset), ties keep
    their original position. Empty values, parameter-section fields (except
    the prompt field) and language fields are skipped.

    Args:
        fields: Form fields in schema order
        values: Raw or normalized values keyed by field name
        selected_language: ISO code chosen by the user; when None the form's
            language field is used

    Returns:
        The composed prompt
    """
    ordered = sorted(fields, key=lambda spec: spec.sort_key)

    segments: List[str] = []
    for spec in ordered:
        if spec.is_parameter and not spec.is_prompt_field:
            continue
        if spec.is_language_field:
            continue
        value = normalize_value(spec, lookup_raw(values, spec))
        if value is None:
            continue
        segment = render_segment(spec, value)
        if segment:
            segments.append(segment)

    prompt = SEGMENT_SEPARATOR.join(segments)

    language = selected_language if selected_language is not None else detect_language(fields, values)
    prompt += build_language_instruction(language)

    logger.debug(f"Composed prompt from {len(segments)} field(s), language={language!r}")
    return prompt
