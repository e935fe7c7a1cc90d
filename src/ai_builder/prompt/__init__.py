"""Prompt composition from structured form input."""

from .composer import compose, render_segment, strip_user_prompt_prefix
from .fields import (
    ArrayValue,
    FieldOption,
    FieldSpec,
    FieldValue,
    FormParameters,
    OptionValue,
    ScalarValue,
    extract_parameters,
    normalize_value,
    resolve_option_label,
)
from .language import build_language_instruction, language_name
from .toon import format_to_toon

__all__ = [
    "compose",
    "render_segment",
    "strip_user_prompt_prefix",
    "ArrayValue",
    "FieldOption",
    "FieldSpec",
    "FieldValue",
    "FormParameters",
    "OptionValue",
    "ScalarValue",
    "extract_parameters",
    "normalize_value",
    "resolve_option_label",
    "build_language_instruction",
    "language_name",
    "format_to_toon",
]
