"""
Tests for field normalization and parameter extraction.
"""

from ai_builder.prompt.fields import (
    ArrayValue,
    FieldOption,
    FieldSpec,
    OptionValue,
    ScalarValue,
    extract_parameters,
    humanize,
    normalize_value,
    resolve_option_label,
)


class TestFieldSpec:
    """Test FieldSpec construction from schema records."""

    def test_from_dict_reads_camel_case_keys(self):
        spec = FieldSpec.from_dict({
            "id": "aspect",
            "name": "aspectRatio",
            "label": "Aspect Ratio",
            "component": "select",
            "order": 5,
            "sectionId": "body",
            "options": [{"id": "16:9", "label": "Wide"}],
        })

        assert spec.name == "aspectRatio"
        assert spec.section_id == "body"
        assert spec.is_parameter
        assert spec.options == [FieldOption(id="16:9", label="Wide")]
        assert not spec.multiple

    def test_multi_select_flags(self):
        assert FieldSpec.from_dict({"name": "a", "metadata": {"allowMultiselect": True}}).multiple
        assert FieldSpec.from_dict({"name": "b", "selectionMode": "multiple"}).multiple
        assert FieldSpec.from_dict({"name": "c", "mode": "multiple"}).multiple
        assert not FieldSpec.from_dict({"name": "d", "mode": "single"}).multiple

    def test_missing_order_sorts_last(self):
        assert FieldSpec(id="x", name="x").sort_key == 999

    def test_language_field_detection(self):
        assert FieldSpec(id="l", name="outputLanguage").is_language_field
        assert FieldSpec(id="l", name="lang").is_language_field
        assert not FieldSpec(id="t", name="tone").is_language_field


class TestNormalizeValue:
    """Test normalize_value()."""

    def test_empty_values(self):
        spec = FieldSpec(id="x", name="x")

        assert normalize_value(spec, None) is None
        assert normalize_value(spec, "") is None
        assert normalize_value(spec, []) is None
        assert normalize_value(spec, ["", None]) is None

    def test_zero_and_false_are_values(self):
        spec = FieldSpec(id="x", name="x")

        assert normalize_value(spec, 0) == ScalarValue(0)
        assert normalize_value(spec, False) == ScalarValue(False)

    def test_option_id_resolves_to_option(self):
        spec = FieldSpec(id="t", name="t", options=[FieldOption(id="f", label="Formal", description="d")])

        assert normalize_value(spec, "f") == OptionValue(id="f", label="Formal", description="d")

    def test_option_record(self):
        spec = FieldSpec(id="t", name="t")

        value = normalize_value(spec, {"id": 7, "label": "Seven"})

        assert value == OptionValue(id="7", label="Seven")

    def test_list_of_mixed_items(self):
        spec = FieldSpec(id="t", name="t", options=[FieldOption(id="a", label="Alpha")])

        value = normalize_value(spec, ["a", "free text"])

        assert value == ArrayValue((OptionValue(id="a", label="Alpha"), ScalarValue("free text")))

    def test_resolve_option_label(self):
        spec = FieldSpec(id="t", name="t", options=[FieldOption(id="a", label="Alpha", description="First")])

        assert resolve_option_label(spec, "a") == ("Alpha", "First")
        assert resolve_option_label(spec, "zzz") == ("zzz", None)


class TestExtractParameters:
    """Test extract_parameters()."""

    def test_routes_by_section_and_maps_names(self):
        fields = [
            FieldSpec(id="ar", name="aspectRatio", section_id="body"),
            FieldSpec(id="rf", name="responseFormat", section_id="extra"),
            FieldSpec(id="temp", name="temperature", section_id="body"),
            FieldSpec(id="goal", name="goal"),
        ]
        values = {
            "aspectRatio": "16:9",
            "responseFormat": {"id": "png", "label": "PNG"},
            "temperature": 0.2,
            "goal": "Not a parameter",
        }

        params = extract_parameters(fields, values)

        assert params.body == {"aspect_ratio": "16:9", "temperature": 0.2}
        assert params.extra == {"output_format": "png"}

    def test_list_input_serializes_labels(self):
        fields = [
            FieldSpec(id="kw", name="keywords", component="list-input", section_id="body"),
            FieldSpec(id="cat", name="categories", component="checkbox-list", section_id="body"),
        ]
        values = {
            "keywords": [{"id": "1", "label": "fast"}, {"id": "2", "label": "cheap"}],
            "categories": [{"id": "c1", "label": "One"}],
        }

        params = extract_parameters(fields, values)

        assert params.body == {"keywords": ["fast", "cheap"], "categories": ["c1"]}

    def test_empty_values_are_skipped(self):
        fields = [FieldSpec(id="ar", name="aspectRatio", section_id="body")]

        assert extract_parameters(fields, {"aspectRatio": ""}).body == {}


def test_humanize():
    assert humanize("targetAudience") == "Target Audience"
    assert humanize("tone_of_voice") == "Tone Of Voice"
    assert humanize("Already Spaced") == "Already Spaced"
    assert humanize("red") == "Red"
