"""Tests for validation options, label formatting and message templates."""

import pytest

from ruleforge.entities import Model
from ruleforge.validation.config import (
    LabelFormatter,
    ValidationOptions,
    configure,
    default_options,
    reset_defaults,
)
from ruleforge.validation.messages import (
    DEFAULT_MESSAGES,
    format_label,
    format_message,
    sentence_case,
)


@pytest.fixture(autouse=True)
def restore_defaults():
    reset_defaults()
    yield
    reset_defaults()


# =============================================================================
# ValidationOptions
# =============================================================================


class TestValidationOptions:
    def test_defaults(self):
        options = ValidationOptions()
        assert options.force_update is False
        assert options.selector == "name"
        assert options.label_formatter is LabelFormatter.SENTENCE_CASE

    def test_default_callbacks_are_harmless(self):
        options = ValidationOptions()
        assert options.on_valid(None, "name", "name") is None
        assert options.on_invalid(None, "name", "Name is required", "name") is None

    def test_merge_returns_copy(self):
        options = ValidationOptions()
        merged = options.merge(force_update=True, selector="id")
        assert merged.force_update is True
        assert merged.selector == "id"
        assert options.force_update is False

    def test_merge_mapping_and_kwargs(self):
        merged = ValidationOptions().merge({"selector": "a"}, selector="b")
        assert merged.selector == "b"

    def test_merge_ignores_none(self):
        options = ValidationOptions(selector="id")
        assert options.merge(selector=None).selector == "id"

    def test_merge_coerces_label_formatter(self):
        assert ValidationOptions().merge(label_formatter="label").label_formatter is (
            LabelFormatter.LABEL
        )

    def test_merge_rejects_unknown_option(self):
        with pytest.raises(TypeError, match="forceUpdate"):
            ValidationOptions().merge(forceUpdate=True)

    def test_merge_rejects_unknown_formatter(self):
        with pytest.raises(ValueError):
            ValidationOptions().merge(label_formatter="titleCase")

    def test_options_are_frozen(self):
        with pytest.raises(AttributeError):
            ValidationOptions().selector = "id"


class TestFromEnv:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("RULEFORGE_FORCE_UPDATE", "yes")
        monkeypatch.setenv("RULEFORGE_SELECTOR", "data-attr")
        monkeypatch.setenv("RULEFORGE_LABEL_FORMATTER", "none")

        options = ValidationOptions.from_env()

        assert options.force_update is True
        assert options.selector == "data-attr"
        assert options.label_formatter is LabelFormatter.NONE

    def test_unset_environment_keeps_base(self, monkeypatch):
        monkeypatch.delenv("RULEFORGE_FORCE_UPDATE", raising=False)
        monkeypatch.delenv("RULEFORGE_SELECTOR", raising=False)
        monkeypatch.delenv("RULEFORGE_LABEL_FORMATTER", raising=False)

        base = ValidationOptions(selector="id", force_update=True)
        assert ValidationOptions.from_env(base) == base

    def test_false_value(self, monkeypatch):
        monkeypatch.setenv("RULEFORGE_FORCE_UPDATE", "off")
        base = ValidationOptions(force_update=True)
        assert ValidationOptions.from_env(base).force_update is False


class TestDefaults:
    def test_configure_replaces_defaults(self):
        before = default_options()
        after = configure(force_update=True)

        assert default_options() is after
        assert after.force_update is True
        assert before.force_update is False

    def test_reset(self):
        configure(selector="id")
        reset_defaults()
        assert default_options().selector == "name"


# =============================================================================
# Messages and labels
# =============================================================================


class TestFormatMessage:
    def test_positional(self):
        assert format_message(DEFAULT_MESSAGES["range"], "Age", 1, 10) == (
            "Age must be between 1 and 10"
        )

    def test_missing_argument_left_untouched(self):
        assert format_message("{0} and {1}", "A") == "A and {1}"

    def test_repeated_placeholder(self):
        assert format_message("{0}/{0}", "x") == "x/x"


class TestSentenceCase:
    @pytest.mark.parametrize(
        "attr, expected",
        [
            ("name", "Name"),
            ("someAttribute", "Some attribute"),
            ("confirmPassword", "Confirm password"),
            ("some_attribute", "Some attribute"),
            ("address.street", "Address. street"),
        ],
    )
    def test_sentence_case(self, attr, expected):
        assert sentence_case(attr) == expected


class TestFormatLabel:
    class Person(Model):
        labels = {"dob": "Date of birth"}

    def test_none(self):
        assert format_label("someAttribute", formatter=LabelFormatter.NONE) == "someAttribute"

    def test_sentence_case(self):
        assert format_label("someAttribute") == "Some attribute"

    def test_label(self):
        person = self.Person()
        assert format_label("dob", person, LabelFormatter.LABEL) == "Date of birth"

    def test_label_falls_back_to_sentence_case(self):
        person = self.Person()
        assert format_label("firstName", person, LabelFormatter.LABEL) == "First name"

    def test_label_without_entity(self):
        assert format_label("firstName", None, LabelFormatter.LABEL) == "First name"
