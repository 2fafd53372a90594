"""
Unit tests for the validation rule engine.
"""

from datetime import date

from autoui.definitions import FieldDefinition, ValidationRule
from autoui.i18n import Translator
from autoui.validation import (
    is_empty,
    validate_field_value,
    validate_named_field,
    validate_rule,
    validate_values,
)


class TestIsEmpty:

    def test_empty_values(self):
        assert is_empty(None)
        assert is_empty('')

    def test_falsy_values_are_not_empty(self):
        assert not is_empty(0)
        assert not is_empty(False)
        assert not is_empty([])


class TestValidateRule:
    """Test cases for single rule evaluation."""

    def test_min_and_max(self):
        assert validate_rule(ValidationRule('min', 18), 17, {}) == "Value must be at least 18"
        assert validate_rule(ValidationRule('min', 18), 18, {}) is None
        assert validate_rule(ValidationRule('max', 5), 6, {}) == "Value must be at most 5"

    def test_exclusive_bounds(self):
        rule = ValidationRule('min', 0, exclusive=True)

        assert validate_rule(rule, 0, {}) == "Value must be greater than 0"
        assert validate_rule(rule, 0.5, {}) is None

    def test_rules_skip_other_types(self):
        # min on a string and minLength on a number do not apply
        assert validate_rule(ValidationRule('min', 3), "ab", {}) is None
        assert validate_rule(ValidationRule('minLength', 3), 12, {}) is None
        assert validate_rule(ValidationRule('min', 3), True, {}) is None

    def test_length_rules(self):
        assert validate_rule(ValidationRule('minLength', 3), "ab", {}) == "Must be at least 3 characters"
        assert validate_rule(ValidationRule('maxLength', 3), "abcd", {}) == "Must be at most 3 characters"

    def test_pattern(self):
        rule = ValidationRule('pattern', r'^SKU-\d{4}$')

        assert validate_rule(rule, "SKU-1234", {}) is None
        assert validate_rule(rule, "1234", {}) == "Invalid format"

    def test_custom_rule_receives_all_values(self):
        rule = ValidationRule('custom', validator=lambda v, values: v == values.get('password'),
                              message="Passwords must match")

        assert validate_rule(rule, "a", {'password': "a"}) is None
        assert validate_rule(rule, "b", {'password': "a"}) == "Passwords must match"

    def test_custom_rule_default_message(self):
        rule = ValidationRule('custom', validator=lambda v, values: False)

        assert validate_rule(rule, "x", {}) == "Invalid value"

    def test_explicit_message_wins(self):
        assert validate_rule(ValidationRule('min', 1, message="Too small"), 0, {}) == "Too small"

    def test_translated_messages(self):
        message = validate_rule(ValidationRule('min', 18), 3, {}, Translator('de'))

        assert message == "Der Wert muss mindestens 18 sein"

    def test_date_bounds(self):
        rule = ValidationRule('min', date(2020, 1, 1))

        assert validate_rule(rule, date(2000, 1, 1), {}) == "Value must be at least 2020-01-01"
        assert validate_rule(rule, date(2020, 1, 1), {}) is None
        assert validate_rule(ValidationRule('max', date(2020, 1, 1), exclusive=True),
                             date(2020, 1, 1), {}) == "Value must be less than 2020-01-01"

    def test_date_bound_parses_iso_strings(self):
        rule = ValidationRule('min', date(2020, 1, 1))

        assert validate_rule(rule, "2019-12-31", {}) == "Value must be at least 2020-01-01"
        assert validate_rule(rule, "2020-06-01", {}) is None
        assert validate_rule(rule, "not a date", {}) is None

    def test_date_bound_ignores_numbers(self):
        assert validate_rule(ValidationRule('min', date(2020, 1, 1)), 5, {}) is None
        assert validate_rule(ValidationRule('min', 5), date(2020, 1, 1), {}) is None


class TestValidateField:
    """Test cases for field-level validation."""

    def test_required_checked_first(self):
        field_def = FieldDefinition(name='age', type='number', required=True,
                                    validation=[ValidationRule('min', 18)])

        assert validate_field_value(field_def, None, {}) == "This field is required"
        assert validate_field_value(field_def, 17, {}) == "Value must be at least 18"
        assert validate_field_value(field_def, 18, {}) is None

    def test_first_failing_rule_wins(self):
        field_def = FieldDefinition(name='code', validation=[
            ValidationRule('minLength', 5), ValidationRule('pattern', '^[0-9]+$')
        ])

        assert validate_field_value(field_def, "ab", {}) == "Must be at least 5 characters"

    def test_zero_and_false_satisfy_required(self):
        assert validate_field_value(FieldDefinition(name='n', required=True), 0, {}) is None
        assert validate_field_value(FieldDefinition(name='b', required=True), False, {}) is None

    def test_validate_values_skips_hidden_fields(self):
        fields = [
            FieldDefinition(name='kind', required=True),
            FieldDefinition(name='url', required=True,
                            hidden=lambda values: values.get('kind') != 'service'),
        ]

        assert validate_values(fields, {'kind': 'hardware'}) == {}
        assert validate_values(fields, {'kind': 'service'}) == {'url': "This field is required"}

    def test_unknown_field_has_no_error(self):
        assert validate_named_field([FieldDefinition(name='a')], 'missing', None, {}) is None
