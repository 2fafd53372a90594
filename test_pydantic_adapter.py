"""
Unit tests for the pydantic adapter.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional

import pytest
from pydantic import BaseModel, Field, ValidationError, create_model

from autoui.definitions import FieldDefinition, ValidationRule
from autoui.pydantic_adapter import (
    EMAIL_PATTERN,
    field_definitions_to_model,
    field_type_for_annotation,
    model_to_field_definitions,
    unwrap_annotation,
    validate_with_pydantic,
)
from autoui.validation import validate_values


class Status(str, Enum):
    DRAFT = 'draft'
    LIVE = 'live'


class Address(BaseModel):
    city: str


class Product(BaseModel):
    name: str = Field(min_length=2, max_length=40, title="Product name")
    price: float = Field(gt=0, le=1000)
    stock: Optional[int] = Field(default=None, ge=0)
    status: Status = Status.DRAFT
    size: Literal['s', 'm', 'l'] = 's'
    tags: List[str] = []
    released: Optional[date] = None
    active: bool = True
    email: str = "sales@example.com"
    sku: Annotated[str, Field(pattern=r'^SKU-\d{4}$')] = "SKU-0001"
    address: Optional[Address] = None
    extra: Dict[str, int] = {}


def _by_name(fields):
    return {f.name: f for f in fields}


class TestUnwrapAnnotation:

    def test_optional(self):
        tp, nullable, _ = unwrap_annotation(Optional[int])

        assert tp is int
        assert nullable is True

    def test_annotated_collects_metadata(self):
        tp, nullable, metadata = unwrap_annotation(Annotated[str, Field(min_length=3)])

        assert tp is str
        assert nullable is False
        assert any(getattr(m, 'min_length', None) == 3 for m in metadata)

    def test_nested_optional_annotated(self):
        tp, nullable, _ = unwrap_annotation(Optional[Annotated[int, Field(ge=1)]])

        assert tp is int
        assert nullable is True


class TestFieldTypeMapping:
    """Test cases for field_type_for_annotation."""

    @pytest.mark.parametrize("annotation,expected", [
        (str, 'string'),
        (int, 'number'),
        (float, 'number'),
        (Decimal, 'number'),
        (bool, 'boolean'),
        (date, 'date'),
        (datetime, 'date'),
        (Status, 'enum'),
        (Literal['a', 'b'], 'enum'),
        (List[str], 'multiselect'),
        (Dict[str, int], 'json'),
        (Address, 'json'),
        (bytes, 'string'),
    ])
    def test_mapping(self, annotation, expected):
        assert field_type_for_annotation(annotation) == expected

    def test_email_by_name(self):
        assert field_type_for_annotation(str, name='email') == 'email'


class TestModelToFieldDefinitions:
    """Test cases for model_to_field_definitions."""

    def test_types(self):
        fields = _by_name(model_to_field_definitions(Product))

        assert fields['name'].type == 'string'
        assert fields['price'].type == 'number'
        assert fields['status'].type == 'enum'
        assert fields['tags'].type == 'multiselect'
        assert fields['released'].type == 'date'
        assert fields['active'].type == 'boolean'
        assert fields['email'].type == 'email'
        assert fields['address'].type == 'json'
        assert fields['extra'].type == 'json'

    def test_required_follows_nullability(self):
        fields = _by_name(model_to_field_definitions(Product))

        assert fields['name'].required is True
        assert fields['stock'].required is False
        assert fields['released'].required is False

    def test_constraints_become_rules(self):
        fields = _by_name(model_to_field_definitions(Product))

        name_rules = {r.type: r for r in fields['name'].validation}
        assert name_rules['minLength'].value == 2
        assert name_rules['maxLength'].value == 40

        price_rules = {r.type: r for r in fields['price'].validation}
        assert price_rules['min'].value == 0
        assert price_rules['min'].exclusive is True
        assert price_rules['max'].value == 1000
        assert price_rules['max'].exclusive is False

        sku_patterns = [r.value for r in fields['sku'].validation if r.type == 'pattern']
        assert sku_patterns == [r'^SKU-\d{4}$']

    def test_email_gets_pattern_rule(self):
        fields = _by_name(model_to_field_definitions(Product))

        patterns = [r.value for r in fields['email'].validation if r.type == 'pattern']
        assert patterns == [EMAIL_PATTERN]

    def test_enum_options_and_membership(self):
        fields = model_to_field_definitions(Product)
        status = _by_name(fields)['status']

        assert [o.value for o in status.options] == ['draft', 'live']
        assert status.default_value == 'draft'
        errors = validate_values([status], {'status': 'archived'})
        assert errors['status'].startswith("Value must be one of")
        assert validate_values([status], {'status': 'live'}) == {}

    def test_literal_options(self):
        size = _by_name(model_to_field_definitions(Product))['size']

        assert [o.value for o in size.options] == ['s', 'm', 'l']

    def test_labels_and_overrides(self):
        fields = _by_name(model_to_field_definitions(
            Product,
            labels={'price': "Unit price"},
            descriptions={'price': "Before tax"},
            placeholders={'name': "Widget"},
            read_only_fields=['sku'],
        ))

        assert fields['name'].label == "Product name"
        assert fields['stock'].label == 'stock'
        assert fields['price'].label == "Unit price"
        assert fields['price'].description == "Before tax"
        assert fields['name'].placeholder == "Widget"
        assert fields['sku'].is_read_only({}) is True

    def test_field_order_and_hidden(self):
        fields = model_to_field_definitions(
            Product, field_order=['price', 'name', 'missing', 'stock'], hidden_fields=['stock']
        )

        assert [f.name for f in fields] == ['price', 'name']


class TestValidateWithPydantic:
    """Test cases for validate_with_pydantic."""

    def test_valid_data(self):
        assert validate_with_pydantic(Product, {'name': 'Widget', 'price': 5}) == {}

    def test_dotted_paths(self):
        errors = validate_with_pydantic(Product, {'name': 'W', 'price': 5, 'address': {}})

        assert 'name' in errors
        assert 'address.city' in errors

    def test_unexpected_exception(self):
        class Broken:
            @staticmethod
            def model_validate(data):
                raise RuntimeError("boom")

        assert validate_with_pydantic(Broken, {}) == {'_form': 'Invalid form data'}


class TestFieldDefinitionsToModel:
    """Test cases for building a model from field definitions."""

    def _fields(self):
        return [
            FieldDefinition(name='name', required=True, validation=[ValidationRule('minLength', 2)]),
            FieldDefinition(name='price', type='number', validation=[ValidationRule('min', 0)]),
            FieldDefinition(name='category', type='enum', options=['hardware', 'software']),
            FieldDefinition(name='tags', type='multiselect', options=['new', 'sale']),
            FieldDefinition(name='code', validation=[
                ValidationRule('custom', validator=lambda v, values: v is None or v.isupper(),
                               message="Must be upper case")
            ]),
        ]

    def test_valid_data(self):
        model = field_definitions_to_model(self._fields(), "ProductModel")
        instance = model.model_validate({'name': 'Widget', 'price': 3, 'category': 'hardware',
                                         'tags': ['new'], 'unknown': 1})

        assert model.__name__ == "ProductModel"
        assert instance.name == 'Widget'
        assert instance.price == 3.0
        assert not hasattr(instance, 'unknown')

    def test_constraints_enforced(self):
        model = field_definitions_to_model(self._fields())

        with pytest.raises(ValidationError):
            model.model_validate({'name': 'W'})
        with pytest.raises(ValidationError):
            model.model_validate({'name': 'Widget', 'price': -1})
        with pytest.raises(ValidationError):
            model.model_validate({'name': 'Widget', 'category': 'food'})
        with pytest.raises(ValidationError):
            model.model_validate({'name': 'Widget', 'tags': ['old']})

    def test_optional_fields_default_to_none(self):
        instance = field_definitions_to_model(self._fields()).model_validate({'name': 'Widget'})

        assert instance.price is None
        assert instance.tags is None

    def test_custom_rules_report_on_form(self):
        model = field_definitions_to_model(self._fields())

        errors = validate_with_pydantic(model, {'name': 'Widget', 'code': 'abc'})

        assert list(errors) == ['_form']
        assert "Must be upper case" in errors['_form']

    def test_round_trip_through_definitions(self):
        derived = model_to_field_definitions(field_definitions_to_model(self._fields()))
        by_name = _by_name(derived)

        assert by_name['name'].required is True
        assert by_name['price'].required is False
        assert by_name['category'].type == 'enum'
        assert [o.value for o in by_name['category'].options] == ['hardware', 'software']
        assert {r.type: r.value for r in by_name['name'].validation}['minLength'] == 2


class TestConstraintRules:
    """Test cases for date bounds and multiple_of constraints."""

    def test_date_bound_becomes_rule(self):
        class Event(BaseModel):
            when: date = Field(ge=date(2020, 1, 1))

        fields = model_to_field_definitions(Event)

        assert validate_values(fields, {'when': date(2000, 1, 1)}) == {
            'when': "Value must be at least 2020-01-01"
        }
        assert validate_values(fields, {'when': date(2021, 1, 1)}) == {}

    def test_multiple_of_becomes_rule(self):
        class Pack(BaseModel):
            n: int = Field(multiple_of=5)

        fields = model_to_field_definitions(Pack)

        assert validate_values(fields, {'n': 7}) == {'n': "Value must be a multiple of 5"}
        assert validate_values(fields, {'n': 10}) == {}
        assert validate_values(fields, {'n': 0}) == {}

    def test_float_multiple_of_tolerates_rounding(self):
        class Price(BaseModel):
            amount: float = Field(multiple_of=0.1)

        fields = model_to_field_definitions(Price)

        assert validate_values(fields, {'amount': 0.3}) == {}
        assert 'amount' in validate_values(fields, {'amount': 0.35})

    def test_decimal_bounds_compare_with_numbers(self):
        class Invoice(BaseModel):
            total: Decimal = Field(ge=Decimal('1.5'))

        fields = model_to_field_definitions(Invoice)

        assert validate_values(fields, {'total': 1}) == {'total': "Value must be at least 1.5"}

    def test_date_rules_carried_into_model(self):
        model = field_definitions_to_model([
            FieldDefinition(name='when', type='date', validation=[
                ValidationRule('min', date(2020, 1, 1)),
                ValidationRule('max', date(2030, 1, 1), exclusive=True),
            ]),
        ])

        assert model.model_validate({'when': date(2025, 1, 1)}).when == date(2025, 1, 1)
        with pytest.raises(ValidationError):
            model.model_validate({'when': date(2019, 12, 31)})
        with pytest.raises(ValidationError):
            model.model_validate({'when': date(2030, 1, 1)})


CONSTRAINT_CASES = [
    pytest.param(str, Field(min_length=2, max_length=5, pattern=r'^[a-z]+$'),
                 ['abc', 'ab', 'abcde'], ['a', 'abcdef', 'AB1', None], id='str'),
    pytest.param(int, Field(ge=1, le=100, multiple_of=5),
                 [5, 10, 100], [0, 105, 7, None], id='int'),
    pytest.param(float, Field(gt=0, lt=1),
                 [0.5, 0.001], [0.0, 1.0, -2.5], id='float'),
    pytest.param(bool, Field(),
                 [True, False], [None], id='bool'),
    pytest.param(Status, Field(),
                 ['draft', 'live'], ['archived', None], id='enum'),
    pytest.param(Literal['s', 'm', 'l'], Field(),
                 ['m'], ['xl'], id='literal'),
    pytest.param(date, Field(ge=date(2020, 1, 1)),
                 [date(2020, 1, 1), date(2024, 5, 6), "2021-01-01"],
                 [date(2019, 12, 31), "2019-06-01", None], id='date'),
]


class TestRulesAgreeWithModel:
    """Rules derived from a model accept and reject the same values as the model."""

    @staticmethod
    def _model(annotation, field_info):
        return create_model('Case', value=(annotation, field_info))

    @pytest.mark.parametrize("annotation, field_info, valid, invalid", CONSTRAINT_CASES)
    def test_valid_values_pass_both(self, annotation, field_info, valid, invalid):
        model = self._model(annotation, field_info)
        fields = model_to_field_definitions(model)

        for value in valid:
            assert validate_values(fields, {'value': value}) == {}, value
            model.model_validate({'value': value})

    @pytest.mark.parametrize("annotation, field_info, valid, invalid", CONSTRAINT_CASES)
    def test_invalid_values_fail_both(self, annotation, field_info, valid, invalid):
        model = self._model(annotation, field_info)
        fields = model_to_field_definitions(model)

        for value in invalid:
            assert 'value' in validate_values(fields, {'value': value}), value
            with pytest.raises(ValidationError):
                model.model_validate({'value': value})
