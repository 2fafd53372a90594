"""
Tests for the form schema loader.
"""

import json
from pathlib import Path

import pytest
import yaml

from autoui.exceptions import InvalidSchemaError, SchemaLoadError
from autoui.schema_loader import (
    field_definitions_from_dict,
    form_schema_from_dict,
    get_schema_info,
    load_form_schema,
    validate_field_config,
    validate_schema,
)


def _valid_schema():
    return {
        'title': "Products",
        'description': "Catalogue entries",
        'fields': {
            'name': {'type': 'string', 'label': "Name", 'required': True, 'min_length': 2},
            'category': {'type': 'enum', 'choices': ['hardware', 'software']},
            'stock': {'type': 'integer', 'min_value': 0},
            'released': {'type': 'datetime'},
            'notes': {'type': 'textarea'},
        },
        'layout': {
            'type': 'sections',
            'sections': [
                {'title': "Basics", 'fields': ['name', 'category'], 'columns': 2},
                {'title': "More", 'fields': ['stock', 'released', 'notes']},
            ],
        },
    }


class TestSchemaLoader:
    """Test class for schema loader."""

    def test_load_schema_yaml_success(self, tmp_path):
        path = tmp_path / "products.yaml"
        path.write_text(yaml.safe_dump(_valid_schema(), sort_keys=False), encoding='utf-8')

        schema = load_form_schema(path)

        assert schema.title == "Products"
        assert schema.field_names == ['name', 'category', 'stock', 'released', 'notes']
        assert schema.layout.type == 'sections'
        assert schema.source == str(path)

    def test_load_schema_json_success(self, tmp_path):
        path = tmp_path / "products.json"
        path.write_text(json.dumps(_valid_schema()), encoding='utf-8')

        schema = load_form_schema(str(path))

        assert schema.description == "Catalogue entries"
        assert len(schema.fields) == 5

    def test_load_schema_file_not_found(self, tmp_path):
        with pytest.raises(SchemaLoadError) as exc_info:
            load_form_schema(tmp_path / "missing.yaml")

        assert exc_info.value.context['original_error_type'] == 'FileNotFoundError'

    def test_load_schema_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("fields: [unclosed", encoding='utf-8')

        with pytest.raises(SchemaLoadError):
            load_form_schema(path)

    def test_load_schema_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding='utf-8')

        with pytest.raises(SchemaLoadError):
            load_form_schema(path)

    def test_load_schema_unsupported_extension(self, tmp_path):
        path = tmp_path / "schema.txt"
        path.write_text("fields: {}", encoding='utf-8')

        with pytest.raises(SchemaLoadError):
            load_form_schema(path)

    def test_load_schema_invalid_structure(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("title: Empty\n", encoding='utf-8')

        with pytest.raises(InvalidSchemaError) as exc_info:
            load_form_schema(path)

        assert exc_info.value.errors == ["Schema must contain 'fields' key"]

    def test_validate_schema_valid(self):
        assert validate_schema(_valid_schema()) == []

    def test_validate_schema_non_dict_and_empty_fields(self):
        assert validate_schema([]) == ["Schema must be a dictionary"]
        assert validate_schema({'fields': {}}) == ["Schema 'fields' must be a non-empty mapping or list"]

    def test_validate_schema_list_fields_with_duplicates(self):
        errors = validate_schema({'fields': [{'name': 'a'}, {'name': 'a'}]})

        assert errors == ["Duplicate field name 'a'"]

    def test_validate_schema_layout_references(self):
        schema = _valid_schema()
        schema['layout']['sections'][0]['fields'].append('ghost')

        assert validate_schema(schema) == ["Layout references unknown field 'ghost'"]

    def test_validate_schema_unknown_layout_type(self):
        schema = _valid_schema()
        schema['layout']['type'] = 'carousel'

        assert "Unknown layout type 'carousel'" in validate_schema(schema)

    def test_validate_schema_section_columns(self):
        schema = _valid_schema()
        schema['layout']['sections'][0]['columns'] = 'two'
        schema['layout']['sections'][1]['columns'] = 0

        assert validate_schema(schema) == [
            "Section 'Basics' columns must be a positive integer, got 'two'",
            "Section 'More' columns must be a positive integer, got 0",
        ]

    def test_validate_schema_tab_sections_checked(self):
        schema = _valid_schema()
        schema['layout'] = {'type': 'tabs', 'tabs': [
            {'title': "Main", 'sections': [{'fields': ['name'], 'columns': 'wide'}, "stock"]},
        ]}

        assert validate_schema(schema) == [
            "Section 'name' columns must be a positive integer, got 'wide'",
            "Layout sections must be dictionaries",
        ]

    def test_form_schema_from_dict_bad_columns(self):
        schema = _valid_schema()
        schema['layout']['sections'][0]['columns'] = 'two'

        with pytest.raises(InvalidSchemaError) as exc_info:
            form_schema_from_dict(schema, source='products.yaml')

        assert exc_info.value.errors == ["Section 'Basics' columns must be a positive integer, got 'two'"]

    def test_validate_field_config_string(self):
        assert validate_field_config('name', {'type': 'string', 'min_length': 1}) == []
        assert validate_field_config('name', "string") == ["Field 'name' config must be a dictionary"]

    def test_validate_field_config_enum_missing_choices(self):
        errors = validate_field_config('status', {'type': 'enum'})

        assert errors == ["Enum field 'status' choices must be a non-empty list"]

    def test_validate_field_config_invalid_cases(self):
        assert validate_field_config('x', {'type': 'spreadsheet'}) == [
            "Field 'x' has unsupported type 'spreadsheet'"
        ]
        assert validate_field_config('x', {'min_value': 'zero'}) == ["Field 'x' min_value must be a number"]
        assert validate_field_config('x', {'max_length': -1}) == [
            "Field 'x' max_length must be a non-negative integer"
        ]
        assert validate_field_config('x', {'pattern': '['})[0].startswith("Field 'x' has invalid regex pattern")

    def test_type_aliases(self):
        fields = {f.name: f for f in field_definitions_from_dict(_valid_schema()['fields'])}

        assert fields['stock'].type == 'number'
        assert fields['stock'].step == 1
        assert fields['released'].type == 'date'
        assert fields['released'].props == {'datetime': True}
        assert fields['notes'].type == 'text'

    def test_form_schema_from_dict_defaults(self):
        schema = form_schema_from_dict({'fields': {'a': {}}})

        assert schema.title == 'Untitled Schema'
        assert schema.layout.type == 'basic'
        assert schema.fields[0].type == 'string'

    def test_get_schema_info(self):
        info = get_schema_info(form_schema_from_dict(_valid_schema()))

        assert info['field_count'] == 5
        assert info['required_fields'] == ['name']
        assert info['field_types']['stock'] == 'number'
        assert info['layout'] == 'sections'

    def test_bundled_product_schema_loads(self):
        schema = load_form_schema(Path(__file__).parent / "schemas" / "product_schema.yaml")

        assert 'sku' in schema.field_names
        assert schema.layout.type == 'tabs'
