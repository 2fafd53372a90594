"""
Tests for CSV / JSON export and import of table rows.
"""

import json
from datetime import date
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

import autoui.data_exchange as data_exchange
from autoui.data_exchange import (
    ExportOptions,
    ImportOptions,
    export_columns,
    export_rows,
    import_rows,
)
from autoui.definitions import FieldDefinition, ValidationRule
from autoui.exceptions import UnsupportedFormatError


def _fields():
    return [
        FieldDefinition(name='name', required=True, validation=[ValidationRule('minLength', 2)]),
        FieldDefinition(name='price', type='number', validation=[ValidationRule('min', 0)]),
        FieldDefinition(name='active', type='boolean'),
        FieldDefinition(name='release_date', type='date'),
        FieldDefinition(name='tags', type='multiselect', options=['new', 'sale']),
    ]


def _rows():
    return [
        {'id': 1, 'name': "Desk", 'price': 199.5, 'active': True,
         'release_date': date(2024, 3, 1), 'tags': ['new', 'sale']},
        {'id': 2, 'name': "Lamp", 'price': 20, 'active': False, 'release_date': None, 'tags': []},
    ]


class _DummyContext:
    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class TestExport:
    """Test cases for export_rows."""

    def test_export_columns_selection(self):
        assert export_columns(_fields(), ExportOptions(fields=['price', 'ghost', 'name'])) == ['price', 'name']
        assert export_columns(_fields(), ExportOptions()) == ['name', 'price', 'active', 'release_date', 'tags']

    def test_csv_with_selected_fields(self):
        content = export_rows(_rows(), _fields(), ExportOptions(fields=['name', 'price'])).decode('utf-8')

        assert content.splitlines() == ["name,price", "Desk,199.5", "Lamp,20"]

    def test_csv_serializes_dates_and_lists(self):
        content = export_rows(_rows(), _fields(), ExportOptions(fields=['release_date', 'tags']))

        lines = content.decode('utf-8').splitlines()
        assert lines[1].startswith("2024-03-01,")
        assert '""new""' in lines[1]

    def test_csv_delimiter_and_no_header(self):
        options = ExportOptions(fields=['name', 'active'], delimiter=';', include_headers=False)

        content = export_rows(_rows(), _fields(), options).decode('utf-8')

        assert content.splitlines() == ["Desk;True", "Lamp;False"]

    def test_json_export(self):
        content = export_rows(_rows(), _fields(), ExportOptions(format='json', fields=['name', 'release_date']))

        assert json.loads(content) == [
            {'name': "Desk", 'release_date': "2024-03-01"},
            {'name': "Lamp", 'release_date': None},
        ]

    def test_unsupported_format(self):
        with pytest.raises(UnsupportedFormatError) as exc_info:
            export_rows(_rows(), _fields(), ExportOptions(format='xlsx'))

        assert exc_info.value.supported == ['csv', 'json']


class TestImport:
    """Test cases for import_rows."""

    def test_csv_import_coerces_types(self):
        content = "name,price,active,release_date,tags\nDesk,199.5,true,2024-03-01,new;sale\n"

        result = import_rows(content, _fields())

        assert result.success == 1
        assert result.failed == 0
        assert result.data == [{
            'name': "Desk", 'price': 199.5, 'active': True,
            'release_date': "2024-03-01", 'tags': ['new', 'sale'],
        }]

    def test_csv_round_trip_of_selected_fields(self):
        exported = export_rows(_rows(), _fields(), ExportOptions(fields=['name', 'price']))

        result = import_rows(exported, _fields())

        assert [row['name'] for row in result.data] == ["Desk", "Lamp"]
        assert [row['price'] for row in result.data] == [199.5, 20]
        assert all(set(row) == {'name', 'price'} for row in result.data)

    def test_invalid_rows_reported(self):
        content = "name,price\nD,5\n,3\nDesk,-1\nLamp,4\n"

        result = import_rows(content, _fields())

        assert result.success == 1
        assert result.failed == 3
        assert result.errors == [
            "Row 1: name: Must be at least 2 characters",
            "Row 2: name: This field is required",
            "Row 3: price: Value must be at least 0",
        ]

    def test_mapping_and_unknown_columns(self):
        content = "Product,Cost,Colour\nDesk,10,red\n"

        result = import_rows(content, _fields(), ImportOptions(mapping={'Product': 'name', 'Cost': 'price'}))

        assert result.data == [{'name': "Desk", 'price': 10}]

    def test_headerless_csv_maps_by_position(self):
        result = import_rows(b"Desk,12\n", _fields(), ImportOptions(skip_header=False))

        assert result.data == [{'name': "Desk", 'price': 12}]

    def test_json_import(self):
        content = json.dumps({'data': [{'name': "Desk", 'tags': ['new']}, {'name': "X"}]})

        result = import_rows(content, _fields(), ImportOptions(format='json'))

        assert result.success == 1
        assert result.failed == 1
        assert result.data == [{'name': "Desk", 'tags': ['new']}]

    def test_unreadable_content(self):
        result = import_rows("[1, 2", _fields(), ImportOptions(format='json'))

        assert result.success == 0
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Could not read JSON data")

    def test_json_must_be_list_of_objects(self):
        result = import_rows("[1, 2]", _fields(), ImportOptions(format='json'))

        assert result.errors == ["Could not read JSON data: JSON import must be a list of objects"]

    def test_unsupported_format(self):
        with pytest.raises(UnsupportedFormatError):
            import_rows("", _fields(), ImportOptions(format='xml'))


class TestStreamlitHelpers:
    """Test cases for the download button and uploader."""

    def _mock_st(self):
        return SimpleNamespace(
            download_button=MagicMock(return_value=False),
            file_uploader=MagicMock(return_value=None),
            success=MagicMock(),
            warning=MagicMock(),
            error=MagicMock(),
            write=MagicMock(),
            expander=MagicMock(return_value=_DummyContext()),
        )

    def test_render_export_button(self, monkeypatch):
        st = self._mock_st()
        monkeypatch.setattr(data_exchange, "st", st)

        data_exchange.render_export_button(_rows(), _fields(), ExportOptions(format='json', file_name='products'))

        kwargs = st.download_button.call_args.kwargs
        assert kwargs['file_name'] == 'products.json'
        assert kwargs['mime'] == 'application/json'
        assert kwargs['label'] == "Download JSON"

    def test_render_export_button_unknown_format(self, monkeypatch):
        st = self._mock_st()
        monkeypatch.setattr(data_exchange, "st", st)

        assert data_exchange.render_export_button(_rows(), _fields(), ExportOptions(format='pdf')) is False
        st.error.assert_called_once()
        st.download_button.assert_not_called()

    def test_render_import_uploader_nothing_uploaded(self, monkeypatch):
        st = self._mock_st()
        monkeypatch.setattr(data_exchange, "st", st)

        assert data_exchange.render_import_uploader(_fields()) is None

    def test_render_import_uploader_detects_format(self, monkeypatch):
        st = self._mock_st()
        uploaded = MagicMock()
        uploaded.name = "rows.json"
        uploaded.getvalue.return_value = json.dumps([{'name': "Desk"}, {'name': ""}]).encode('utf-8')
        st.file_uploader.return_value = uploaded
        monkeypatch.setattr(data_exchange, "st", st)

        result = data_exchange.render_import_uploader(_fields())

        assert result.success == 1
        assert result.failed == 1
        st.success.assert_called_once_with("1 rows imported")
        st.warning.assert_called_once_with("1 rows failed")
        st.write.assert_called_once_with("• Row 2: name: This field is required")
