"""
Export and import of table rows as CSV or JSON.

Exports write the selected fields only; imports map source columns onto
fields, coerce CSV text to field types and validate every row with the same
rule engine the forms use.
"""

import io
import json
import streamlit as st
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union
import logging

import pandas as pd

from .definitions import FieldDefinition, FieldType, FormValues
from .exceptions import UnsupportedFormatError
from .filter_config import coerce_filter_value
from .i18n import Translator, get_translator
from .validation import validate_values

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ['csv', 'json']

MIME_TYPES = {
    'csv': 'text/csv',
    'json': 'application/json',
}

LIST_TYPES = {FieldType.MULTISELECT.value, FieldType.CHECKBOX.value}


@dataclass
class ExportOptions:
    format: str = 'csv'
    fields: Optional[List[str]] = None
    include_headers: bool = True
    delimiter: str = ','
    file_name: str = 'export'


@dataclass
class ImportOptions:
    format: str = 'csv'
    skip_header: bool = True
    delimiter: str = ','
    mapping: Dict[str, str] = field(default_factory=dict)


@dataclass
class ImportResult:
    success: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    data: List[FormValues] = field(default_factory=list)


def _check_format(format_name: str):
    if format_name not in SUPPORTED_FORMATS:
        raise UnsupportedFormatError(format_name, SUPPORTED_FORMATS)


def _export_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, (list, dict)):
        return json.dumps(value, default=str)
    return value


def export_columns(fields: List[FieldDefinition], options: ExportOptions) -> List[str]:
    """Field names written by an export: the selected ones, else every field."""
    known = [f.name for f in fields]
    if options.fields:
        return [name for name in options.fields if name in known]
    return known


def export_rows(rows: List[Dict[str, Any]], fields: List[FieldDefinition],
                options: Optional[ExportOptions] = None) -> bytes:
    """
    Serialize rows for download.

    Args:
        rows: Row dicts
        fields: Field definitions describing the row columns
        options: Format, field selection, headers and delimiter

    Returns:
        Encoded file content

    Raises:
        UnsupportedFormatError: For formats other than csv and json
    """
    options = options or ExportOptions()
    _check_format(options.format)
    columns = export_columns(fields, options)

    if options.format == 'csv':
        records = [{name: _export_value(row.get(name)) for name in columns} for row in rows]
        # object dtype so mixed int/float columns are written as given
        df = pd.DataFrame(records, columns=columns, dtype=object)
        csv_data = df.to_csv(index=False, sep=options.delimiter, header=options.include_headers)
        logger.info(f"Exported {len(records)} rows as CSV")
        return csv_data.encode('utf-8')

    records = [{name: row.get(name) for name in columns} for row in rows]
    json_data = json.dumps(records, indent=2, default=str)
    logger.info(f"Exported {len(records)} rows as JSON")
    return json_data.encode('utf-8')


def _coerce_import_value(raw: Any, field_def: FieldDefinition) -> Any:
    """Convert CSV text into the field's value type. Non-string values pass through."""
    if not isinstance(raw, str):
        return raw
    text = raw.strip()
    if text == '':
        return None

    if field_def.type in LIST_TYPES:
        if text.startswith('['):
            try:
                return json.loads(text)
            except json.JSONDecodeError:
                pass
        return [part.strip() for part in text.split(';') if part.strip()]

    if field_def.type == FieldType.JSON.value:
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return raw

    if field_def.type in (FieldType.NUMBER.value, FieldType.BOOLEAN.value):
        return coerce_filter_value(text, field_def.type)

    if field_def.type == FieldType.DATE.value:
        parsed = coerce_filter_value(text, field_def.type)
        return parsed.strftime("%Y-%m-%d") if isinstance(parsed, date) else raw

    return raw


def _read_records(content: str, fields: List[FieldDefinition], options: ImportOptions) -> List[Dict[str, Any]]:
    if options.format == 'json':
        parsed = json.loads(content)
        if isinstance(parsed, dict) and isinstance(parsed.get('data'), list):
            parsed = parsed['data']
        if not isinstance(parsed, list) or not all(isinstance(r, dict) for r in parsed):
            raise ValueError("JSON import must be a list of objects")
        return parsed

    df = pd.read_csv(
        io.StringIO(content),
        sep=options.delimiter,
        header=0 if options.skip_header else None,
        dtype=str,
        keep_default_na=False,
    )
    if not options.skip_header:
        # Without a header row columns map to fields by position
        names = [f.name for f in fields]
        df.columns = [names[i] if i < len(names) else str(i) for i in range(len(df.columns))]
    return df.to_dict(orient='records')


def import_rows(content: Union[bytes, str], fields: List[FieldDefinition],
                options: Optional[ImportOptions] = None,
                translator: Optional[Translator] = None) -> ImportResult:
    """
    Parse, map, coerce and validate imported rows.

    Unreadable content yields a result with one error and no rows; rows that
    fail validation are counted in `failed` and described in `errors`.

    Raises:
        UnsupportedFormatError: For formats other than csv and json
    """
    options = options or ImportOptions()
    _check_format(options.format)

    text = content.decode('utf-8-sig') if isinstance(content, bytes) else content
    result = ImportResult()

    try:
        records = _read_records(text, fields, options)
    except (ValueError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        logger.error(f"Error reading {options.format} import: {e}")
        result.errors.append(f"Could not read {options.format.upper()} data: {e}")
        return result

    by_name = {f.name: f for f in fields}
    for index, record in enumerate(records, start=1):
        row: FormValues = {}
        for source, raw in record.items():
            target = options.mapping.get(str(source), str(source))
            field_def = by_name.get(target)
            if field_def is None:
                continue
            row[target] = _coerce_import_value(raw, field_def)

        errors = validate_values(fields, row, translator)
        if errors:
            result.failed += 1
            for name, message in errors.items():
                result.errors.append(f"Row {index}: {name}: {message}")
        else:
            result.success += 1
            result.data.append(row)

    logger.info(f"Imported {result.success} rows, {result.failed} failed")
    return result


def render_export_button(rows: List[Dict[str, Any]], fields: List[FieldDefinition],
                         options: Optional[ExportOptions] = None, key: str = "autoui_export",
                         translator: Optional[Translator] = None) -> bool:
    """Render a download button for the exported rows. Returns True when clicked."""
    options = options or ExportOptions()
    t = translator or get_translator()
    try:
        data = export_rows(rows, fields, options)
    except UnsupportedFormatError as e:
        st.error(str(e))
        return False

    return bool(st.download_button(
        label=t.t('export.download', format=options.format.upper()),
        data=data,
        file_name=f"{options.file_name}.{options.format}",
        mime=MIME_TYPES[options.format],
        key=key,
    ))


def render_import_uploader(fields: List[FieldDefinition], options: Optional[ImportOptions] = None,
                           key: str = "autoui_import",
                           translator: Optional[Translator] = None) -> Optional[ImportResult]:
    """
    Render a file uploader and import the chosen file.

    Returns:
        ImportResult once a file is uploaded, else None
    """
    options = options or ImportOptions()
    t = translator or get_translator()

    uploaded = st.file_uploader(t.t('import.title', default="Import"), type=SUPPORTED_FORMATS, key=key)
    if uploaded is None:
        return None

    name = getattr(uploaded, 'name', '') or ''
    extension = name.rsplit('.', 1)[-1].lower() if '.' in name else options.format
    if extension in SUPPORTED_FORMATS and extension != options.format:
        options = ImportOptions(format=extension, skip_header=options.skip_header,
                                delimiter=options.delimiter, mapping=options.mapping)

    result = import_rows(uploaded.getvalue(), fields, options, t)
    if result.success:
        st.success(t.t('import.success', default="{{count}} rows imported", count=result.success))
    if result.failed or result.errors:
        st.warning(t.t('import.failed', default="{{count}} rows failed", count=result.failed))
        with st.expander(t.t('import.errors', default="Import errors")):
            for error in result.errors:
                st.write(f"• {error}")
    return result
