"""
Field-definition driven forms, tables and detail views for Streamlit.
"""

from .auto_detail import AutoDetail, format_detail_value
from .auto_form import AutoForm, render_crud_form
from .auto_table import AutoTable, columns_from_fields, pagination_summary
from .data_exchange import ExportOptions, ImportOptions, ImportResult, export_rows, import_rows
from .definitions import (
    Always,
    FetchParams,
    FetchResult,
    FieldDefinition,
    FieldOption,
    FieldType,
    FormLayout,
    FormSection,
    FormTab,
    Predicate,
    TableColumn,
    TableFilter,
    TablePagination,
    TableSorting,
    ValidationRule,
)
from .exceptions import (
    AutoUIError,
    InvalidFieldDefinitionError,
    InvalidSchemaError,
    SchemaLoadError,
    UnsupportedFormatError,
)
from .field_components import FieldComponentMap, FieldRenderContext
from .form_state import CrudForm, FormStatus
from .i18n import Translator, get_translator
from .pydantic_adapter import field_definitions_to_model, model_to_field_definitions, validate_with_pydantic
from .schema_loader import FormSchema, load_form_schema, validate_schema
from .session_store import SessionStore, run_async
from .table_state import CrudTable

__version__ = "0.1.0"
