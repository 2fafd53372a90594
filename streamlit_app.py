"""
Demo Streamlit application for the auto-UI library.
Renders a product catalogue as an editable form, a sortable/filterable table
and a read-only detail view, all driven by one schema file.
"""

import streamlit as st
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional
import logging

from pydantic import BaseModel, Field

from autoui.auto_detail import AutoDetail
from autoui.auto_form import AutoForm, render_crud_form
from autoui.auto_table import AutoTable, column_type_map, columns_from_fields
from autoui.config_loader import configure_logging, get_config_value, load_config
from autoui.data_exchange import ExportOptions, render_export_button, render_import_uploader
from autoui.definitions import FetchParams, FetchResult, TableColumn
from autoui.exceptions import AutoUIError
from autoui.form_state import CrudForm
from autoui.i18n import available_locales, get_translator
from autoui.pydantic_adapter import model_to_field_definitions, validate_with_pydantic
from autoui.schema_loader import FormSchema, load_form_schema
from autoui.session_store import SessionStore, run_async
from autoui.table_pipeline import process_rows
from autoui.table_state import CrudTable

# Configure logging dynamically from config
configure_logging()
logger = logging.getLogger(__name__)

# Load configuration early
try:
    config = load_config()
    page_title = get_config_value('ui', 'page_title', 'Zopio Auto-UI')
    app_version = get_config_value('app', 'version', 'Unknown')
    logger.info(f"Starting app version: {app_version}")
except Exception as e:
    logger.error(f"Failed to load configuration: {e}")
    page_title = "Zopio Auto-UI"

# Page configuration
st.set_page_config(
    page_title=page_title,
    page_icon="🧩",
    layout="wide",
    initial_sidebar_state="expanded"
)

PAGES = ["Form", "Table", "Detail", "Pydantic"]

SAMPLE_PRODUCTS: List[Dict[str, Any]] = [
    {'id': i, 'name': f"Product {i:02d}", 'category': ['hardware', 'software', 'service'][i % 3],
     'price': round(9.99 * i, 2), 'stock': (i * 7) % 40, 'active': i % 4 != 0,
     'release_date': f"2024-{(i % 12) + 1:02d}-15", 'tags': ['new'] if i % 5 == 0 else [],
     'sku': f"SKU-{1000 + i}", 'description': None}
    for i in range(1, 26)
]


class Priority(str, Enum):
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'


class SupportTicket(BaseModel):
    """Model used to show field definitions derived from pydantic."""
    subject: str = Field(min_length=5, max_length=80, title="Subject")
    email: str = Field(title="Contact email")
    priority: Priority = Priority.MEDIUM
    seats: int = Field(default=1, ge=1, le=500)
    due: Optional[date] = None
    notes: Optional[str] = Field(default=None, max_length=500)


def main():
    """Main application entry point."""
    try:
        schema = load_schema()
    except AutoUIError as e:
        logger.error(f"Failed to load schema: {e}")
        st.error(f"❌ {e.message}")
        for suggestion in e.recovery_suggestions:
            st.info(f"• {suggestion}")
        st.stop()
        return

    render_sidebar()
    page = SessionStore.get('page', PAGES[0])

    st.title(schema.title)
    if schema.description:
        st.caption(schema.description)

    if page == "Form":
        render_form_page(schema)
    elif page == "Table":
        render_table_page(schema)
    elif page == "Detail":
        render_detail_page(schema)
    else:
        render_pydantic_page()


@st.cache_resource
def load_schema() -> FormSchema:
    return load_form_schema(get_config_value('schema', 'path', 'schemas/product_schema.yaml'))


def render_sidebar():
    with st.sidebar:
        st.header("Navigation")
        page = st.radio("Page", PAGES, index=PAGES.index(SessionStore.get('page', PAGES[0])))
        SessionStore.set('page', page)

        locales = available_locales()
        current = SessionStore.get('locale', get_config_value('ui', 'locale', 'en'))
        locale = st.selectbox("Language", locales, index=locales.index(current) if current in locales else 0)
        SessionStore.set('locale', locale)

        st.divider()
        st.caption(f"Version {get_config_value('app', 'version', 'Unknown')}")


def _products_changed():
    """Bump the products revision so every table picks up the change on its next render."""
    SessionStore.set('products_revision', SessionStore.get('products_revision', 0) + 1)


def _save_product(values: Dict[str, Any]):
    products = SessionStore.get_or_create('products', lambda: [dict(p) for p in SAMPLE_PRODUCTS])
    product = dict(values)
    product['id'] = max((p['id'] for p in products), default=0) + 1
    products.append(product)
    _products_changed()
    logger.info(f"Saved product '{product.get('name')}' with id {product['id']}")
    SessionStore.set('last_saved', product)


def render_form_page(schema: FormSchema):
    translator = get_translator(SessionStore.get('locale'))
    initial = {f.name: f.default_value for f in schema.fields if f.default_value is not None}

    form = SessionStore.get_or_create(
        'product_form',
        lambda: CrudForm(schema.fields, initial=initial, on_submit=_save_product, translator=translator)
    )
    form.translator = translator

    auto_form = AutoForm(schema.fields, key="product_form", layout=schema.layout, translator=translator)
    submitted = render_crud_form(auto_form, form)

    if submitted is True:
        st.success("✅ Product saved")
    elif submitted is False:
        st.error(f"Please fix {len(form.errors)} error(s) before saving")

    with st.expander("Form state"):
        st.json(form.snapshot(), expanded=False)


def _fetch_products(params: FetchParams) -> FetchResult:
    """Stands in for a server call; the same pipeline runs server-side."""
    products = SessionStore.get_or_create('products', lambda: [dict(p) for p in SAMPLE_PRODUCTS])
    return process_rows(products, params.filters, params.sort, params.page, params.page_size)


def render_table_page(schema: FormSchema):
    translator = get_translator(SessionStore.get('locale'))
    remote = st.toggle("Use fetch_data", value=SessionStore.get('remote_table', False))
    SessionStore.set('remote_table', remote)

    table_key = 'product_table_remote' if remote else 'product_table'
    page_size = get_config_value('table', 'page_size', 10)
    products = SessionStore.get_or_create('products', lambda: [dict(p) for p in SAMPLE_PRODUCTS])

    columns = [TableColumn(key='id', title="ID", sortable=True, width=60)]
    columns += columns_from_fields([f for f in schema.fields if f.type not in ('text', 'json')])

    table = SessionStore.get_or_create(
        table_key,
        lambda: CrudTable(rows=None if remote else products,
                          fetch_data=_fetch_products if remote else None,
                          page_size=page_size,
                          column_types=column_type_map(columns))
    )
    if not SessionStore.get(f"{table_key}_initialized"):
        params = dict(st.query_params)
        if params:
            run_async(table.apply_query_params({k: st.query_params.get_all(k) for k in params}))
        else:
            run_async(table.refresh())
        SessionStore.set(f"{table_key}_initialized", True)
    run_async(table.sync_rows(SessionStore.get('products_revision', 0), products))

    auto_table = AutoTable(
        columns,
        key=table_key,
        selectable=True,
        row_actions={'view': lambda row: SessionStore.set('detail_row', row)},
        bulk_actions={'bulkDelete': lambda rows: _delete_products(table, rows)},
        confirm_actions=['bulkDelete'],
        translator=translator,
    )
    auto_table.render(table)

    st.query_params.from_dict(table.to_query_params())

    with st.expander(translator.t('export.title')):
        render_export_button(products, schema.fields, ExportOptions(format='csv', file_name='products'),
                             key=f"{table_key}_export_csv", translator=translator)
        render_export_button(products, schema.fields, ExportOptions(format='json', file_name='products'),
                             key=f"{table_key}_export_json", translator=translator)
        result = render_import_uploader(schema.fields, key=f"{table_key}_import", translator=translator)
        if result and result.data and st.button("Append imported rows", key=f"{table_key}_append"):
            for row in result.data:
                _save_product(row)
            st.rerun()


def _delete_products(table: CrudTable, rows: List[Dict[str, Any]]):
    ids = {r.get('id') for r in rows}
    products = SessionStore.get('products', [])
    products[:] = [p for p in products if p.get('id') not in ids]
    _products_changed()
    table.set_selected([])
    logger.info(f"Deleted {len(ids)} product(s)")
    run_async(table.sync_rows(SessionStore.get('products_revision', 0), products))


def render_detail_page(schema: FormSchema):
    translator = get_translator(SessionStore.get('locale'))
    products = SessionStore.get_or_create('products', lambda: [dict(p) for p in SAMPLE_PRODUCTS])
    row = SessionStore.get('detail_row') or SessionStore.get('last_saved') or products[0]

    detail = AutoDetail(
        schema.fields,
        layout=schema.layout,
        show_empty_fields=st.toggle("Show empty fields", value=False),
        field_renderers={'price': lambda value, _f: f"**${value:,.2f}**" if value is not None else None},
        title=str(row.get('name', '')),
        translator=translator,
    )
    detail.render(row)


def render_pydantic_page():
    translator = get_translator(SessionStore.get('locale'))
    fields = model_to_field_definitions(
        SupportTicket,
        labels={'seats': "Seats"},
        placeholders={'email': "you@example.com"},
        translator=translator,
    )

    def _submit(values: Dict[str, Any]):
        errors = validate_with_pydantic(SupportTicket, values)
        if errors:
            ticket_form.set_errors(errors)
            raise ValueError(f"Server-side validation failed: {errors}")
        SessionStore.set('last_ticket', values)

    ticket_form = SessionStore.get_or_create(
        'ticket_form',
        lambda: CrudForm(fields, initial={'priority': 'medium', 'seats': 1}, on_submit=_submit,
                         translator=translator)
    )
    result = render_crud_form(AutoForm(fields, key="ticket_form", translator=translator), ticket_form)
    if result is True:
        st.success("✅ Ticket created")
        st.json(SessionStore.get('last_ticket'))


if __name__ == "__main__":
    main()
