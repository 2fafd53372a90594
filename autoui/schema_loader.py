"""
Schema file loader.
Reads YAML/JSON form schemas, validates their structure and turns them into
field definitions plus an optional layout.
"""

import json
import re
import yaml
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import logging

from .definitions import FieldDefinition, FieldType, FormLayout, LayoutType
from .exceptions import InvalidFieldDefinitionError, InvalidSchemaError, SchemaLoadError

logger = logging.getLogger(__name__)

SCHEMA_EXTENSIONS = ('.yaml', '.yml', '.json')

# Schema-file type names accepted in addition to the field types themselves
TYPE_ALIASES = {
    'integer': FieldType.NUMBER.value,
    'float': FieldType.NUMBER.value,
    'datetime': FieldType.DATE.value,
    'select': FieldType.ENUM.value,
    'textarea': FieldType.TEXT.value,
}

SUPPORTED_FIELD_TYPES = {t.value for t in FieldType} | set(TYPE_ALIASES)

OPTION_TYPES = {FieldType.ENUM.value, 'select'}


@dataclass
class FormSchema:
    """A parsed schema file: title, description, fields and layout."""
    title: str
    fields: List[FieldDefinition]
    description: str = ''
    layout: FormLayout = field(default_factory=FormLayout)
    source: Optional[str] = None

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]


def _iter_field_configs(fields: Any):
    """Yield (name, config) pairs from a mapping keyed by name or a list of dicts."""
    if isinstance(fields, dict):
        for name, config in fields.items():
            yield name, config
    elif isinstance(fields, list):
        for index, config in enumerate(fields):
            name = config.get('name') if isinstance(config, dict) else None
            yield name or f"[{index}]", config


def validate_field_config(field_name: str, field_config: Any) -> List[str]:
    """
    Validate one field configuration.

    Returns:
        List of error messages; empty when valid
    """
    if not isinstance(field_config, dict):
        return [f"Field '{field_name}' config must be a dictionary"]

    errors = []
    field_type = field_config.get('type', FieldType.STRING.value)
    if field_type not in SUPPORTED_FIELD_TYPES:
        errors.append(f"Field '{field_name}' has unsupported type '{field_type}'")

    if field_type in OPTION_TYPES:
        choices = field_config.get('options', field_config.get('choices'))
        if not isinstance(choices, list) or len(choices) == 0:
            errors.append(f"Enum field '{field_name}' choices must be a non-empty list")

    for constraint in ('min_value', 'max_value', 'min', 'max', 'step'):
        if constraint in field_config:
            value = field_config[constraint]
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                errors.append(f"Field '{field_name}' {constraint} must be a number")

    for constraint in ('min_length', 'max_length'):
        if constraint in field_config:
            value = field_config[constraint]
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                errors.append(f"Field '{field_name}' {constraint} must be a non-negative integer")

    if 'pattern' in field_config:
        try:
            re.compile(field_config['pattern'])
        except (re.error, TypeError) as e:
            errors.append(f"Field '{field_name}' has invalid regex pattern: {e}")

    return errors


def _layout_sections(layout: Dict[str, Any]) -> List[Any]:
    sections = list(layout.get('sections') or [])
    for tab in (layout.get('tabs') or []) + (layout.get('steps') or []):
        if isinstance(tab, dict):
            sections.extend(tab.get('sections') or [])
    return sections


def validate_layout_section(section: Any) -> List[str]:
    """Check one layout section's shape; columns must be a positive integer."""
    if not isinstance(section, dict):
        return ["Layout sections must be dictionaries"]
    errors = []
    columns = section.get('columns', 1)
    if isinstance(columns, bool) or not isinstance(columns, int) or columns < 1:
        title = section.get('title') or ", ".join(str(f) for f in section.get('fields', []))
        errors.append(f"Section '{title}' columns must be a positive integer, got {columns!r}")
    return errors


def _layout_field_names(layout: Dict[str, Any]) -> List[str]:
    names = []
    for section in _layout_sections(layout):
        if isinstance(section, dict):
            names.extend(section.get('fields', []))
    return names


def validate_schema(schema: Any) -> List[str]:
    """
    Validate schema structure, field definitions and layout references.

    Args:
        schema: Parsed schema document

    Returns:
        List of error messages; empty when the schema is valid
    """
    if not isinstance(schema, dict):
        return ["Schema must be a dictionary"]

    if 'fields' not in schema:
        return ["Schema must contain 'fields' key"]

    fields = schema['fields']
    if not isinstance(fields, (dict, list)) or not fields:
        return ["Schema 'fields' must be a non-empty mapping or list"]

    errors = []
    seen = set()
    for name, config in _iter_field_configs(fields):
        if name in seen:
            errors.append(f"Duplicate field name '{name}'")
        seen.add(name)
        errors.extend(validate_field_config(name, config))

    layout = schema.get('layout')
    if layout is not None:
        if not isinstance(layout, dict):
            errors.append("Schema 'layout' must be a dictionary")
        else:
            layout_type = layout.get('type')
            if layout_type is not None and layout_type not in {t.value for t in LayoutType}:
                errors.append(f"Unknown layout type '{layout_type}'")
            for section in _layout_sections(layout):
                errors.extend(validate_layout_section(section))
            for name in _layout_field_names(layout):
                if name not in seen:
                    errors.append(f"Layout references unknown field '{name}'")

    return errors


def _normalize_field_config(config: Dict[str, Any]) -> Dict[str, Any]:
    normalized = dict(config)
    raw_type = normalized.get('type', FieldType.STRING.value)
    if raw_type in TYPE_ALIASES:
        normalized['type'] = TYPE_ALIASES[raw_type]
        if raw_type == 'integer' and 'step' not in normalized:
            normalized['step'] = 1
        if raw_type == 'datetime':
            normalized.setdefault('props', {})['datetime'] = True
    return normalized


def field_definitions_from_dict(fields: Union[Dict[str, Any], List[Dict[str, Any]]]) -> List[FieldDefinition]:
    """
    Build field definitions from a schema 'fields' section.

    Raises:
        InvalidFieldDefinitionError: When a field cannot be built
    """
    definitions = []
    for name, config in _iter_field_configs(fields):
        if not isinstance(config, dict):
            raise InvalidFieldDefinitionError(str(name), "config must be a dictionary")
        definitions.append(FieldDefinition.from_dict(_normalize_field_config(config), name=name))
    return definitions


def form_schema_from_dict(schema: Dict[str, Any], source: Optional[str] = None) -> FormSchema:
    """
    Validate a parsed schema document and build a FormSchema.

    Raises:
        InvalidSchemaError: When the document fails validation
    """
    errors = validate_schema(schema)
    if errors:
        for error in errors:
            logger.error(f"Schema error{f' in {source}' if source else ''}: {error}")
        raise InvalidSchemaError(errors, source=source)

    try:
        fields = field_definitions_from_dict(schema['fields'])
    except InvalidFieldDefinitionError as e:
        raise InvalidSchemaError([str(e)], source=source)

    try:
        layout = FormLayout.from_dict(schema['layout']) if schema.get('layout') else FormLayout()
    except (TypeError, ValueError) as e:
        raise InvalidSchemaError([f"Invalid layout: {e}"], source=source)

    return FormSchema(
        title=schema.get('title', 'Untitled Schema'),
        description=schema.get('description', ''),
        fields=fields,
        layout=layout,
        source=source
    )


def load_form_schema(schema_path: Union[str, Path]) -> FormSchema:
    """
    Load a form schema from a YAML or JSON file.

    Args:
        schema_path: Path to the schema file

    Returns:
        FormSchema

    Raises:
        SchemaLoadError: When the file is missing, unreadable or unparseable
        InvalidSchemaError: When the parsed schema is structurally invalid
    """
    full_path = Path(schema_path)

    if not full_path.exists():
        logger.error(f"Schema file not found: {full_path}")
        raise SchemaLoadError(full_path, FileNotFoundError(f"No such file: {full_path}"))

    suffix = full_path.suffix.lower()
    if suffix not in SCHEMA_EXTENSIONS:
        logger.error(f"Unsupported schema file format: {full_path.suffix}")
        raise SchemaLoadError(full_path, ValueError(f"Unsupported schema file format: {full_path.suffix}"))

    try:
        with open(full_path, 'r', encoding='utf-8') as f:
            if suffix == '.json':
                schema = json.load(f)
            else:
                schema = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"YAML parsing error in {full_path}: {e}")
        raise SchemaLoadError(full_path, e)
    except json.JSONDecodeError as e:
        logger.error(f"JSON parsing error in {full_path}: {e}")
        raise SchemaLoadError(full_path, e)
    except OSError as e:
        logger.error(f"Error reading schema {full_path}: {e}")
        raise SchemaLoadError(full_path, e)

    form_schema = form_schema_from_dict(schema, source=str(full_path))
    logger.info(f"Successfully loaded schema: {full_path} ({len(form_schema.fields)} fields)")
    return form_schema


def get_schema_info(form_schema: FormSchema) -> Dict[str, Any]:
    """Summary metadata for a loaded schema."""
    return {
        "title": form_schema.title,
        "description": form_schema.description,
        "field_count": len(form_schema.fields),
        "required_fields": [f.name for f in form_schema.fields if f.required],
        "field_types": {f.name: f.type for f in form_schema.fields},
        "layout": form_schema.layout.type,
    }
