"""
Form session state for auto forms.
Tracks values, dirty/touched state, per-field and whole-form validation and the
submission lifecycle. One CrudForm instance lives for one form session.
"""

import copy
import inspect
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union
import logging

from deepdiff import DeepDiff

from .definitions import FieldDefinition, FieldValue, FormErrors, FormValues
from .i18n import Translator
from .validation import validate_named_field

logger = logging.getLogger(__name__)

SubmitHandler = Callable[[FormValues], Union[None, Awaitable[None]]]


class FormStatus(str, Enum):
    CLEAN = 'clean'
    DIRTY = 'dirty'
    VALIDATING = 'validating'
    SUBMITTING = 'submitting'


def values_differ(a: Any, b: Any) -> bool:
    """Deep inequality used for dirty tracking."""
    if a is b:
        return False
    return bool(DeepDiff(a, b, ignore_order=False, ignore_numeric_type_changes=True))


class CrudForm:
    """
    State machine over a single form session.

    clean (nothing changed) -> dirty (a value differs from the initial
    snapshot) -> validating (blur of a field or explicit validate()) ->
    submitting (while on_submit is pending) -> clean/dirty again.

    Errors never propagate out of this class: a failing on_submit is logged
    and reported as a False return from handle_submit().
    """

    def __init__(self, schema: List[FieldDefinition], initial: Optional[FormValues] = None,
                 on_submit: Optional[SubmitHandler] = None,
                 translator: Optional[Translator] = None):
        self.schema = list(schema)
        self.on_submit = on_submit
        self.translator = translator or Translator()

        self._initial: FormValues = copy.deepcopy(initial or {})
        self.value: FormValues = copy.deepcopy(self._initial)
        self.errors: FormErrors = {}
        self.touched: Set[str] = set()
        self.is_submitting = False
        self.is_validating = False
        # Bumped on reset so widget keys derived from it are re-seeded
        self.version = 0

    @property
    def initial(self) -> FormValues:
        return copy.deepcopy(self._initial)

    @property
    def is_dirty(self) -> bool:
        return bool(self.changed_fields())

    @property
    def status(self) -> FormStatus:
        if self.is_submitting:
            return FormStatus.SUBMITTING
        if self.is_validating:
            return FormStatus.VALIDATING
        if self.is_dirty:
            return FormStatus.DIRTY
        return FormStatus.CLEAN

    def changed_fields(self) -> List[str]:
        """Names of fields whose value differs from the initial snapshot."""
        names = list(self.value.keys())
        names.extend(k for k in self._initial.keys() if k not in self.value)
        return [n for n in names if values_differ(self._initial.get(n), self.value.get(n))]

    def widget_key(self, prefix: str) -> str:
        """Key prefix for widgets rendering this form; changes after reset()."""
        return f"{prefix}_v{self.version}"

    def validate_field(self, name: str, value: FieldValue) -> Optional[str]:
        """
        Validate one field value.

        `required` is checked first (None and '' fail), then each rule in
        order. Unknown field names have no error.

        Returns:
            First error message, or None
        """
        return validate_named_field(self.schema, name, value, self.value, self.translator)

    def _set_field_error(self, name: str, error: Optional[str]):
        if error:
            self.errors[name] = error
        else:
            self.errors.pop(name, None)

    def validate(self) -> bool:
        """
        Validate every non-hidden field regardless of touched state.

        Returns:
            True when there are no errors
        """
        self.is_validating = True
        try:
            new_errors: FormErrors = {}
            for field_def in self.schema:
                if field_def.is_hidden(self.value):
                    continue
                error = self.validate_field(field_def.name, self.value.get(field_def.name))
                if error:
                    new_errors[field_def.name] = error
            self.errors = new_errors
            return not new_errors
        finally:
            self.is_validating = False

    def handle_change(self, new_value: FormValues):
        """
        Replace the form value, re-validating only fields already touched.
        """
        self.value = dict(new_value)

        for name in new_value.keys():
            if name in self.touched:
                self._set_field_error(name, self.validate_field(name, new_value[name]))

    # Alias matching the hook's setValue
    set_value = handle_change

    def set_field_value(self, name: str, value: FieldValue):
        """Change a single field, keeping the others."""
        merged = dict(self.value)
        merged[name] = value
        self.handle_change(merged)

    def set_errors(self, errors: FormErrors):
        self.errors = dict(errors)

    def handle_blur(self, name: str):
        """Mark a field touched and re-validate just that field."""
        self.touched.add(name)
        self.is_validating = True
        try:
            self._set_field_error(name, self.validate_field(name, self.value.get(name)))
        finally:
            self.is_validating = False

    def reset(self):
        """Restore the initial snapshot and clear errors and touched fields."""
        self.value = copy.deepcopy(self._initial)
        self.errors = {}
        self.touched.clear()
        self.version += 1
        logger.debug(f"Form reset to initial snapshot (version {self.version})")

    async def handle_submit(self) -> bool:
        """
        Touch every field, validate, and run on_submit when valid.

        Returns:
            False when validation fails or on_submit raises, True otherwise
        """
        for field_def in self.schema:
            self.touched.add(field_def.name)

        if not self.validate():
            logger.debug(f"Submission blocked by {len(self.errors)} validation error(s)")
            return False

        if self.on_submit is None:
            return True

        try:
            self.is_submitting = True
            result = self.on_submit(copy.deepcopy(self.value))
            if inspect.isawaitable(result):
                await result
            return True
        except Exception as e:
            logger.error(f"Form submission error: {e}", exc_info=True)
            return False
        finally:
            self.is_submitting = False

    def snapshot(self) -> Dict[str, Any]:
        """Read-only view of the current state for callbacks and display."""
        return {
            'value': copy.deepcopy(self.value),
            'errors': dict(self.errors),
            'touched': sorted(self.touched),
            'is_dirty': self.is_dirty,
            'is_submitting': self.is_submitting,
            'status': self.status.value,
        }
