"""Schema-driven rendering and validation of event registration forms.

The renderer turns an event's FormField rows into an ordered render plan and
turns a raw submission into DynamicFormData: a mapping from field key to a
value tagged with its field type. Nothing here touches the database.
"""

import math
import re
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel, StrictBool, StrictInt, model_validator

from event_hub.exceptions import FormValidationError
from event_hub.models.field_type import FieldType
from event_hub.models.form_field import FormField

MAX_TEXT_LENGTH = 250
MAX_TEXTAREA_LENGTH = 2000

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

TRUE_STRINGS = {"true", "on", "1", "yes"}
FALSE_STRINGS = {"false", "off", "0", "no", ""}


class FieldValue(BaseModel):
    """A submitted value tagged with the kind of field it belongs to"""

    kind: FieldType
    # str before date so ISO-looking text answers stay strings
    value: Union[StrictBool, StrictInt, float, str, date]

    @model_validator(mode="after")
    def _value_matches_kind(self):
        if self.kind == FieldType.CHECKBOX:
            if not isinstance(self.value, bool):
                raise ValueError("checkbox value must be a boolean")
        elif self.kind == FieldType.NUMBER:
            if isinstance(self.value, bool) or not isinstance(self.value, (int, float)):
                raise ValueError("number value must be numeric")
        elif self.kind == FieldType.DATE:
            # Snapshots come back from JSON with ISO strings
            if isinstance(self.value, str):
                self.value = date.fromisoformat(self.value)
            elif not isinstance(self.value, date):
                raise ValueError("date value must be a date")
        elif not isinstance(self.value, str):
            raise ValueError(f"{self.kind.value} value must be a string")
        return self

    def plain(self) -> Any:
        if isinstance(self.value, date):
            return self.value.isoformat()
        return self.value


class DynamicFormData(BaseModel):
    """Validated answers keyed by field name"""

    values: Dict[str, FieldValue] = {}

    def as_record(self) -> Dict[str, Any]:
        """Plain JSON record as stored on the registration row"""
        return {key: field_value.plain() for key, field_value in self.values.items()}


class RenderedField(BaseModel):
    field_name: str
    label: str
    field_type: FieldType
    is_required: bool
    placeholder: Optional[str] = None
    options: Optional[List[str]] = None
    field_order: int


def _ordered(fields: Iterable[FormField]) -> List[FormField]:
    # sorted() is stable, so equal field_order keeps the incoming order
    return sorted(fields, key=lambda f: f.field_order)


def render_form(fields: Iterable[FormField]) -> List[RenderedField]:
    """Render plan for a form: one entry per field in ascending field_order"""
    return [
        RenderedField(
            field_name=f.field_name,
            label=f.label,
            field_type=f.field_type,
            is_required=f.is_required,
            placeholder=f.placeholder,
            options=f.options,
            field_order=f.field_order,
        )
        for f in _ordered(fields)
    ]


def _coerce_checkbox(raw: Any) -> bool:
    if raw is None:
        return False
    if isinstance(raw, bool):
        return raw
    text = str(raw).strip().lower()
    if text in TRUE_STRINGS:
        return True
    if text in FALSE_STRINGS:
        return False
    raise ValueError("must be checked or unchecked")


def _coerce_number(raw: Any) -> Union[int, float]:
    if isinstance(raw, bool):
        raise ValueError("must be a valid number")
    if isinstance(raw, (int, float)):
        number = raw
    else:
        text = str(raw).strip()
        try:
            number = int(text)
        except ValueError:
            try:
                number = float(text)
            except ValueError:
                raise ValueError("must be a valid number")
    if isinstance(number, float) and not math.isfinite(number):
        raise ValueError("must be a valid number")
    return number


def _coerce_value(field: FormField, raw: Any) -> Any:
    if field.field_type == FieldType.NUMBER:
        return _coerce_number(raw)

    if not isinstance(raw, (str, int, float, date)):
        raise ValueError("must be a single value")

    text = raw.isoformat() if isinstance(raw, date) else str(raw).strip()

    if field.field_type == FieldType.DATE:
        try:
            return date.fromisoformat(text)
        except ValueError:
            raise ValueError("must be a date in YYYY-MM-DD format")
    if field.field_type == FieldType.SELECT:
        if field.options and text not in field.options:
            raise ValueError("is not one of the available options")
        return text
    if field.field_type == FieldType.EMAIL:
        if not EMAIL_RE.match(text):
            raise ValueError("must be a valid email address")
        return text.lower()
    if field.field_type == FieldType.TEXTAREA:
        if len(text) > MAX_TEXTAREA_LENGTH:
            raise ValueError(f"must be fewer than {MAX_TEXTAREA_LENGTH} characters")
        return text
    if len(text) > MAX_TEXT_LENGTH:
        raise ValueError(f"must be fewer than {MAX_TEXT_LENGTH} characters")
    return text


def _is_empty(raw: Any) -> bool:
    if raw is None:
        return True
    if isinstance(raw, str):
        return raw.strip() == ""
    return False


def validate_submission(
    fields: Iterable[FormField], raw_values: Mapping[str, Any]
) -> DynamicFormData:
    """
    Validate a submission against the form schema.

    Fields are checked in render order. Keys that are not in the schema are
    dropped. Optional fields left empty are omitted from the result;
    checkboxes are always present.

    Args:
        fields: The event's form fields
        raw_values: Submitted values keyed by field name

    Returns:
        DynamicFormData with one tagged value per provided field

    Raises:
        FormValidationError: Listing missing required fields and invalid values
    """
    missing: List[str] = []
    errors: Dict[str, str] = {}
    values: Dict[str, FieldValue] = {}

    for field in _ordered(fields):
        raw = raw_values.get(field.field_name)

        if field.field_type == FieldType.CHECKBOX:
            try:
                checked = _coerce_checkbox(raw)
            except ValueError as e:
                errors[field.field_name] = f"{field.label} {e}"
                continue
            if field.is_required and not checked:
                missing.append(field.field_name)
                continue
            values[field.field_name] = FieldValue(kind=field.field_type, value=checked)
            continue

        if _is_empty(raw):
            if field.is_required:
                missing.append(field.field_name)
            continue

        try:
            coerced = _coerce_value(field, raw)
        except ValueError as e:
            errors[field.field_name] = f"{field.label} {e}"
            continue
        values[field.field_name] = FieldValue(kind=field.field_type, value=coerced)

    if missing or errors:
        raise FormValidationError(missing_fields=missing, field_errors=errors)

    return DynamicFormData(values=values)
