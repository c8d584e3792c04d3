"""
Flattening of a submission into the row the remote store appends, plus the
inline checks a submission must pass first.
"""

import math
from typing import Any, Dict, List

from schemas import FieldType, Financials, FormField, FormSchema
from pricing import TOTAL_KEY, PAID_KEY, REMAINING_KEY, NIGHTS_KEY, is_payment_field, parse_amount

REQUIRED_MESSAGE = "Este campo es obligatorio"


def guest_text(guest: Any) -> str:
    if hasattr(guest, "model_dump"):
        guest = guest.model_dump()
    if not isinstance(guest, dict):
        return str(guest)
    name = str(guest.get("name") or "").strip()
    id_part = " ".join(str(guest.get(k) or "").strip() for k in ("idType", "idNum")).strip()
    return f"{name} ({id_part})" if id_part else name


def guests_summary(guests: List[Any]) -> str:
    if not guests:
        return ""
    return f"{len(guests)} Adicionales: " + " | ".join(guest_text(g) for g in guests)


def stringify_answer(field: FormField, value: Any) -> Any:
    """Cell value for one field; numbers are left as numbers."""
    if field.type == FieldType.ADDITIONAL_PERSON and isinstance(value, list):
        return guests_summary(value)
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    if value is None:
        return ""
    return value


def assemble(form: FormSchema, answers: Dict[str, Any], financials: Financials, nights: int) -> Dict[str, Any]:
    row: Dict[str, Any] = {"formId": form.id, "formTitle": form.title}
    for field in form.fields:
        row[field.label] = stringify_answer(field, answers.get(field.id))
    row[TOTAL_KEY] = financials.total
    row[PAID_KEY] = financials.paid
    row[REMAINING_KEY] = financials.remaining
    row[NIGHTS_KEY] = nights
    return row


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (list, dict)):
        return not value
    return str(value).strip() == ""


def validate_answers(fields: List[FormField], answers: Dict[str, Any]) -> Dict[str, str]:
    """Field id -> message for every answer that must be fixed before submitting."""
    errors: Dict[str, str] = {}
    for field in fields:
        value = answers.get(field.id)
        if _is_blank(value):
            if field.required:
                errors[field.id] = REQUIRED_MESSAGE
            continue

        if field.type not in (FieldType.NUMBER, FieldType.PAYMENT) and not is_payment_field(field):
            continue
        amount = parse_amount(value)
        if math.isnan(amount):
            errors[field.id] = "Ingresa un número válido"
            continue
        rules = field.validation
        if rules is None:
            continue
        if rules.min is not None and amount < rules.min:
            errors[field.id] = f"El valor mínimo es {rules.min:g}"
        elif rules.max is not None and amount > rules.max:
            errors[field.id] = f"El valor máximo es {rules.max:g}"
    return errors
