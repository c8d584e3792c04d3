import re
from typing import Any, Dict, List

from schemas import FieldType, Financials, FormField
from pricing import format_money
from submissions import guest_text


def answer_text(field: FormField, value: Any) -> str:
    if isinstance(value, list):
        if field.type == FieldType.ADDITIONAL_PERSON:
            return ", ".join(guest_text(g) for g in value)
        return ", ".join(str(v) for v in value)
    if value is None:
        return ""
    return str(value)


def interpolate(template: str, fields: List[FormField], answers: Dict[str, Any], financials: Financials) -> str:
    """
    Fill @FieldLabel, @total, @abono, @pendiente and @noches in a confirmation
    message. Tokens with no matching field are left as typed.

    The template is scanned once, so text coming from answers is never
    substituted again. Longer tokens match first ("@Nombre Completo" before
    "@Nombre"), and a field literally labelled like a reserved token shadows it.
    """
    values: Dict[str, str] = {}
    for field in fields:
        label = field.label.strip()
        if label:
            values.setdefault(label.lower(), answer_text(field, answers.get(field.id)))
    values.setdefault("total", format_money(financials.total))
    values.setdefault("abono", format_money(financials.paid))
    values.setdefault("pendiente", format_money(financials.remaining))
    values.setdefault("noches", str(financials.nights))

    tokens = sorted(values, key=len, reverse=True)
    pattern = re.compile("@(" + "|".join(re.escape(t) for t in tokens) + ")", re.IGNORECASE)
    # callable replacement keeps backslashes in answers literal
    return pattern.sub(lambda m: values.get(m.group(1).lower(), m.group(0)), template or "")
