"""
Label reconciliation for persisted responses.

The remote store is a spreadsheet whose columns are named after field labels at
submission time, so every read of a stored answer goes through resolve() rather
than direct key access. Labels may have been renamed, re-cased or padded with
whitespace since the row was written, and several forms may share one sheet.
"""

import re
import time
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from schemas import FieldType, FormField, FormResponse, FormSchema, Guest

logger = logging.getLogger(__name__)

OUTDATED_SCRIPT_MESSAGE = (
    "El script de Google Sheets está desactualizado y no soporta 'get_responses'. "
    "Abre Extensiones > Apps Script, pega la versión actual del script y publícalo "
    "como una nueva implementación (Implementar > Gestionar implementaciones > Nueva versión). "
    "Después vuelve a intentarlo."
)

TIMESTAMP_KEYS = ("Fecha", "submittedAt")
_TIMESTAMP_FORMATS = ("%d/%m/%Y %H:%M:%S", "%d/%m/%Y", "%Y-%m-%d %H:%M:%S")

_GUEST_SUMMARY = re.compile(r"^\s*(\d+)\s+Adicionales?\s*:?\s*(.*)$", re.IGNORECASE | re.DOTALL)
_GUEST_ENTRY = re.compile(r"^(.*?)\s*\((\S*)\s*(.*?)\)\s*$")


class ScriptOutdatedError(Exception):
    """The store answered a read with its default save handler's acknowledgement."""

    def __init__(self, message: str = OUTDATED_SCRIPT_MESSAGE):
        super().__init__(message)


def _normalize(label: str) -> str:
    return str(label).strip().lower()


def resolve(row: Dict[str, Any], label: str) -> Any:
    if label in row:
        return row[label]
    wanted = _normalize(label)
    for key, value in row.items():
        if _normalize(key) == wanted:
            return value
    return ""


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return str(value).strip() == ""


def is_relevant(response: FormResponse, form: FormSchema) -> bool:
    """A row belongs to a form if it is tagged with its id or answers any of its labels."""
    if response.formId and response.formId == form.id:
        return True
    return any(not _is_empty(resolve(response.answers, f.label)) for f in form.fields)


def parse_guest_summary(text: str) -> List[Dict[str, str]]:
    """Inverse of the "2 Adicionales: Ana (CC 123) | Luis (CC 456)" column format."""
    text = str(text or "").strip()
    if not text:
        return []
    if text.isdigit():
        return [Guest().model_dump() for _ in range(int(text))]

    match = _GUEST_SUMMARY.match(text)
    if match:
        count, body = int(match.group(1)), match.group(2)
    else:
        count, body = 0, text

    guests = []
    for entry in body.split("|"):
        entry = entry.strip()
        if not entry:
            continue
        parsed = _GUEST_ENTRY.match(entry)
        if parsed:
            guests.append(Guest(name=parsed.group(1), idType=parsed.group(2), idNum=parsed.group(3)).model_dump())
        else:
            guests.append(Guest(name=entry).model_dump())

    while len(guests) < count:
        guests.append(Guest().model_dump())
    return guests


def _comma_key(text: str) -> str:
    return ",".join(part.strip() for part in text.split(","))


def _split_selection(value: Any, field: FormField) -> List[str]:
    if isinstance(value, list):
        return [str(v) for v in value]
    text = str(value or "").strip()
    if not text:
        return []
    known = {_comma_key(label): label for label in [o.label for o in field.productOptions or []] + list(field.options or [])}
    parts = [part.strip() for part in text.split(",")]

    # option labels may themselves contain commas: take the longest known run first
    selected = []
    i = 0
    while i < len(parts):
        for j in range(len(parts), i, -1):
            label = known.get(",".join(parts[i:j]))
            if label is not None:
                selected.append(label)
                i = j
                break
        else:
            if parts[i]:
                selected.append(parts[i])
            i += 1
    return selected


def answers_from_row(fields: List[FormField], row: Dict[str, Any]) -> Dict[str, Any]:
    """Rebuild an id-keyed answer set from a label-keyed stored row."""
    answers: Dict[str, Any] = {}
    for field in fields:
        value = resolve(row, field.label)
        if field.type in (FieldType.PRODUCT, FieldType.CHECKBOX):
            answers[field.id] = _split_selection(value, field)
        elif field.type == FieldType.ADDITIONAL_PERSON:
            answers[field.id] = value if isinstance(value, list) else parse_guest_summary(value)
        else:
            answers[field.id] = value
    return answers


def _checked_millis(millis: float) -> Optional[int]:
    try:
        datetime.fromtimestamp(millis / 1000)
        return int(millis)
    except (ValueError, OverflowError, OSError):
        return None


def parse_timestamp(value: Any) -> Optional[int]:
    """Epoch milliseconds from a stored timestamp, or None when unreadable or out of range."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _checked_millis(value)
    text = str(value).strip()
    if not text:
        return None
    if text.isdigit():
        return _checked_millis(int(text))
    try:
        return int(datetime.fromisoformat(text.replace("Z", "+00:00")).timestamp() * 1000)
    except (ValueError, OverflowError, OSError):
        pass
    for fmt in _TIMESTAMP_FORMATS:
        try:
            return int(datetime.strptime(text, fmt).timestamp() * 1000)
        except (ValueError, OverflowError, OSError):
            continue
    logger.debug("Unreadable submission timestamp: %r", value)
    return None


def normalize_rows(raw: Any) -> List[FormResponse]:
    """Turn a get_responses payload into FormResponse objects."""
    if isinstance(raw, dict) and raw.get("result") == "success":
        raise ScriptOutdatedError()
    if not isinstance(raw, list):
        return []

    responses = []
    now = int(time.time() * 1000)
    for row in raw:
        if not isinstance(row, dict):
            continue
        answers = row["answers"] if isinstance(row.get("answers"), dict) else row

        submitted_at = None
        for key in TIMESTAMP_KEYS:
            submitted_at = parse_timestamp(row.get(key))
            if submitted_at is not None:
                break

        form_id = row.get("formId") or answers.get("formId")
        responses.append(FormResponse(
            formId=str(form_id) if form_id else None,
            submittedAt=submitted_at if submitted_at is not None else now,
            answers=answers,
        ))
    return responses
