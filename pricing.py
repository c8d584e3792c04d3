"""
Stay length and reservation financials.

Everything here is a pure function of a form's fields plus either live answers
(keyed by field id) or a persisted row (keyed by field label). Amounts are
accumulated unrounded; rounding only happens in format_money.
"""

import math
import re
import logging
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional

from schemas import FieldRole, FieldType, Financials, FormField
import reconciliation

logger = logging.getLogger(__name__)

CHECKIN_PATTERN = re.compile(r"entrada|llegada|check-in|checkin|desde", re.IGNORECASE)
CHECKOUT_PATTERN = re.compile(r"salida|ida|check-out|checkout|hasta", re.IGNORECASE)
PAYMENT_LABEL_PATTERN = re.compile(r"abono|pago|anticipo|seña|adelanto", re.IGNORECASE)

_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_LEADING_FLOAT = re.compile(r"-?(\d+\.?\d*|\.\d+)")

TOTAL_KEY = "Total Calculado"
PAID_KEY = "Total Abono"
REMAINING_KEY = "Saldo Pendiente"
NIGHTS_KEY = "Noches Estancia"

SECONDS_PER_DAY = 24 * 60 * 60


def _find_date_field(fields: List[FormField], role: FieldRole, pattern) -> Optional[FormField]:
    date_fields = [f for f in fields if f.type == FieldType.DATE]
    for f in date_fields:
        if f.role == role:
            return f
    # First match in field order wins; ambiguous labels are not tie-broken.
    for f in date_fields:
        if f.role is None and pattern.search(f.label):
            return f
    return None


def checkin_field(fields: List[FormField]) -> Optional[FormField]:
    return _find_date_field(fields, FieldRole.CHECKIN, CHECKIN_PATTERN)


def checkout_field(fields: List[FormField]) -> Optional[FormField]:
    return _find_date_field(fields, FieldRole.CHECKOUT, CHECKOUT_PATTERN)


def is_payment_field(field: FormField) -> bool:
    if field.role == FieldRole.PAYMENT or field.type == FieldType.PAYMENT:
        return True
    return field.type == FieldType.NUMBER and bool(PAYMENT_LABEL_PATTERN.search(field.label))


def has_priced_fields(fields: List[FormField]) -> bool:
    return any(
        f.type in (FieldType.PRODUCT, FieldType.ADDITIONAL_PERSON) or is_payment_field(f)
        for f in fields
    )


def needs_dates(fields: List[FormField], nights: int) -> bool:
    """True when a per-night price is configured but no stay length is known yet."""
    if nights > 0:
        return False
    for f in fields:
        if f.type == FieldType.PRODUCT and any(o.isPerNight for o in f.productOptions or []):
            return True
        if f.type == FieldType.ADDITIONAL_PERSON and f.isPerNight and f.additionalPrice:
            return True
    return False


def parse_date(value: Any) -> Optional[datetime]:
    """Parse a calendar date answer, anchored at local noon."""
    if isinstance(value, datetime):
        day = value.date()
    elif isinstance(value, date):
        day = value
    else:
        text = str(value or "").strip()
        if not text:
            return None
        try:
            day = date.fromisoformat(text[:10])
        except ValueError:
            logger.debug("Unparseable date answer: %r", value)
            return None
    return datetime.combine(day, time(12, 0))


def compute_nights(fields: List[FormField], answers: Dict[str, Any]) -> int:
    checkin = checkin_field(fields)
    checkout = checkout_field(fields)
    if checkin is None or checkout is None:
        return 0

    start = parse_date(answers.get(checkin.id))
    end = parse_date(answers.get(checkout.id))
    if start is None or end is None:
        return 0

    nights = math.ceil((end - start).total_seconds() / SECONDS_PER_DAY)
    return nights if nights > 0 else 0


def parse_amount(value: Any) -> float:
    """
    Lenient amount parsing: "$30.50" -> 30.5, "1.200,00" -> 1.2.

    Returns NaN when nothing numeric can be read, so callers can tell a missing
    amount apart from a real zero.
    """
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = _NON_NUMERIC.sub("", str(value if value is not None else ""))
    match = _LEADING_FLOAT.match(cleaned)
    if not match:
        return math.nan
    return float(match.group(0))


def _multiplier(per_night: bool, nights: int) -> int:
    return max(nights, 1) if per_night else 1


def compute_financials(fields: List[FormField], answers: Dict[str, Any], nights: int) -> Financials:
    total = 0.0
    paid = 0.0

    for field in fields:
        answer = answers.get(field.id)

        if field.type == FieldType.PRODUCT and field.productOptions:
            selected = answer if isinstance(answer, list) else []
            for label in selected:
                option = next((o for o in field.productOptions if o.label == label), None)
                if option is None:
                    continue
                total += option.price * _multiplier(option.isPerNight, nights)

        elif field.type == FieldType.ADDITIONAL_PERSON:
            count = len(answer) if isinstance(answer, list) else 0
            if count > 0 and field.additionalPrice:
                total += field.additionalPrice * count * _multiplier(field.isPerNight, nights)

        if is_payment_field(field):
            amount = parse_amount(answer)
            if not math.isnan(amount):
                paid += amount

    return Financials(total=total, paid=paid, remaining=total - paid, nights=nights)


def _stored_number(row: Dict[str, Any], key: str) -> float:
    """Strict read of a snapshot cell. NaN when missing or not a clean number."""
    if key not in row:
        return math.nan
    value = row[key]
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return math.nan
    if not isinstance(value, (int, float)):
        return math.nan
    return float(value) if math.isfinite(value) else math.nan


def financials_from_row(fields: List[FormField], row: Dict[str, Any]) -> Financials:
    """
    Financials for a persisted response row.

    The snapshot columns written at submission time win whenever they hold a
    number (0 included); anything missing is recomputed from the row's answers
    resolved by label.
    """
    stored_total = _stored_number(row, TOTAL_KEY)
    stored_paid = _stored_number(row, PAID_KEY)
    stored_nights = _stored_number(row, NIGHTS_KEY)

    if not (math.isnan(stored_total) or math.isnan(stored_paid) or math.isnan(stored_nights)):
        nights = int(stored_nights)
        return Financials(total=stored_total, paid=stored_paid, remaining=stored_total - stored_paid, nights=nights)

    answers = reconciliation.answers_from_row(fields, row)
    nights = compute_nights(fields, answers) if math.isnan(stored_nights) else int(stored_nights)
    recomputed = compute_financials(fields, answers, nights)

    total = recomputed.total if math.isnan(stored_total) else stored_total
    paid = recomputed.paid if math.isnan(stored_paid) else stored_paid
    return Financials(total=total, paid=paid, remaining=total - paid, nights=nights)


def format_money(amount: float) -> str:
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"
