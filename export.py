import io
import csv
import re
from datetime import datetime
from typing import Iterator, List

from schemas import FieldType, FormResponse, FormSchema
from pricing import financials_from_row, has_priced_fields
from reconciliation import resolve
from submissions import stringify_answer

IMAGE_PLACEHOLDER = "[Imagen Adjunta]"


def export_filename(form: FormSchema) -> str:
    name = re.sub(r"\s+", "_", form.title.strip()) or "formulario"
    return f"{name}_respuestas.csv"


def header_row(form: FormSchema) -> List[str]:
    headers = ["Fecha Envío"] + [f.label for f in form.fields]
    if has_priced_fields(form.fields):
        headers += ["Total", "Abono", "Pendiente"]
    return headers


def format_submitted(millis: int) -> str:
    try:
        return datetime.fromtimestamp(millis / 1000).strftime("%d/%m/%Y %H:%M:%S")
    except (ValueError, OverflowError, OSError):
        return ""


def response_row(form: FormSchema, response: FormResponse, priced: bool) -> List[str]:
    cells = [format_submitted(response.submittedAt)]
    for field in form.fields:
        value = resolve(response.answers, field.label)
        if field.type == FieldType.IMAGE_UPLOAD and value:
            cells.append(IMAGE_PLACEHOLDER)
        else:
            cells.append(str(stringify_answer(field, value)))
    if priced:
        fin = financials_from_row(form.fields, response.answers)
        cells += [f"{fin.total:.2f}", f"{fin.paid:.2f}", f"{fin.remaining:.2f}"]
    return cells


def iter_csv(form: FormSchema, responses: List[FormResponse]) -> Iterator[str]:
    """CSV lines, every cell double-quoted with inner quotes doubled."""
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    priced = has_priced_fields(form.fields)

    writer.writerow(header_row(form))
    yield output.getvalue(); output.seek(0); output.truncate(0)
    for r in responses:
        writer.writerow(response_row(form, r, priced))
        yield output.getvalue(); output.seek(0); output.truncate(0)
