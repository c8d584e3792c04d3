import math

import pytest

from pricing import (
    compute_financials,
    compute_nights,
    financials_from_row,
    format_money,
    has_priced_fields,
    needs_dates,
    parse_amount,
)
from schemas import FieldRole, FieldType, FormField


def dates(checkin_label="Fecha de Entrada", checkout_label="Fecha de Salida"):
    return [
        FormField(id="a", type=FieldType.DATE, label=checkin_label),
        FormField(id="b", type=FieldType.DATE, label=checkout_label),
    ]


@pytest.mark.parametrize("start,end,expected", [
    ("2024-05-01", "2024-05-04", 3),
    ("2024-03-09", "2024-03-11", 2),
    ("2024-05-01", "2024-05-01", 0),
    ("2024-05-04", "2024-05-01", 0),
    ("2024-02-28", "2024-03-01", 2),
])
def test_compute_nights(start, end, expected):
    assert compute_nights(dates(), {"a": start, "b": end}) == expected


def test_compute_nights_missing_answer_or_field():
    assert compute_nights(dates(), {"a": "2024-05-01"}) == 0
    assert compute_nights(dates(), {"a": "2024-05-01", "b": ""}) == 0
    assert compute_nights(dates("Cumpleaños", "Fecha de Salida"), {"a": "2024-05-01", "b": "2024-05-03"}) == 0


def test_compute_nights_uses_date_part_of_timestamps():
    answers = {"a": "2024-05-01T05:00:00.000Z", "b": "2024-05-03T05:00:00.000Z"}
    assert compute_nights(dates(), answers) == 2


def test_compute_nights_first_matching_field_wins():
    fields = [
        FormField(id="x", type=FieldType.DATE, label="Llegada vuelo"),
        FormField(id="a", type=FieldType.DATE, label="Check-in"),
        FormField(id="b", type=FieldType.DATE, label="Check-out"),
    ]
    answers = {"x": "2024-05-02", "a": "2024-05-01", "b": "2024-05-05"}
    assert compute_nights(fields, answers) == 3


def test_compute_nights_prefers_role_tags():
    fields = [
        FormField(id="x", type=FieldType.DATE, label="Desde cuándo nos conoces"),
        FormField(id="a", type=FieldType.DATE, label="Primer día", role=FieldRole.CHECKIN),
        FormField(id="b", type=FieldType.DATE, label="Último día", role=FieldRole.CHECKOUT),
    ]
    answers = {"x": "2020-01-01", "a": "2024-05-01", "b": "2024-05-03"}
    assert compute_nights(fields, answers) == 2


def test_reservation_scenario(hotel_form):
    answers = {"in": "2024-05-01", "out": "2024-05-04", "room": ["Suite"]}
    nights = compute_nights(hotel_form.fields, answers)
    assert nights == 3
    assert compute_financials(hotel_form.fields, answers, nights).total == 150

    answers["guests"] = [{"name": "Ana"}, {"name": "Luis"}]
    assert compute_financials(hotel_form.fields, answers, nights).total == 170

    answers["pay"] = "$30.50"
    fin = compute_financials(hotel_form.fields, answers, nights)
    assert fin.paid == 30.5
    assert fin.remaining == 139.5
    assert fin.nights == 3


def test_per_night_price_charges_one_night_without_dates(hotel_form):
    fin = compute_financials(hotel_form.fields, {"room": ["Suite", "Desayuno"]}, 0)
    assert fin.total == 58


def test_additional_person_per_night():
    fields = [FormField(id="g", type=FieldType.ADDITIONAL_PERSON, label="Adicionales", additionalPrice=15, isPerNight=True)]
    fin = compute_financials(fields, {"g": [{}, {}, {}]}, 2)
    assert fin.total == 90


def test_stale_product_options_contribute_nothing(hotel_form):
    fin = compute_financials(hotel_form.fields, {"room": ["Penthouse"]}, 2)
    assert fin.total == 0


def test_payment_like_number_fields_by_label():
    fields = [
        FormField(id="n1", type=FieldType.NUMBER, label="Anticipo"),
        FormField(id="n2", type=FieldType.NUMBER, label="Seña"),
        FormField(id="n3", type=FieldType.NUMBER, label="Edad"),
        FormField(id="t", type=FieldType.SHORT_TEXT, label="Pago con tarjeta"),
    ]
    fin = compute_financials(fields, {"n1": "20", "n2": 5, "n3": "40", "t": "100"}, 0)
    assert fin.paid == 25
    assert fin.total == 0
    assert fin.remaining == -25


def test_unpriced_schema_has_zero_financials():
    fields = [
        FormField(id="a", type=FieldType.SHORT_TEXT, label="Nombre"),
        FormField(id="b", type=FieldType.STAR_RATING, label="Calificación"),
    ]
    fin = compute_financials(fields, {"a": "Ana", "b": 5}, 4)
    assert (fin.total, fin.paid, fin.remaining) == (0, 0, 0)
    assert not has_priced_fields(fields)


def test_compute_financials_is_pure(hotel_form, hotel_answers):
    first = compute_financials(hotel_form.fields, hotel_answers, 3)
    second = compute_financials(hotel_form.fields, hotel_answers, 3)
    assert first == second
    assert first.remaining == first.total - first.paid


@pytest.mark.parametrize("raw,expected", [
    ("$30.50", 30.5),
    ("1,200", 1200.0),
    ("-15", -15.0),
    (".5", 0.5),
    ("1.2.3", 1.2),
    (42, 42.0),
])
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected


@pytest.mark.parametrize("raw", ["", None, "abc", "-", True])
def test_parse_amount_invalid(raw):
    assert math.isnan(parse_amount(raw))


def test_stored_total_wins_over_recomputation(hotel_form):
    row = {"Habitación": "Suite", "Fecha de Entrada": "2024-05-01", "Fecha de Salida": "2024-05-04",
           "Total Calculado": 42, "Total Abono": 2, "Noches Estancia": 3}
    fin = financials_from_row(hotel_form.fields, row)
    assert fin.total == 42
    assert fin.paid == 2
    assert fin.remaining == 40


def test_stored_zero_is_trusted(hotel_form):
    row = {"Habitación": "Suite", "Total Calculado": 0, "Total Abono": 0, "Noches Estancia": 0}
    assert financials_from_row(hotel_form.fields, row).total == 0


def test_missing_snapshot_is_recomputed_by_label(hotel_form):
    row = {
        " fecha de entrada ": "2024-05-01",
        "FECHA DE SALIDA": "2024-05-04",
        "habitación": "Suite",
        "Acompañantes": "2 Adicionales: Luis (CC 123) | Eva (CC 456)",
        "Abono / Pago Parcial": "30.5",
        "Total Calculado": "",
    }
    fin = financials_from_row(hotel_form.fields, row)
    assert fin.nights == 3
    assert fin.total == 170
    assert fin.paid == 30.5
    assert fin.remaining == 139.5


def test_nan_total_recomputed_but_stored_paid_kept(hotel_form):
    row = {"Habitación": "Desayuno", "Total Calculado": float("nan"), "Total Abono": 3}
    fin = financials_from_row(hotel_form.fields, row)
    assert fin.total == 8
    assert fin.paid == 3
    assert fin.remaining == 5


def test_needs_dates(hotel_form):
    assert needs_dates(hotel_form.fields, 0)
    assert not needs_dates(hotel_form.fields, 2)
    assert not needs_dates([FormField(id="x", type=FieldType.SHORT_TEXT, label="Nombre")], 0)


@pytest.mark.parametrize("amount,expected", [
    (100, "$100.00"),
    (1234.5, "$1,234.50"),
    (0, "$0.00"),
    (-5, "-$5.00"),
])
def test_format_money(amount, expected):
    assert format_money(amount) == expected


def test_corrupted_snapshot_is_recomputed(hotel_form):
    row = {"Habitación": "Desayuno", "Total Calculado": "abc123", "Total Abono": " 3 ", "Noches Estancia": "1 noche"}
    fin = financials_from_row(hotel_form.fields, row)
    assert fin.total == 8
    assert fin.paid == 3
    assert fin.nights == 0
