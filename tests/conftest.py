import pytest

from schemas import FieldType, FormField, FormSchema, ProductOption


@pytest.fixture
def hotel_form():
    return FormSchema(
        id="hotel01",
        title="Reserva Cabaña",
        fields=[
            FormField(id="name", type=FieldType.SHORT_TEXT, label="Nombre", required=True),
            FormField(id="in", type=FieldType.DATE, label="Fecha de Entrada"),
            FormField(id="out", type=FieldType.DATE, label="Fecha de Salida"),
            FormField(
                id="room",
                type=FieldType.PRODUCT,
                label="Habitación",
                productOptions=[
                    ProductOption(label="Suite", price=50, isPerNight=True),
                    ProductOption(label="Desayuno", price=8),
                ],
            ),
            FormField(id="guests", type=FieldType.ADDITIONAL_PERSON, label="Acompañantes", additionalPrice=10),
            FormField(id="pay", type=FieldType.PAYMENT, label="Abono / Pago Parcial"),
        ],
    )


@pytest.fixture
def hotel_answers():
    return {
        "name": "Ana",
        "in": "2024-05-01",
        "out": "2024-05-04",
        "room": ["Suite"],
        "guests": [
            {"name": "Luis", "idType": "CC", "idNum": "123"},
            {"name": "Eva", "idType": "CC", "idNum": "456"},
        ],
        "pay": "$30.50",
    }


class FakeStore:
    def __init__(self, forms=None, responses=None, outdated=False):
        self.forms = {f.id: f for f in forms or []}
        self.responses = responses or []
        self.outdated = outdated
        self.submitted = []
        self.saved = []
        self.deleted = []

    def fetch_forms(self):
        return list(self.forms.values())

    def fetch_form(self, form_id):
        return self.forms.get(form_id)

    def save_form(self, form):
        self.saved.append(form)

    def delete_form(self, form_id):
        self.deleted.append(form_id)

    def fetch_responses(self, form_id, sheet_url=None):
        if self.outdated:
            from reconciliation import ScriptOutdatedError
            raise ScriptOutdatedError()
        return self.responses

    def submit(self, row, sheet_url=None):
        self.submitted.append((row, sheet_url))

    def fetch_config(self):
        from schemas import AppConfig
        return AppConfig(appName="Eco")

    def save_config(self, config):
        self.saved.append(config)


@pytest.fixture
def fake_store_factory():
    return FakeStore
