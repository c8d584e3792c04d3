"""
Schemas for the reservation form builder

Forms, responses and app config travel to the remote store as JSON with the
camelCase keys the browser clients use, so the attribute names match the wire.
"""

import time
from enum import Enum
from uuid import uuid4
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, Field


class FieldType(str, Enum):
    SHORT_TEXT = "short_text"
    LONG_TEXT = "long_text"
    NUMBER = "number"
    SINGLE_SELECT = "single_select"
    CHECKBOX = "checkbox"
    DATE = "date"
    TIME = "time"
    IMAGE_UPLOAD = "image_upload"
    PRODUCT = "product"
    PAYMENT = "payment"
    ADDITIONAL_PERSON = "additional_person"
    STAR_RATING = "star_rating"


class FieldRole(str, Enum):
    """Explicit capability tag; when absent the role is guessed from the label."""
    CHECKIN = "checkin"
    CHECKOUT = "checkout"
    PAYMENT = "payment"


class ValidationRules(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None
    maxSizeMB: Optional[float] = None
    acceptedFormats: Optional[List[str]] = None


class ProductOption(BaseModel):
    label: str
    price: float = Field(0, ge=0)
    isPerNight: bool = False


class Guest(BaseModel):
    name: str = ""
    idType: str = ""
    idNum: str = ""


class FormField(BaseModel):
    id: str = Field(default_factory=lambda: uuid4().hex[:9])
    type: FieldType
    label: str
    placeholder: Optional[str] = None
    required: bool = False
    options: Optional[List[str]] = None
    productOptions: Optional[List[ProductOption]] = None
    validation: Optional[ValidationRules] = None
    additionalPrice: Optional[float] = Field(None, ge=0)
    isPerNight: bool = False
    role: Optional[FieldRole] = None


DEFAULT_THANK_YOU_MESSAGE = (
    "Hola @Nombre, el total de tu reserva es @Total. Has abonado @Abono "
    "y queda pendiente @Pendiente. Nos comunicaremos contigo pronto."
)


class ThankYouScreen(BaseModel):
    title: str = "¡Reserva Confirmada!"
    message: str = DEFAULT_THANK_YOU_MESSAGE
    redirectUrl: Optional[str] = None
    buttonText: Optional[str] = "Ver mis reservas"


class FormSchema(BaseModel):
    id: str = Field(default_factory=lambda: uuid4().hex[:9])
    title: str = "Nuevo Formulario"
    description: str = ""
    isActive: bool = True
    createdAt: int = Field(default_factory=lambda: int(time.time() * 1000))
    fields: List[FormField] = Field(default_factory=list)
    thankYouScreen: ThankYouScreen = Field(default_factory=ThankYouScreen)
    googleSheetUrl: Optional[str] = None
    backgroundImageUrl: Optional[str] = None


class FormResponse(BaseModel):
    id: str = Field(default_factory=lambda: uuid4().hex[:9])
    formId: Optional[str] = None
    submittedAt: int
    answers: Dict[str, Any]


class AppConfig(BaseModel):
    appName: str = "Formularios Ecoparadise"
    logoUrl: str = ""
    faviconUrl: str = ""
    loginImageUrl: str = ""


class Financials(BaseModel):
    total: float = 0.0
    paid: float = 0.0
    remaining: float = 0.0
    nights: int = 0
