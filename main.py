import os
import io
import json
import logging
import qrcode
from typing import List, Optional, Dict, Any

from fastapi import FastAPI, HTTPException, Depends, Header, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from schemas import AppConfig, Financials, FormSchema
from store import StoreClient
from reconciliation import ScriptOutdatedError, answers_from_row, is_relevant, resolve
from share_links import ShareLinkError, build_share_urls, resolve_shared_form, short_url
from pricing import compute_financials, compute_nights, financials_from_row, needs_dates
from submissions import assemble, validate_answers
from messages import interpolate
from export import export_filename, iter_csv

# Firebase Admin for token verification (Auth)
import firebase_admin
from firebase_admin import auth as fb_auth, credentials as fb_credentials

# --- Config ---
MASTER_SHEET_URL = os.getenv("MASTER_SHEET_URL", "")  # Apps Script webhook in front of the master spreadsheet
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:3000")
STORE_TIMEOUT_SECONDS = float(os.getenv("STORE_TIMEOUT_SECONDS", "30"))
# Legacy ?data= links carry their own sheet URL; only these hosts are posted to
TRUSTED_SHEET_URL_PREFIX = os.getenv("TRUSTED_SHEET_URL_PREFIX", "https://script.google.com/")

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize Firebase Admin if credentials provided
if not firebase_admin._apps:
    fb_creds_json = os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON")
    try:
        if fb_creds_json:
            cred = fb_credentials.Certificate(json.loads(fb_creds_json))
            firebase_admin.initialize_app(cred)
    except (ValueError, IOError) as e:
        # admin endpoints will answer 401 until credentials are fixed
        logger.warning("Firebase Admin not initialized: %s", e)

store = StoreClient(MASTER_SHEET_URL, timeout=STORE_TIMEOUT_SECONDS)

app = FastAPI(title="Reservation Form Builder API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Helpers ---

def verify_admin(authorization: Optional[str] = Header(None)) -> Optional[str]:
    """Verify Firebase ID token from Authorization: Bearer <token>. Returns uid."""
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid Authorization header")
    token = parts[1]
    try:
        decoded = fb_auth.verify_id_token(token)
        return decoded.get("uid")
    except (ValueError, fb_auth.InvalidIdTokenError, fb_auth.CertificateFetchError) as e:
        raise HTTPException(status_code=401, detail=f"Invalid token: {e}")


def get_form_or_404(form_id: str) -> FormSchema:
    form = store.fetch_form(form_id)
    if form is None:
        raise HTTPException(status_code=404, detail="Form not found")
    return form


def load_shared_form(form_id: Optional[str], data: Optional[str]) -> FormSchema:
    try:
        form = resolve_shared_form(store, form_id, data)
    except ShareLinkError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if form is None or not form.isActive:
        raise HTTPException(status_code=404, detail="Form not found")
    return form


def sheet_url_for(form: FormSchema) -> Optional[str]:
    url = form.googleSheetUrl
    if url and not url.startswith(TRUSTED_SHEET_URL_PREFIX):
        logger.warning("Ignoring untrusted sheet URL on form %s", form.id)
        return None
    return url


def outdated_script_error(e: ScriptOutdatedError) -> HTTPException:
    return HTTPException(status_code=502, detail={"code": "SCRIPT_OUTDATED", "message": str(e), "retry": True})


# --- Models ---
class SaveFormResponse(BaseModel):
    form_id: str
    share_url: str
    legacy_url: str


class AnswersRequest(BaseModel):
    answers: Dict[str, Any] = Field(default_factory=dict)


class QuoteResponse(Financials):
    needsDates: bool = False


class SubmitResponse(BaseModel):
    status: str
    title: str
    message: str
    redirectUrl: Optional[str] = None
    buttonText: Optional[str] = None
    financials: Financials


class ResponseItem(BaseModel):
    id: str
    formId: Optional[str] = None
    submittedAt: int
    answers: Dict[str, Any]
    financials: Financials
    message: str = ""


# --- Routes ---
@app.get("/")
def read_root():
    return {"message": "Reservation Form Builder API running"}


@app.get("/api/config", response_model=AppConfig)
def get_config():
    return store.fetch_config()


@app.put("/api/config")
def save_config(config: AppConfig, uid: str = Depends(verify_admin)):
    store.save_config(config)
    return {"status": "ok"}


@app.get("/api/forms")
def list_forms(uid: str = Depends(verify_admin)):
    return {"forms": [f.model_dump(mode="json") for f in store.fetch_forms()]}


@app.post("/api/forms", response_model=SaveFormResponse)
def save_form(form: FormSchema, uid: str = Depends(verify_admin)):
    # whole-schema overwrite; the store keeps no partial updates
    store.save_form(form)
    urls = build_share_urls(PUBLIC_BASE_URL, form)
    return SaveFormResponse(form_id=form.id, share_url=urls["short_url"], legacy_url=urls["legacy_url"])


@app.delete("/api/forms/{form_id}")
def delete_form(form_id: str, uid: str = Depends(verify_admin)):
    store.delete_form(form_id)
    return {"status": "ok"}


@app.get("/api/share", response_model=FormSchema)
def get_shared_form(id: Optional[str] = Query(None), data: Optional[str] = Query(None)):
    return load_shared_form(id, data)


@app.post("/api/share/quote", response_model=QuoteResponse)
def quote(payload: AnswersRequest, id: Optional[str] = Query(None), data: Optional[str] = Query(None)):
    form = load_shared_form(id, data)
    nights = compute_nights(form.fields, payload.answers)
    fin = compute_financials(form.fields, payload.answers, nights)
    return QuoteResponse(**fin.model_dump(), needsDates=needs_dates(form.fields, nights))


@app.post("/api/share/submit", response_model=SubmitResponse)
def submit(payload: AnswersRequest, id: Optional[str] = Query(None), data: Optional[str] = Query(None)):
    form = load_shared_form(id, data)

    errors = validate_answers(form.fields, payload.answers)
    if errors:
        raise HTTPException(status_code=422, detail={"errors": errors})

    nights = compute_nights(form.fields, payload.answers)
    fin = compute_financials(form.fields, payload.answers, nights)
    row = assemble(form, payload.answers, fin, nights)

    # fire and forget: the confirmation is shown whether or not the write lands
    store.submit(row, sheet_url_for(form))

    screen = form.thankYouScreen
    return SubmitResponse(
        status="ok",
        title=screen.title,
        message=interpolate(screen.message, form.fields, payload.answers, fin),
        redirectUrl=screen.redirectUrl,
        buttonText=screen.buttonText,
        financials=fin,
    )


def load_responses(form: FormSchema):
    try:
        responses = store.fetch_responses(form.id, form.googleSheetUrl)
    except ScriptOutdatedError as e:
        raise outdated_script_error(e)
    relevant = [r for r in responses if is_relevant(r, form)]
    return sorted(relevant, key=lambda r: r.submittedAt, reverse=True)


@app.get("/api/forms/{form_id}/responses", response_model=List[ResponseItem])
def list_responses(form_id: str, uid: str = Depends(verify_admin)):
    form = get_form_or_404(form_id)
    result = []
    for r in load_responses(form):
        fin = financials_from_row(form.fields, r.answers)
        result.append(ResponseItem(
            id=r.id,
            formId=r.formId,
            submittedAt=r.submittedAt,
            answers={f.id: resolve(r.answers, f.label) for f in form.fields},
            financials=fin,
            message=interpolate(form.thankYouScreen.message, form.fields, answers_from_row(form.fields, r.answers), fin),
        ))
    return result


@app.get("/api/forms/{form_id}/export/csv")
def export_csv(form_id: str, uid: str = Depends(verify_admin)):
    form = get_form_or_404(form_id)
    responses = load_responses(form)
    return StreamingResponse(
        iter_csv(form, responses),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={export_filename(form)}"},
    )


@app.get("/api/forms/{form_id}/share")
def get_share_links(form_id: str, uid: str = Depends(verify_admin)):
    form = get_form_or_404(form_id)
    return build_share_urls(PUBLIC_BASE_URL, form)


@app.get("/api/forms/{form_id}/qr")
def form_qr(form_id: str):
    url = short_url(PUBLIC_BASE_URL, form_id)
    img = qrcode.make(url)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    buf.seek(0)
    return StreamingResponse(buf, media_type="image/png")
