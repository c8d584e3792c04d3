"""
Shareable form links.

Two generations are in circulation:
- legacy ``?data=``: the whole form schema, URI-encoded then Base64-encoded,
  so the link works without any store lookup;
- current ``?id=``: a short link that needs the store to look the form up.

``id`` wins when a link carries both.
"""

import json
import base64
import logging
from typing import Dict, Optional
from urllib.parse import quote, unquote, urlencode

from schemas import FormSchema

logger = logging.getLogger(__name__)

INVALID_LINK_MESSAGE = "El enlace del formulario es inválido o está dañado."

# characters encodeURIComponent leaves alone
_URI_SAFE = "-_.!~*'()"


class ShareLinkError(Exception):
    def __init__(self, message: str = INVALID_LINK_MESSAGE):
        super().__init__(message)


def encode_form(form: FormSchema) -> str:
    payload = json.dumps(form.model_dump(mode="json"), ensure_ascii=False, separators=(",", ":"))
    return base64.b64encode(quote(payload, safe=_URI_SAFE).encode("ascii")).decode("ascii")


def decode_form(encoded: str) -> FormSchema:
    # a "+" that was not percent-encoded in the URL arrives as a space
    safe_encoded = (encoded or "").strip().replace(" ", "+")
    safe_encoded += "=" * (-len(safe_encoded) % 4)
    try:
        raw = base64.b64decode(safe_encoded, validate=True).decode("ascii")
        return FormSchema.model_validate(json.loads(unquote(raw, errors="strict")))
    except ValueError as e:
        logger.warning("Error decoding shared form: %s", e)
        raise ShareLinkError() from e


def short_url(base_url: str, form_id: str) -> str:
    return f"{base_url.rstrip('/')}/?{urlencode({'id': form_id})}"


def build_share_urls(base_url: str, form: FormSchema) -> Dict[str, str]:
    return {
        "short_url": short_url(base_url, form.id),
        "legacy_url": f"{base_url.rstrip('/')}/?{urlencode({'data': encode_form(form)})}",
    }


def resolve_shared_form(store, form_id: Optional[str] = None, data: Optional[str] = None) -> Optional[FormSchema]:
    """
    Form behind a share link. Returns None when an ``id`` link points at a form
    the store does not have; raises ShareLinkError for a corrupt ``data`` link
    or a link with neither parameter.
    """
    if form_id:
        return store.fetch_form(form_id)
    if data:
        return decode_form(data)
    raise ShareLinkError()
