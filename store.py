"""
Client for the spreadsheet-backed webhook that holds forms, responses and
app config.

Every call is a POST of {"action": ..., ...payload} sent as text/plain. Reads
parse the JSON body. Writes never look at the body: the endpoint gives no
usable delivery confirmation, so success is assumed and transport failures are
only logged.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import requests

from schemas import AppConfig, FormResponse, FormSchema
import reconciliation

logger = logging.getLogger(__name__)

HEADERS = {"Content-Type": "text/plain;charset=utf-8"}


class StoreError(Exception):
    """A read from the remote store failed."""


class StoreClient:
    def __init__(self, url: str, timeout: Optional[float] = 30):
        self.url = url
        self.timeout = timeout

    def _target(self, sheet_url: Optional[str]) -> str:
        # per-form sheet URLs shorter than this are leftovers from the builder's empty input
        return sheet_url if sheet_url and len(sheet_url) > 10 else self.url

    def _read(self, payload: Dict[str, Any], url: Optional[str] = None) -> Any:
        try:
            resp = requests.post(url or self.url, data=json.dumps(payload), headers=HEADERS, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except (requests.RequestException, ValueError) as e:
            raise StoreError(f"{payload.get('action')} failed: {e}") from e

    def _write(self, payload: Dict[str, Any], url: Optional[str] = None) -> None:
        try:
            requests.post(url or self.url, data=json.dumps(payload), headers=HEADERS, timeout=self.timeout)
        except requests.RequestException:
            logger.warning("Store write %r was not delivered", payload.get("action", "submit"), exc_info=True)

    # --- Forms ---

    def fetch_forms(self) -> List[FormSchema]:
        try:
            data = self._read({"action": "get_forms"})
        except StoreError:
            logger.warning("Error fetching forms from store", exc_info=True)
            return []
        if not isinstance(data, list):
            return []

        forms = []
        for item in data:
            try:
                forms.append(FormSchema.model_validate(item))
            except ValueError:
                logger.warning("Skipping malformed form schema from store: %r", item.get("id") if isinstance(item, dict) else item)
        return forms

    def fetch_form(self, form_id: str) -> Optional[FormSchema]:
        return next((f for f in self.fetch_forms() if f.id == form_id), None)

    def save_form(self, form: FormSchema) -> None:
        self._write({"action": "save_form", "form": form.model_dump(mode="json")})

    def delete_form(self, form_id: str) -> None:
        self._write({"action": "delete_form", "id": form_id})

    # --- Responses ---

    def fetch_responses(self, form_id: str, sheet_url: Optional[str] = None) -> List[FormResponse]:
        try:
            data = self._read({"action": "get_responses", "formId": form_id}, self._target(sheet_url))
        except StoreError:
            logger.warning("Error fetching responses for form %s", form_id, exc_info=True)
            return []
        return reconciliation.normalize_rows(data)

    def submit(self, row: Dict[str, Any], sheet_url: Optional[str] = None) -> None:
        logger.info("Submitting response for form %s", row.get("formId"))
        self._write(row, self._target(sheet_url))

    # --- Config ---

    def fetch_config(self) -> AppConfig:
        try:
            data = self._read({"action": "get_config"})
        except StoreError:
            logger.warning("Error fetching app config", exc_info=True)
            return AppConfig()
        if not isinstance(data, dict):
            return AppConfig()
        try:
            return AppConfig.model_validate({k: v for k, v in data.items() if v is not None})
        except ValueError:
            logger.warning("Malformed app config from store: %r", data)
            return AppConfig()

    def save_config(self, config: AppConfig) -> None:
        self._write({"action": "save_config", "config": config.model_dump()})
