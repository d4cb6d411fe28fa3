"""LLM-backed extractor that turns sales notes into customer records."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Any, Protocol
from urllib import error as urllib_error
from urllib import request as urllib_request

from pydantic import ValidationError

from crm_ledger.config import get_settings
from crm_ledger.extraction.extractor_interface import ExtractorInterface
from crm_ledger.schemas.ingest import CustomerRecord

_DATE_FIELD = {"type": "string", "format": "date"}
_STRING_LIST = {"type": "array", "items": {"type": "string"}}
_CONTACT_PROPERTIES: dict[str, Any] = {
    "name": {"type": "string", "description": "Full name of the contact"},
    "email": {"type": "string"},
    "phone": {"type": "string"},
    "title": {"type": "string", "description": "Job title of the contact"},
    "influence_role": {"type": "string", "description": "Decision maker, influencer, user, etc."},
}

CUSTOMER_UPDATE_FUNCTION: dict[str, Any] = {
    "name": "customer_update",
    "description": "Extract enriched GTM customer info from unstructured text.",
    "parameters": {
        "type": "object",
        "properties": {
            "company_name": {"type": "string", "description": "Name of the company"},
            "description": {"type": "string"},
            "industry_vertical": {"type": "string"},
            "sub_industry": {"type": "string"},
            "b2b_or_b2c": {"type": "string", "description": "Possible values: B2B, B2C, etc."},
            "size": {"type": "string", "description": "General size category e.g. SMB, midmarket."},
            "website_url": {"type": "string"},
            "country_hq": {"type": "string"},
            "other_countries": _STRING_LIST,
            "revenue": {"type": "number"},
            "employee_size": {"type": "number"},
            "child_companies": _STRING_LIST,
            "customer_segment_label": {"type": "string"},
            "primary_contact": {"type": "string"},
            "account_team": _STRING_LIST,
            "company_hierarchy": {"type": "string"},
            "decision_country": {"type": "string"},
            "company_address": {"type": "string"},
            "company_legal_entity": {"type": "string"},
            "contacts": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {**_CONTACT_PROPERTIES, "is_primary": {"type": "boolean"}},
                    "required": ["name"],
                },
            },
            "deal": {
                "type": "object",
                "properties": {
                    "deal_id": {"type": "string"},
                    "deal_state": {"type": "string", "description": "prospect, lead, opportunity, closed_won, lost, etc."},
                    "deal_amount": {"type": "number"},
                    "deal_amount_currency": {"type": "string"},
                    "stage": {"type": "string"},
                    "deal_payment_status": {"type": "string"},
                    "deal_start_date": _DATE_FIELD,
                    "deal_end_date": _DATE_FIELD,
                    "deal_expected_signing_date": _DATE_FIELD,
                    "deal_signing_date": _DATE_FIELD,
                    "deal_policy_state": {"type": "string"},
                    "deal_health": {"type": "string"},
                    "payment_frequency": {"type": "string"},
                    "acquisition_channel_source": {"type": "string"},
                    "acquisition_campaign_source": {"type": "string"},
                    "deal_activity": {"type": "string"},
                    "deal_product": {"type": "string"},
                },
            },
            "raw_input": {"type": "string"},
        },
        "required": ["company_name", "raw_input"],
    },
}
LLM_EXTRACTION_PROMPT_VERSION = "customer_update.v1"
_PROMPT_FILES: dict[str, Path] = {
    "customer_update.v1": Path(__file__).resolve().parent / "prompts" / "customer_update_v1.txt",
}


class LLMExtractionError(RuntimeError):
    """Raised when AI extraction is misconfigured or the provider response is invalid."""


class LLMClient(Protocol):
    """Protocol for pluggable LLM clients used by the extractor."""

    def call_function(self, text: str, *, today: date) -> dict[str, Any]:
        """Return the parsed arguments of the `customer_update` function call."""


@dataclass(slots=True)
class OpenAIChatCompletionsClient:
    """Minimal OpenAI Chat Completions client using stdlib HTTP."""

    api_key: str
    model: str
    base_url: str = "https://api.openai.com/v1"
    timeout_seconds: int = 60

    def call_function(self, text: str, *, today: date) -> dict[str, Any]:
        """Force a `customer_update` tool call and return its decoded arguments."""

        payload = {
            "model": self.model,
            "temperature": 0,
            "messages": [
                {"role": "system", "content": get_extraction_system_prompt().replace("{today}", today.isoformat())},
                {"role": "user", "content": text},
            ],
            "tools": [{"type": "function", "function": CUSTOMER_UPDATE_FUNCTION}],
            "tool_choice": {"type": "function", "function": {"name": CUSTOMER_UPDATE_FUNCTION["name"]}},
        }
        url = f"{self.base_url.rstrip('/')}/chat/completions"
        req = urllib_request.Request(
            url=url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )

        try:
            with urllib_request.urlopen(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read().decode("utf-8")
        except urllib_error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise LLMExtractionError(f"OpenAI HTTP {exc.code}: {detail}") from exc
        except urllib_error.URLError as exc:
            raise LLMExtractionError(f"OpenAI request failed: {exc.reason}") from exc

        try:
            decoded = json.loads(raw)
            message = decoded["choices"][0]["message"]
            refusal = message.get("refusal")
            if isinstance(refusal, str) and refusal.strip():
                raise LLMExtractionError(f"OpenAI refused extraction request: {refusal.strip()}")
            arguments = message["tool_calls"][0]["function"]["arguments"]
            if not isinstance(arguments, str):
                raise TypeError("OpenAI function arguments are not a string")
            return json.loads(arguments)
        except LLMExtractionError:
            raise
        except (KeyError, IndexError, TypeError, json.JSONDecodeError) as exc:
            raise LLMExtractionError("OpenAI returned an unexpected or non-JSON function call") from exc


@lru_cache(maxsize=8)
def get_extraction_system_prompt(version: str = LLM_EXTRACTION_PROMPT_VERSION) -> str:
    prompt_file = _PROMPT_FILES.get(version)
    if prompt_file is None:
        raise LLMExtractionError(f"Extraction prompt version is not registered: {version}")
    try:
        prompt_text = prompt_file.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise LLMExtractionError(f"Failed to load extraction prompt file: {prompt_file}") from exc
    if not prompt_text:
        raise LLMExtractionError(f"Extraction prompt file is empty: {prompt_file}")
    return prompt_text


class LLMExtractor(ExtractorInterface):
    """AI-powered extractor that validates the function-call payload."""

    def __init__(self, client: LLMClient, *, today: date | None = None) -> None:
        self._client = client
        self._today = today
        self.last_raw_output: dict[str, Any] | None = None

    def extract(self, text: str) -> CustomerRecord:
        """Extract a customer record; the source text becomes `raw_input` when omitted."""

        clean_text = text.strip()
        if not clean_text:
            raise LLMExtractionError("Cannot extract from empty text")

        raw_payload = self._client.call_function(clean_text, today=self._today or date.today())
        if not isinstance(raw_payload, dict):
            raise LLMExtractionError("LLM extraction payload must be a JSON object")
        self.last_raw_output = raw_payload

        try:
            record = CustomerRecord.model_validate(raw_payload)
        except ValidationError as exc:
            raise LLMExtractionError(f"LLM extraction payload failed validation: {exc}") from exc
        if not (record.raw_input or "").strip():
            record.raw_input = clean_text
        return record


def get_default_extractor() -> LLMExtractor:
    """Build an extractor from settings, failing loudly when no API key is configured."""

    settings = get_settings()
    if not settings.openai_api_key:
        raise LLMExtractionError("OPENAI_API_KEY is required for extraction")
    return LLMExtractor(
        OpenAIChatCompletionsClient(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout_seconds=settings.openai_timeout_seconds,
        )
    )
