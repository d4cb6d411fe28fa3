"""Unit tests for the LLM extractor's customer record contract."""

from __future__ import annotations

import json
import unittest
from datetime import date
from unittest import mock

from crm_ledger.extraction.llm_extractor import (
    CUSTOMER_UPDATE_FUNCTION,
    LLMExtractionError,
    LLMExtractor,
    OpenAIChatCompletionsClient,
    get_extraction_system_prompt,
)
from crm_ledger.schemas.ingest import DealInput


class _StubClient:
    def __init__(self, payload) -> None:  # noqa: ANN001
        self.payload = payload
        self.calls: list[tuple[str, date]] = []

    def call_function(self, text: str, *, today: date):
        self.calls.append((text, today))
        return self.payload


class _FakeResponse:
    def __init__(self, body: dict) -> None:
        self._raw = json.dumps(body).encode("utf-8")

    def read(self) -> bytes:
        return self._raw

    def __enter__(self) -> "_FakeResponse":
        return self

    def __exit__(self, *exc_info) -> None:  # noqa: ANN002
        return None


class LLMExtractorContractTests(unittest.TestCase):
    def test_payload_becomes_customer_record(self) -> None:
        client = _StubClient(
            {
                "company_name": "Acme Robotics",
                "raw_input": "Met Priya at Acme.",
                "employee_size": 1200,
                "contacts": [{"name": "Priya Shah", "title": "Head of Procurement", "is_primary": True}],
                "deal": {"deal_amount": 250000, "deal_product": "Fleet Monitor", "deal_id": 42},
                "confidence": 0.9,
            }
        )
        extractor = LLMExtractor(client, today=date(2026, 5, 1))

        record = extractor.extract("  Met Priya at Acme.  ")

        self.assertEqual(client.calls, [("Met Priya at Acme.", date(2026, 5, 1))])
        self.assertEqual(record.company_name, "Acme Robotics")
        self.assertEqual(record.employee_size, 1200.0)
        self.assertEqual(record.contacts[0].name, "Priya Shah")
        self.assertEqual(record.deal.deal_id, "42")
        self.assertEqual(record.deal.deal_product, "Fleet Monitor")
        self.assertEqual(extractor.last_raw_output["confidence"], 0.9)

    def test_missing_raw_input_is_filled_from_source_text(self) -> None:
        extractor = LLMExtractor(_StubClient({"company_name": "Acme"}))

        record = extractor.extract("Acme wants a demo")

        self.assertEqual(record.raw_input, "Acme wants a demo")

    def test_malformed_payloads_raise(self) -> None:
        for payload in (["not", "an", "object"], {"company_name": "Acme", "contacts": [{"title": "CTO"}]}):
            with self.subTest(payload=payload):
                with self.assertRaises(LLMExtractionError):
                    LLMExtractor(_StubClient(payload)).extract("notes")

    def test_empty_text_is_rejected(self) -> None:
        with self.assertRaises(LLMExtractionError):
            LLMExtractor(_StubClient({})).extract("   ")

    def test_function_schema_requires_company_and_raw_input(self) -> None:
        self.assertEqual(CUSTOMER_UPDATE_FUNCTION["name"], "customer_update")
        self.assertEqual(CUSTOMER_UPDATE_FUNCTION["parameters"]["required"], ["company_name", "raw_input"])
        self.assertIn("{today}", get_extraction_system_prompt())

    def test_function_schema_offers_every_deal_field(self) -> None:
        deal_properties = CUSTOMER_UPDATE_FUNCTION["parameters"]["properties"]["deal"]["properties"]

        self.assertIn("deal_health", deal_properties)
        self.assertEqual(set(deal_properties), set(DealInput.model_fields))


class OpenAIChatCompletionsClientTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = OpenAIChatCompletionsClient(api_key="sk-test", model="gpt-4o-mini")

    def test_forced_tool_call_arguments_are_decoded(self) -> None:
        body = {
            "choices": [
                {
                    "message": {
                        "tool_calls": [
                            {"function": {"name": "customer_update", "arguments": '{"company_name": "Acme"}'}}
                        ]
                    }
                }
            ]
        }
        with mock.patch("urllib.request.urlopen", return_value=_FakeResponse(body)) as urlopen:
            arguments = self.client.call_function("Acme notes", today=date(2026, 5, 1))

        self.assertEqual(arguments, {"company_name": "Acme"})
        request = urlopen.call_args.args[0]
        sent = json.loads(request.data.decode("utf-8"))
        self.assertEqual(sent["tool_choice"]["function"]["name"], "customer_update")
        self.assertIn("2026-05-01", sent["messages"][0]["content"])
        self.assertEqual(request.get_header("Authorization"), "Bearer sk-test")

    def test_refusal_and_missing_tool_call_raise(self) -> None:
        for message in ({"refusal": "cannot help"}, {"content": "plain text"}):
            body = {"choices": [{"message": message}]}
            with self.subTest(message=message):
                with mock.patch("urllib.request.urlopen", return_value=_FakeResponse(body)):
                    with self.assertRaises(LLMExtractionError):
                        self.client.call_function("notes", today=date(2026, 5, 1))


if __name__ == "__main__":
    unittest.main()
