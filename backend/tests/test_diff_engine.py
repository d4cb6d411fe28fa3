"""Unit tests for field diffing, change classification, and history entry rendering."""

from __future__ import annotations

import unittest
from datetime import datetime, timezone

from crm_ledger.history.diff import build_history_entry, classify_change, compute_diff, summarize_change
from crm_ledger.history.types import ChangeActor, ChangeCategory, ChangeImportance, EntityKind


class ComputeDiffTests(unittest.TestCase):
    def test_new_entity_yields_empty_diff(self) -> None:
        diff = compute_diff(EntityKind.COMPANY, None, {"size": "SMB", "industry_vertical": "Retail"})

        self.assertFalse(diff)
        self.assertEqual(diff.changed_fields, [])
        self.assertEqual(diff.previous_values, {})

    def test_absent_and_null_incoming_values_are_not_changes(self) -> None:
        previous = {"size": "SMB", "country_hq": "France"}

        diff = compute_diff(EntityKind.COMPANY, previous, {"size": None, "website_url": None})

        self.assertFalse(diff)

    def test_changed_fields_follow_allow_list_order(self) -> None:
        previous = {"size": "SMB", "industry_vertical": "Retail", "revenue": 10.0}
        incoming = {"revenue": 20.0, "size": "Enterprise", "industry_vertical": "Retail"}

        diff = compute_diff(EntityKind.COMPANY, previous, incoming)

        self.assertEqual(diff.changed_fields, ["size", "revenue"])
        self.assertEqual(diff.previous_values, {"size": "SMB", "revenue": 10.0})

    def test_untracked_fields_are_ignored(self) -> None:
        previous = {"id": "a", "name": "Acme", "company_name": "Acme"}

        diff = compute_diff(EntityKind.CONTACT, previous, {"id": "b", "name": "Jane", "company_name": "Other"})

        self.assertFalse(diff)

    def test_lists_compare_by_content(self) -> None:
        previous = {"other_countries": ["DE", "FR"]}

        unchanged = compute_diff(EntityKind.COMPANY, previous, {"other_countries": ["DE", "FR"]})
        changed = compute_diff(EntityKind.COMPANY, previous, {"other_countries": ["DE"]})

        self.assertFalse(unchanged)
        self.assertEqual(changed.changed_fields, ["other_countries"])

    def test_null_previous_value_is_recorded(self) -> None:
        diff = compute_diff(EntityKind.DEAL, {"deal_amount": None}, {"deal_amount": 500.0})

        self.assertEqual(diff.previous_values, {"deal_amount": None})

    def test_explicit_field_list_overrides_allow_list(self) -> None:
        diff = compute_diff(EntityKind.COMPANY, {"name": "Acme"}, {"name": "Acme Corp"}, fields=("name",))

        self.assertEqual(diff.changed_fields, ["name"])


class ClassifyChangeTests(unittest.TestCase):
    def test_company_rules_apply_in_order(self) -> None:
        self.assertEqual(
            classify_change(EntityKind.COMPANY, ["revenue", "size"]),
            (ChangeCategory.COMPANY_CLASSIFICATION, ChangeImportance.MAJOR),
        )
        self.assertEqual(
            classify_change(EntityKind.COMPANY, ["employee_size", "website_url"]),
            (ChangeCategory.COMPANY_METRICS, ChangeImportance.MAJOR),
        )
        self.assertEqual(
            classify_change(EntityKind.COMPANY, ["country_hq"]),
            (ChangeCategory.COMPANY_DETAILS, ChangeImportance.MINOR),
        )
        self.assertEqual(
            classify_change(EntityKind.COMPANY, ["description"]),
            (ChangeCategory.GENERAL_UPDATE, ChangeImportance.MINOR),
        )

    def test_contact_info_wins_over_role(self) -> None:
        self.assertEqual(
            classify_change(EntityKind.CONTACT, ["email", "title"]),
            (ChangeCategory.CONTACT_INFO, ChangeImportance.MINOR),
        )
        self.assertEqual(
            classify_change(EntityKind.CONTACT, ["influence_role"]),
            (ChangeCategory.CONTACT_ROLE, ChangeImportance.MAJOR),
        )
        self.assertEqual(
            classify_change(EntityKind.CONTACT, ["is_primary"]),
            (ChangeCategory.GENERAL_UPDATE, ChangeImportance.MINOR),
        )

    def test_deal_rules(self) -> None:
        self.assertEqual(
            classify_change(EntityKind.DEAL, ["deal_amount", "deal_state"]),
            (ChangeCategory.DEAL_STAGE, ChangeImportance.MAJOR),
        )
        self.assertEqual(
            classify_change(EntityKind.DEAL, ["deal_amount"]),
            (ChangeCategory.DEAL_VALUE, ChangeImportance.MAJOR),
        )
        self.assertEqual(
            classify_change(EntityKind.DEAL, ["deal_expected_signing_date"]),
            (ChangeCategory.DEAL_TIMELINE, ChangeImportance.MAJOR),
        )
        self.assertEqual(
            classify_change(EntityKind.DEAL, ["payment_frequency"]),
            (ChangeCategory.GENERAL_UPDATE, ChangeImportance.MINOR),
        )

    def test_classification_is_deterministic_regardless_of_field_order(self) -> None:
        forward = classify_change(EntityKind.DEAL, ["stage", "deal_amount", "deal_signing_date"])
        backward = classify_change(EntityKind.DEAL, ["deal_signing_date", "deal_amount", "stage"])

        self.assertEqual(forward, backward)


class HistoryEntryTests(unittest.TestCase):
    def test_summaries_use_category_templates(self) -> None:
        size_diff = compute_diff(EntityKind.COMPANY, {"size": "SMB"}, {"size": "Enterprise"})
        self.assertEqual(
            summarize_change(EntityKind.COMPANY, size_diff, {"size": "Enterprise"}, display_name="Acme"),
            "Changed Acme's size from SMB to Enterprise",
        )

        stage_diff = compute_diff(EntityKind.DEAL, {"stage": "discovery"}, {"stage": "closed_won"})
        self.assertEqual(
            summarize_change(EntityKind.DEAL, stage_diff, {"stage": "closed_won"}),
            "Deal stage changed from discovery to closed_won",
        )

        amount_diff = compute_diff(EntityKind.DEAL, {"deal_amount": None}, {"deal_amount": 1000.0})
        self.assertEqual(
            summarize_change(EntityKind.DEAL, amount_diff, {"deal_amount": 1000.0}),
            "Deal amount updated from 0 to 1000.0",
        )

    def test_build_history_entry_returns_none_without_changes(self) -> None:
        entry = build_history_entry(EntityKind.COMPANY, {"size": "SMB"}, {"size": "SMB"}, ChangeActor())

        self.assertIsNone(entry)

    def test_build_history_entry_carries_actor_and_marks_major_changes(self) -> None:
        actor = ChangeActor(source="UI", user_id="u-1", user_name="Robin")
        now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

        entry = build_history_entry(
            EntityKind.CONTACT,
            {"title": "Engineer"},
            {"title": "CTO"},
            actor,
            display_name="Jane",
            now=now,
        )

        assert entry is not None
        payload = entry.to_dict()
        self.assertEqual(payload["timestamp"], now.isoformat())
        self.assertEqual(payload["change_type"], "major")
        self.assertEqual(payload["change_category"], "CONTACT_ROLE")
        self.assertEqual(payload["summary"], "Updated Jane's title from Engineer to CTO")
        self.assertEqual(payload["changed_fields"], ["title"])
        self.assertEqual(payload["previous_values"], {"title": "Engineer"})
        self.assertEqual(payload["source"], "UI")
        self.assertEqual(payload["user_id"], "u-1")
        self.assertEqual(payload["user_name"], "Robin")
        self.assertEqual(payload["version"], "1.0")
        self.assertIn("Changed fields: title.", payload["vector_searchable_text"])
        self.assertIn("Previous values: title: Engineer.", payload["vector_searchable_text"])
        self.assertTrue(payload["vector_searchable_text"].endswith("This is a significant change."))

    def test_minor_entries_have_no_significance_marker(self) -> None:
        entry = build_history_entry(
            EntityKind.CONTACT,
            {"email": None},
            {"email": "jane@example.com"},
            ChangeActor(),
            display_name="Jane",
        )

        assert entry is not None
        self.assertEqual(entry.change_type, ChangeImportance.MINOR)
        self.assertNotIn("significant", entry.vector_searchable_text)
        self.assertIn("email: unspecified", entry.vector_searchable_text)


if __name__ == "__main__":
    unittest.main()
