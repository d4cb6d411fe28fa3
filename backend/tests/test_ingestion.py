"""Ingestion contract tests run against both storage backends."""

from __future__ import annotations

import unittest
from typing import Any

from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from crm_ledger.errors import PersistenceError, ValidationError
from crm_ledger.history.types import ChangeActor, EntityKind
from crm_ledger.models import Company, Contact, Deal, InteractionLog, Product
from crm_ledger.models.base import Base
from crm_ledger.schemas.ingest import CustomerRecord
from crm_ledger.services.companies import set_primary_contact
from crm_ledger.services.ingestion import ingest, resolve_contact_inputs
from crm_ledger.storage import InMemoryStorage, SqlAlchemyStorage, StorageBackend


class _StaleCompanyLookupMixin:
    """Simulates a concurrent writer: the company lookup misses a row that exists."""

    def get_entity(self, kind: EntityKind, identity):  # noqa: ANN001
        if kind is EntityKind.COMPANY:
            return None
        return super().get_entity(kind, identity)


class _FailingLogMixin:
    def insert_log(self, values) -> str:  # noqa: ANN001
        raise PersistenceError("insert_log failed: disk full")


class IngestionContract:
    """Behaviour every storage backend must share. Subclasses provide `make_storage`."""

    storage: StorageBackend

    def make_storage(self, *mixins: type) -> StorageBackend:
        raise NotImplementedError

    def count_rows(self, kind: EntityKind) -> int:
        raise NotImplementedError

    def setUp(self) -> None:
        self.storage = self.make_storage()
        self.actor = ChangeActor(source="test", user_id="u-7", user_name="Sam")

    def _company(self, company_id: str) -> dict[str, Any]:
        return self.storage.get_entity_by_id(EntityKind.COMPANY, company_id)

    def test_scenario_a_creation_records_no_history(self) -> None:
        result = ingest(self.storage, {"company_name": "Acme", "raw_input": "first contact"}, self.actor)

        self.assertTrue(result.company_id)
        self.assertEqual(result.contact_ids, [])
        self.assertIsNone(result.deal_id)
        self.assertIsNone(result.deal_match)
        self.assertEqual(self._company(result.company_id)["change_history"], [])

    def test_scenario_b_size_change_is_classified(self) -> None:
        ingest(self.storage, {"company_name": "Acme", "raw_input": "n1", "size": "SMB"}, self.actor)
        result = ingest(self.storage, {"company_name": "Acme", "raw_input": "n2", "size": "Enterprise"}, self.actor)

        history = self._company(result.company_id)["change_history"]
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0]["change_category"], "COMPANY_CLASSIFICATION")
        self.assertEqual(history[0]["change_type"], "major")
        self.assertEqual(history[0]["changed_fields"], ["size"])
        self.assertEqual(history[0]["previous_values"], {"size": "SMB"})
        self.assertEqual(history[0]["source"], "test")
        self.assertEqual(history[0]["user_id"], "u-7")

    def test_scenario_c_omitted_amount_survives_stage_change(self) -> None:
        first = ingest(
            self.storage,
            {
                "company_name": "Acme",
                "raw_input": "opened deal",
                "deal": {"deal_id": "D-1", "deal_amount": 1000, "stage": "discovery"},
            },
            self.actor,
        )
        second = ingest(
            self.storage,
            {"company_name": "Acme", "raw_input": "won it", "deal": {"deal_id": "D-1", "stage": "closed_won"}},
            self.actor,
        )

        self.assertEqual(first.deal_id, second.deal_id)
        self.assertEqual(first.deal_match, "created")
        self.assertEqual(second.deal_match, "matched_id")
        deal = self.storage.get_entity_by_id(EntityKind.DEAL, second.deal_id)
        self.assertEqual(deal["deal_amount"], 1000.0)
        self.assertEqual(deal["stage"], "closed_won")
        self.assertEqual(len(deal["change_history"]), 1)
        self.assertEqual(deal["change_history"][0]["change_category"], "DEAL_STAGE")
        self.assertEqual(deal["change_history"][0]["change_type"], "major")

    def test_scenario_d_is_primary_is_forced_false(self) -> None:
        result = ingest(
            self.storage,
            {"company_name": "Acme", "raw_input": "met Jane", "contacts": [{"name": "Jane", "is_primary": True}]},
            self.actor,
        )

        contact = self.storage.get_entity_by_id(EntityKind.CONTACT, result.contact_ids[0])
        self.assertFalse(contact["is_primary"])

    def test_reingesting_a_chosen_primary_releases_it_on_the_company(self) -> None:
        first = ingest(self.storage, {"company_name": "Acme", "raw_input": "met Jane", "contacts": [{"name": "Jane"}]}, self.actor)
        set_primary_contact(self.storage, first.company_id, first.contact_ids[0], self.actor)
        self.assertEqual(self._company(first.company_id)["primary_contact"], "Jane")

        ingest(
            self.storage,
            {"company_name": "Acme", "raw_input": "Jane emailed", "contacts": [{"name": "Jane", "email": "jane@acme.example"}]},
            self.actor,
        )

        contact = self.storage.get_entity_by_id(EntityKind.CONTACT, first.contact_ids[0])
        self.assertFalse(contact["is_primary"])
        company = self._company(first.company_id)
        self.assertIsNone(company["primary_contact"])
        self.assertEqual(company["change_history"][-1]["changed_fields"], ["primary_contact"])
        self.assertEqual(company["change_history"][-1]["previous_values"], {"primary_contact": "Jane"})

    def test_reingesting_other_contacts_keeps_the_primary(self) -> None:
        first = ingest(self.storage, {"company_name": "Acme", "raw_input": "met Jane", "contacts": [{"name": "Jane"}]}, self.actor)
        set_primary_contact(self.storage, first.company_id, first.contact_ids[0], self.actor)

        ingest(self.storage, {"company_name": "Acme", "raw_input": "met Omar", "contacts": [{"name": "Omar"}]}, self.actor)

        self.assertEqual(self._company(first.company_id)["primary_contact"], "Jane")
        jane = self.storage.get_entity_by_id(EntityKind.CONTACT, first.contact_ids[0])
        self.assertTrue(jane["is_primary"])

    def test_reingesting_same_record_adds_no_history(self) -> None:
        record = {
            "company_name": "Acme",
            "raw_input": "same note",
            "industry_vertical": "Retail",
            "contacts": [{"name": "Jane", "email": "jane@acme.example"}],
            "deal": {"deal_id": "D-1", "stage": "discovery"},
        }
        first = ingest(self.storage, record, self.actor)
        second = ingest(self.storage, record, self.actor)

        self.assertEqual(first.company_id, second.company_id)
        self.assertEqual(first.contact_ids, second.contact_ids)
        self.assertEqual(first.deal_id, second.deal_id)
        self.assertNotEqual(first.log_id, second.log_id)
        self.assertEqual(self._company(second.company_id)["change_history"], [])
        contact = self.storage.get_entity_by_id(EntityKind.CONTACT, second.contact_ids[0])
        self.assertEqual(contact["change_history"], [])
        deal = self.storage.get_entity_by_id(EntityKind.DEAL, second.deal_id)
        self.assertEqual(deal["change_history"], [])

    def test_empty_dates_are_stored_as_null(self) -> None:
        result = ingest(
            self.storage,
            {
                "company_name": "Acme",
                "raw_input": "dates",
                "deal": {"deal_id": "D-1", "deal_start_date": "", "deal_signing_date": "2026-04-01"},
            },
            self.actor,
        )

        deal = self.storage.get_entity_by_id(EntityKind.DEAL, result.deal_id)
        self.assertIsNone(deal["deal_start_date"])
        self.assertEqual(deal["deal_signing_date"], "2026-04-01")

    def test_product_is_resolved_and_cached_on_deal(self) -> None:
        first = ingest(
            self.storage,
            {"company_name": "Acme", "raw_input": "p", "deal": {"deal_id": "D-1", "deal_product": "Fleet Monitor"}},
            self.actor,
        )
        ingest(
            self.storage,
            {"company_name": "Acme", "raw_input": "p", "deal": {"deal_id": "D-2", "deal_product": "Fleet Monitor"}},
            self.actor,
        )

        deal = self.storage.get_entity_by_id(EntityKind.DEAL, first.deal_id)
        self.assertEqual(deal["product_name"], "Fleet Monitor")
        product = self.storage.find_product("Fleet Monitor")
        self.assertEqual(deal["product_id"], product["id"])

    def test_interaction_log_references_first_contact_and_deal(self) -> None:
        result = ingest(
            self.storage,
            {
                "company_name": "Acme",
                "raw_input": "call notes",
                "contacts": [{"name": "Jane"}, {"name": "Omar"}],
                "deal": {"deal_id": "D-1"},
            },
            self.actor,
        )

        logs = self.storage.list_logs(result.company_id, limit=10, offset=0)
        self.assertEqual(len(logs), 1)
        self.assertEqual(logs[0]["id"], result.log_id)
        self.assertEqual(logs[0]["contact_id"], result.contact_ids[0])
        self.assertEqual(logs[0]["deal_id"], result.deal_id)
        self.assertEqual(logs[0]["raw_input"], "call notes")
        self.assertEqual(logs[0]["employee_id"], "u-7")
        self.assertEqual(logs[0]["employee_name"], "Sam")
        self.assertEqual(logs[0]["interaction_type"], "user_input")

    def test_legacy_contact_and_primary_contact_fallbacks(self) -> None:
        legacy = ingest(
            self.storage,
            {"company_name": "Acme", "raw_input": "x", "contact": {"name": "Lee", "title": "CFO"}},
            self.actor,
        )
        fallback = ingest(
            self.storage,
            {"company_name": "Globex", "raw_input": "x", "primary_contact": "Ana"},
            self.actor,
        )

        lee = self.storage.get_entity_by_id(EntityKind.CONTACT, legacy.contact_ids[0])
        ana = self.storage.get_entity_by_id(EntityKind.CONTACT, fallback.contact_ids[0])
        self.assertEqual(lee["title"], "CFO")
        self.assertEqual(ana["name"], "Ana")
        self.assertEqual(self._company(fallback.company_id)["primary_contact"], "Ana")

    def test_validation_fails_before_any_write(self) -> None:
        invalid_records = [
            {"raw_input": "no company"},
            {"company_name": "  ", "raw_input": "blank company"},
            {"company_name": "Acme"},
            {"company_name": "Acme", "raw_input": "x", "contacts": [{"name": " "}]},
            {"company_name": "Acme", "raw_input": "x", "contacts": [{"email": "nameless@example.com"}]},
            {"company_name": "Acme", "raw_input": "x", "revenue": "lots"},
        ]
        for record in invalid_records:
            with self.subTest(record=record):
                with self.assertRaises(ValidationError):
                    ingest(self.storage, record, self.actor)

        self.assertEqual(self.count_rows(EntityKind.COMPANY), 0)

    def test_failure_after_writes_rolls_back_everything(self) -> None:
        self.storage = self.make_storage(_FailingLogMixin)

        with self.assertRaises(PersistenceError):
            ingest(
                self.storage,
                {"company_name": "Acme", "raw_input": "x", "contacts": [{"name": "Jane"}], "deal": {"deal_id": "D-1"}},
                self.actor,
            )

        self.assertEqual(self.count_rows(EntityKind.COMPANY), 0)
        self.assertEqual(self.count_rows(EntityKind.CONTACT), 0)
        self.assertEqual(self.count_rows(EntityKind.DEAL), 0)

    def test_lookup_then_insert_race_surfaces_as_persistence_error(self) -> None:
        existing = ingest(self.storage, {"company_name": "Acme", "raw_input": "first"}, self.actor)
        racing = self.make_storage(_StaleCompanyLookupMixin)

        with self.assertRaises(PersistenceError):
            ingest(racing, {"company_name": "Acme", "raw_input": "second", "contacts": [{"name": "Jane"}]}, self.actor)

        self.assertEqual(self.count_rows(EntityKind.COMPANY), 1)
        self.assertEqual(self.count_rows(EntityKind.CONTACT), 0)
        self.assertEqual(len(self.storage.list_logs(existing.company_id, limit=10, offset=0)), 1)

    def test_deal_without_id_policy(self) -> None:
        first = ingest(self.storage, {"company_name": "Acme", "raw_input": "a", "deal": {"stage": "lead"}}, self.actor)
        second = ingest(self.storage, {"company_name": "Acme", "raw_input": "b", "deal": {"stage": "demo"}}, self.actor)
        third = ingest(
            self.storage,
            {"company_name": "Acme", "raw_input": "c", "deal": {"stage": "proposal"}},
            self.actor,
            match_latest_deal_without_id=True,
        )

        self.assertEqual(second.deal_match, "created")
        self.assertNotEqual(first.deal_id, second.deal_id)
        self.assertEqual(third.deal_match, "matched_latest")
        self.assertEqual(third.deal_id, second.deal_id)


class ResolveContactInputsTests(unittest.TestCase):
    def test_contacts_array_takes_precedence(self) -> None:
        record = CustomerRecord.model_validate(
            {
                "company_name": "Acme",
                "raw_input": "x",
                "contacts": [{"name": " Jane ", "is_primary": True}],
                "contact": {"name": "Lee"},
                "primary_contact": "Ana",
            }
        )

        resolved = resolve_contact_inputs(record)

        self.assertEqual([contact["name"] for contact in resolved], ["Jane"])
        self.assertFalse(resolved[0]["is_primary"])

    def test_nameless_legacy_contact_falls_through_to_primary_contact(self) -> None:
        record = CustomerRecord.model_validate(
            {"company_name": "Acme", "raw_input": "x", "contact": {"email": "a@b.c"}, "primary_contact": "Ana"}
        )

        self.assertEqual(resolve_contact_inputs(record), [{"name": "Ana", "is_primary": False}])

    def test_no_contact_sources(self) -> None:
        record = CustomerRecord.model_validate({"company_name": "Acme", "raw_input": "x"})

        self.assertEqual(resolve_contact_inputs(record), [])


class InMemoryIngestionTests(IngestionContract, unittest.TestCase):
    def make_storage(self, *mixins: type) -> StorageBackend:
        if not mixins:
            return InMemoryStorage()
        backend = type("PatchedInMemoryStorage", (*mixins, InMemoryStorage), {})()
        # Patched backends share tables with the primary one.
        primary = getattr(self, "storage", None)
        if isinstance(primary, InMemoryStorage):
            backend._entities, backend._products, backend._logs = primary._entities, primary._products, primary._logs
        return backend

    def count_rows(self, kind: EntityKind) -> int:
        return len(self.storage._entities[kind])


class SqlAlchemyIngestionTests(IngestionContract, unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autoflush=False, autocommit=False, future=True)

    @classmethod
    def tearDownClass(cls) -> None:
        cls.engine.dispose()

    def setUp(self) -> None:
        Base.metadata.drop_all(self.engine)
        Base.metadata.create_all(self.engine)
        self._sessions: list[Session] = []
        super().setUp()

    def tearDown(self) -> None:
        for session in self._sessions:
            session.close()

    def make_storage(self, *mixins: type) -> StorageBackend:
        session = self.SessionLocal()
        self._sessions.append(session)
        if not mixins:
            return SqlAlchemyStorage(session)
        return type("PatchedSqlAlchemyStorage", (*mixins, SqlAlchemyStorage), {})(session)

    def count_rows(self, kind: EntityKind) -> int:
        model = {EntityKind.COMPANY: Company, EntityKind.CONTACT: Contact, EntityKind.DEAL: Deal}[kind]
        with self.SessionLocal() as session:
            return session.scalar(select(func.count()).select_from(model))

    def test_rows_land_in_every_table(self) -> None:
        ingest(
            self.storage,
            {
                "company_name": "Acme",
                "raw_input": "full record",
                "contacts": [{"name": "Jane"}],
                "deal": {"deal_id": "D-1", "deal_product": "Fleet Monitor"},
            },
            self.actor,
        )

        with self.SessionLocal() as session:
            for model in (Company, Contact, Deal, Product, InteractionLog):
                with self.subTest(model=model.__name__):
                    self.assertEqual(session.scalar(select(func.count()).select_from(model)), 1)


if __name__ == "__main__":
    unittest.main()
