"""Structured customer record produced by extraction and consumed by ingestion."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _RecordModel(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)


class ContactInput(_RecordModel):
    """One contact mentioned in the source text."""

    name: str
    email: str | None = None
    phone: str | None = None
    title: str | None = None
    influence_role: str | None = None
    is_primary: bool | None = None


class LegacyContactInput(_RecordModel):
    """Deprecated single-contact shape kept for older extraction payloads."""

    name: str | None = None
    email: str | None = None
    phone: str | None = None
    title: str | None = None
    influence_role: str | None = None


class DealInput(_RecordModel):
    """Deal details mentioned in the source text. Dates are YYYY-MM-DD strings."""

    deal_id: str | None = None
    deal_state: str | None = None
    deal_amount: float | None = None
    deal_amount_currency: str | None = None
    stage: str | None = None
    deal_payment_status: str | None = None
    deal_start_date: str | None = None
    deal_end_date: str | None = None
    deal_expected_signing_date: str | None = None
    deal_signing_date: str | None = None
    deal_policy_state: str | None = None
    deal_health: str | None = None
    payment_frequency: str | None = None
    acquisition_channel_source: str | None = None
    acquisition_campaign_source: str | None = None
    deal_activity: str | None = None
    deal_product: str | None = None


class CustomerRecord(_RecordModel):
    """Top-level customer update record.

    `company_name` and `raw_input` are required by ingestion but optional here
    so missing values surface as a domain validation error.
    """

    company_name: str | None = None
    raw_input: str | None = None
    description: str | None = None
    industry_vertical: str | None = None
    sub_industry: str | None = None
    b2b_or_b2c: str | None = None
    size: str | None = None
    website_url: str | None = None
    country_hq: str | None = None
    other_countries: list[str] | None = None
    revenue: float | None = None
    employee_size: float | None = None
    child_companies: list[str] | None = None
    customer_segment_label: str | None = None
    primary_contact: str | None = None
    account_team: list[str] | None = None
    company_hierarchy: str | None = None
    decision_country: str | None = None
    company_address: str | None = None
    company_legal_entity: str | None = None
    contacts: list[ContactInput] | None = None
    contact: LegacyContactInput | None = None
    deal: DealInput | None = None


class ActorInput(BaseModel):
    """Attribution for the person or process submitting an update."""

    source: str | None = None
    user_id: str | None = None
    user_name: str | None = None


class CustomerUpdateRequest(BaseModel):
    """HTTP payload for structured ingestion."""

    record: CustomerRecord
    actor: ActorInput | None = None


class ExtractionRequest(BaseModel):
    """HTTP payload for free-text extraction followed by ingestion."""

    text: str = Field(min_length=1)
    actor: ActorInput | None = None


class IngestResult(BaseModel):
    """Identifiers touched by one ingestion."""

    company_id: str
    contact_ids: list[str] = Field(default_factory=list)
    deal_id: str | None = None
    log_id: str
    deal_match: Literal["created", "matched_id", "matched_latest"] | None = None
