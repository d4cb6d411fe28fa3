"""Company, contact, deal, and history response schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class HistoryEntryRead(BaseModel):
    """Full stored history entry."""

    timestamp: str
    change_type: str
    change_category: str
    summary: str
    changed_fields: list[str] = Field(default_factory=list)
    previous_values: dict[str, Any] = Field(default_factory=dict)
    vector_searchable_text: str = ""
    source: str | None = None
    user_id: str | None = None
    user_name: str | None = None
    version: str | None = None


class HistoryProjectionRead(BaseModel):
    """History entry trimmed for vector-index projection."""

    timestamp: str
    summary: str
    vector_searchable_text: str
    change_type: str
    change_category: str


class CompanyRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
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
    change_history: list[HistoryEntryRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class ContactRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: str
    company_name: str | None = None
    name: str
    email: str | None = None
    phone: str | None = None
    title: str | None = None
    influence_role: str | None = None
    is_primary: bool = False
    change_history: list[HistoryEntryRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class DealRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: str
    company_name: str | None = None
    product_id: str | None = None
    product_name: str | None = None
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
    change_history: list[HistoryEntryRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class CompanySnapshot(BaseModel):
    """Company with its contacts and deals."""

    company: CompanyRead
    contacts: list[ContactRead] = Field(default_factory=list)
    deals: list[DealRead] = Field(default_factory=list)


class InteractionLogRead(BaseModel):
    """Interaction log row enriched with the names it references."""

    id: str
    company_id: str
    contact_id: str | None = None
    deal_id: str | None = None
    raw_input: str
    employee_id: str | None = None
    employee_name: str | None = None
    interaction_type: str
    created_at: datetime
    contact_name: str | None = None
    deal_amount: float | None = None
    stage: str | None = None
    product_name: str | None = None


class CompanyRenameRequest(BaseModel):
    name: str = Field(min_length=1)
    user_id: str | None = None
    user_name: str | None = None


class PrimaryContactRequest(BaseModel):
    contact_id: str = Field(min_length=1)
    user_id: str | None = None
    user_name: str | None = None
