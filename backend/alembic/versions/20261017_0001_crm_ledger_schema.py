"""crm ledger schema

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 00:00:01
"""

from collections.abc import Sequence
import os

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261017_0001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

_EMBEDDING_DIMENSIONS = 1536
_ENABLE_PGVECTOR = os.getenv("ENABLE_PGVECTOR", "false").strip().lower() in {
    "1",
    "true",
    "yes",
    "on",
}


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "companies",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("industry_vertical", sa.String(length=255), nullable=True),
        sa.Column("sub_industry", sa.String(length=255), nullable=True),
        sa.Column("b2b_or_b2c", sa.String(length=32), nullable=True),
        sa.Column("size", sa.String(length=64), nullable=True),
        sa.Column("website_url", sa.String(length=512), nullable=True),
        sa.Column("country_hq", sa.String(length=128), nullable=True),
        sa.Column("other_countries", sa.JSON(), nullable=True),
        sa.Column("revenue", sa.Float(), nullable=True),
        sa.Column("employee_size", sa.Float(), nullable=True),
        sa.Column("child_companies", sa.JSON(), nullable=True),
        sa.Column("customer_segment_label", sa.String(length=128), nullable=True),
        sa.Column("primary_contact", sa.String(length=255), nullable=True),
        sa.Column("account_team", sa.JSON(), nullable=True),
        sa.Column("company_hierarchy", sa.String(length=255), nullable=True),
        sa.Column("decision_country", sa.String(length=128), nullable=True),
        sa.Column("company_address", sa.Text(), nullable=True),
        sa.Column("company_legal_entity", sa.String(length=255), nullable=True),
        sa.Column("change_history", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_companies_name"),
    )

    op.create_table(
        "products",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_products_name"),
    )

    op.create_table(
        "contacts",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("company_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("influence_role", sa.String(length=128), nullable=True),
        sa.Column("is_primary", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("company_name", sa.String(length=255), nullable=True),
        sa.Column("change_history", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("company_id", "name", name="uq_contacts_company_id_name"),
    )
    op.create_index("ix_contacts_company_id", "contacts", ["company_id"], unique=False)

    op.create_table(
        "deals",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("company_id", sa.String(length=36), nullable=False),
        sa.Column("product_id", sa.String(length=36), nullable=True),
        sa.Column("deal_id", sa.String(length=255), nullable=True),
        sa.Column("deal_state", sa.String(length=64), nullable=True),
        sa.Column("deal_amount", sa.Float(), nullable=True),
        sa.Column("deal_amount_currency", sa.String(length=16), nullable=True),
        sa.Column("stage", sa.String(length=64), nullable=True),
        sa.Column("deal_payment_status", sa.String(length=64), nullable=True),
        sa.Column("deal_start_date", sa.String(length=10), nullable=True),
        sa.Column("deal_end_date", sa.String(length=10), nullable=True),
        sa.Column("deal_expected_signing_date", sa.String(length=10), nullable=True),
        sa.Column("deal_signing_date", sa.String(length=10), nullable=True),
        sa.Column("deal_policy_state", sa.String(length=64), nullable=True),
        sa.Column("deal_health", sa.String(length=64), nullable=True),
        sa.Column("payment_frequency", sa.String(length=64), nullable=True),
        sa.Column("acquisition_channel_source", sa.String(length=255), nullable=True),
        sa.Column("acquisition_campaign_source", sa.String(length=255), nullable=True),
        sa.Column("deal_activity", sa.Text(), nullable=True),
        sa.Column("company_name", sa.String(length=255), nullable=True),
        sa.Column("product_name", sa.String(length=255), nullable=True),
        sa.Column("change_history", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("company_id", "deal_id", name="uq_deals_company_id_deal_id"),
    )
    op.create_index("ix_deals_company_id", "deals", ["company_id"], unique=False)
    op.create_index("ix_deals_company_id_updated_at", "deals", ["company_id", "updated_at"], unique=False)

    op.create_table(
        "interaction_logs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("company_id", sa.String(length=36), nullable=False),
        sa.Column("contact_id", sa.String(length=36), nullable=True),
        sa.Column("deal_id", sa.String(length=36), nullable=True),
        sa.Column("raw_input", sa.Text(), nullable=False),
        sa.Column("employee_id", sa.String(length=255), nullable=True),
        sa.Column("employee_name", sa.String(length=255), nullable=True),
        sa.Column(
            "interaction_type",
            sa.String(length=32),
            server_default=sa.text("'user_input'"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["contact_id"], ["contacts.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["deal_id"], ["deals.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_interaction_logs_company_id", "interaction_logs", ["company_id"], unique=False)

    op.create_table(
        "vector_records",
        sa.Column("id", sa.String(length=255), nullable=False),
        sa.Column("embedding", sa.JSON(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("metadata_json", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    bind = op.get_bind()
    if bind.dialect.name == "postgresql" and _ENABLE_PGVECTOR and _is_pgvector_available(bind):
        op.execute("CREATE EXTENSION IF NOT EXISTS vector")
        op.execute(
            "ALTER TABLE vector_records "
            f"ALTER COLUMN embedding TYPE vector({_EMBEDDING_DIMENSIONS}) USING embedding::text::vector"
        )


def downgrade() -> None:
    op.drop_table("vector_records")
    op.drop_index("ix_interaction_logs_company_id", table_name="interaction_logs")
    op.drop_table("interaction_logs")
    op.drop_index("ix_deals_company_id_updated_at", table_name="deals")
    op.drop_index("ix_deals_company_id", table_name="deals")
    op.drop_table("deals")
    op.drop_index("ix_contacts_company_id", table_name="contacts")
    op.drop_table("contacts")
    op.drop_table("products")
    op.drop_table("companies")


def _is_pgvector_available(bind) -> bool:
    try:
        row = bind.execute(
            sa.text("SELECT 1 FROM pg_available_extensions WHERE name = 'vector' LIMIT 1")
        ).first()
        return row is not None
    except sa.exc.SQLAlchemyError:
        return False
