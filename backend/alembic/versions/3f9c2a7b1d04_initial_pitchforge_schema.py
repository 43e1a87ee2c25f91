"""initial pitchforge schema

Revision ID: 3f9c2a7b1d04
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9c2a7b1d04'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def _owner() -> sa.Column:
    return sa.Column("user_id", sa.UUID(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("company_name", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("role", sa.String(50), nullable=False),
        sa.Column("plan", sa.String(50), nullable=False),
        sa.Column("stripe_customer_id", sa.String(255), nullable=True, unique=True),
        sa.Column("stripe_subscription_id", sa.String(255), nullable=True),
        sa.Column("subscription_status", sa.String(50), nullable=True),
        sa.Column("current_period_start", sa.DateTime(), nullable=True),
        sa.Column("current_period_end", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index(op.f("ix_users_plan"), "users", ["plan"])

    op.create_table(
        "bulk_jobs",
        sa.Column("id", sa.UUID(), primary_key=True),
        _owner(),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("pitch_level", sa.Integer(), nullable=False),
        sa.Column("total_rows", sa.Integer(), nullable=False),
        sa.Column("valid_rows", sa.Integer(), nullable=False),
        sa.Column("processed_rows", sa.Integer(), nullable=False),
        sa.Column("success_count", sa.Integer(), nullable=False),
        sa.Column("failed_count", sa.Integer(), nullable=False),
        sa.Column("pitch_ids", sa.JSON(), nullable=False),
        sa.Column("errors", sa.JSON(), nullable=False),
        sa.Column("validation_errors", sa.JSON(), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("worker_id", sa.String(64), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f("ix_bulk_jobs_user_id"), "bulk_jobs", ["user_id"])
    op.create_index(op.f("ix_bulk_jobs_status"), "bulk_jobs", ["status"])

    op.create_table(
        "pitches",
        sa.Column("id", sa.UUID(), primary_key=True),
        _owner(),
        sa.Column("business_name", sa.String(255), nullable=False),
        sa.Column("contact_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("address", sa.String(512), nullable=True),
        sa.Column("website_url", sa.String(512), nullable=True),
        sa.Column("industry", sa.String(255), nullable=False),
        sa.Column("sub_industry", sa.String(255), nullable=True),
        sa.Column("google_rating", sa.Float(), nullable=True),
        sa.Column("num_reviews", sa.Integer(), nullable=True),
        sa.Column("custom_message", sa.Text(), nullable=True),
        sa.Column("pitch_level", sa.Integer(), nullable=False),
        sa.Column("html", sa.Text(), nullable=False),
        sa.Column("roi_data", sa.JSON(), nullable=True),
        sa.Column("options", sa.JSON(), nullable=True),
        sa.Column("source", sa.String(20), nullable=False),
        sa.Column("bulk_job_id", sa.UUID(), sa.ForeignKey("bulk_jobs.id", ondelete="SET NULL"), nullable=True),
        sa.Column("share_id", sa.String(32), nullable=False, unique=True),
        *_timestamps(),
    )
    op.create_index(op.f("ix_pitches_user_id"), "pitches", ["user_id"])
    op.create_index(op.f("ix_pitches_bulk_job_id"), "pitches", ["bulk_job_id"])

    op.create_table(
        "narratives",
        sa.Column("id", sa.UUID(), primary_key=True),
        _owner(),
        sa.Column("business_name", sa.String(255), nullable=False),
        sa.Column("industry", sa.String(255), nullable=False),
        sa.Column("inputs", sa.JSON(), nullable=False),
        sa.Column("roi_data", sa.JSON(), nullable=True),
        sa.Column("content", sa.JSON(), nullable=False),
        sa.Column("validation", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("regenerated_sections", sa.JSON(), nullable=False),
        sa.Column("model", sa.String(255), nullable=True),
        sa.Column("input_tokens", sa.Integer(), nullable=False),
        sa.Column("output_tokens", sa.Integer(), nullable=False),
        sa.Column("estimated_cost", sa.Float(), nullable=False),
        *_timestamps(),
    )
    op.create_index(op.f("ix_narratives_user_id"), "narratives", ["user_id"])

    op.create_table(
        "formatted_assets",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column(
            "narrative_id", sa.UUID(), sa.ForeignKey("narratives.id", ondelete="CASCADE"), nullable=False
        ),
        _owner(),
        sa.Column("formatter_type", sa.String(50), nullable=False),
        sa.Column("content", sa.JSON(), nullable=False),
        sa.Column("html", sa.Text(), nullable=False),
        sa.Column("word_count", sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index(op.f("ix_formatted_assets_narrative_id"), "formatted_assets", ["narrative_id"])
    op.create_index(op.f("ix_formatted_assets_user_id"), "formatted_assets", ["user_id"])

    op.create_table(
        "subscriptions",
        sa.Column("stripe_subscription_id", sa.String(255), primary_key=True),
        _owner(),
        sa.Column("stripe_customer_id", sa.String(255), nullable=True),
        sa.Column("plan", sa.String(50), nullable=False),
        sa.Column("status", sa.String(50), nullable=False),
        sa.Column("current_period_start", sa.DateTime(), nullable=True),
        sa.Column("current_period_end", sa.DateTime(), nullable=True),
        sa.Column("cancel_at_period_end", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("canceled_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f("ix_subscriptions_user_id"), "subscriptions", ["user_id"])
    op.create_index(op.f("ix_subscriptions_stripe_customer_id"), "subscriptions", ["stripe_customer_id"])

    op.create_table(
        "usage_records",
        sa.Column("id", sa.String(64), primary_key=True),
        _owner(),
        sa.Column("period", sa.String(7), nullable=False),
        sa.Column("pitches_generated", sa.Integer(), server_default="0", nullable=False),
        sa.Column("bulk_uploads_this_month", sa.Integer(), server_default="0", nullable=False),
        sa.Column("narratives_generated", sa.Integer(), server_default="0", nullable=False),
        sa.Column("ai_regenerations", sa.Integer(), server_default="0", nullable=False),
        sa.Column("market_reports_this_month", sa.Integer(), server_default="0", nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index(op.f("ix_usage_records_user_id"), "usage_records", ["user_id"])
    op.create_index(op.f("ix_usage_records_period"), "usage_records", ["period"])

    op.create_table(
        "cache_entries",
        sa.Column("cache_key", sa.String(32), primary_key=True),
        sa.Column("data_type", sa.String(50), nullable=False),
        sa.Column("params", sa.JSON(), nullable=True),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("cached_at", sa.DateTime(), nullable=False),
        sa.Column("hit_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_hit_at", sa.DateTime(), nullable=True),
        sa.Column("ttl_seconds", sa.Integer(), nullable=False),
    )
    op.create_index(op.f("ix_cache_entries_data_type"), "cache_entries", ["data_type"])
    op.create_index(op.f("ix_cache_entries_cached_at"), "cache_entries", ["cached_at"])

    op.create_table(
        "market_reports",
        sa.Column("id", sa.UUID(), primary_key=True),
        _owner(),
        sa.Column("industry", sa.String(255), nullable=False),
        sa.Column("location", sa.String(255), nullable=False),
        sa.Column("inputs", sa.JSON(), nullable=False),
        sa.Column("report", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index(op.f("ix_market_reports_user_id"), "market_reports", ["user_id"])


def downgrade() -> None:
    for table in (
        "market_reports",
        "cache_entries",
        "usage_records",
        "subscriptions",
        "formatted_assets",
        "narratives",
        "pitches",
        "bulk_jobs",
        "users",
    ):
        op.drop_table(table)
