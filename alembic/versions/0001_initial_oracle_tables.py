"""initial oracle tables

Revision ID: 0001_oracle
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "0001_oracle"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "token_prices",
        sa.Column("id", sa.Integer(), autoincrement=True),
        sa.Column("token", sa.String(64), nullable=False),
        sa.Column("network", sa.String(20), nullable=False),
        sa.Column("timestamp", sa.BigInteger(), nullable=False),
        sa.Column("price", sa.Numeric(30, 8), nullable=False),
        sa.Column("volume_24h", sa.Numeric(38, 8), nullable=True),
        sa.Column("market_cap", sa.Numeric(38, 8), nullable=True),
        sa.Column("source", sa.String(20), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_token_prices")),
        sa.UniqueConstraint("token", "network", "timestamp", name="uq_token_prices_token_network_timestamp"),
    )
    op.create_index(op.f("ix_token_prices_token"), "token_prices", ["token"])
    op.create_index(op.f("ix_token_prices_network"), "token_prices", ["network"])
    op.create_index("ix_token_prices_source_timestamp", "token_prices", ["source", "timestamp"])

    op.create_table(
        "collection_jobs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("token", sa.String(64), nullable=False),
        sa.Column("network", sa.String(20), nullable=False),
        sa.Column("timestamps", sa.JSON(), nullable=False),
        sa.Column("state", sa.String(20), nullable=False),
        sa.Column("total", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("processed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("succeeded", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("skipped", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("missing", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_collection_jobs")),
    )
    op.create_index(op.f("ix_collection_jobs_state"), "collection_jobs", ["state"])
    op.create_index("ix_collection_jobs_token_network", "collection_jobs", ["token", "network"])


def downgrade() -> None:
    op.drop_index("ix_collection_jobs_token_network", table_name="collection_jobs")
    op.drop_index(op.f("ix_collection_jobs_state"), table_name="collection_jobs")
    op.drop_table("collection_jobs")
    op.drop_index("ix_token_prices_source_timestamp", table_name="token_prices")
    op.drop_index(op.f("ix_token_prices_network"), table_name="token_prices")
    op.drop_index(op.f("ix_token_prices_token"), table_name="token_prices")
    op.drop_table("token_prices")
