"""Client details, client contacts and service request messages

Revision ID: 002
Revises: 001
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Adds is_business/company_name to clients, and creates client_contacts
       and service_request_messages.
How:   batch_alter_table for the clients columns so SQLite can apply them.

Rollback: downgrade() drops both tables and the two client columns.
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


def upgrade() -> None:
    with op.batch_alter_table("clients") as batch:
        batch.add_column(
            sa.Column("is_business", sa.Boolean(), server_default=sa.false(), nullable=False)
        )
        batch.add_column(sa.Column("company_name", sa.String(200), nullable=True))

    op.create_table(
        "client_contacts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column(
            "preferred_contact",
            sa.String(10),
            server_default=sa.text("'email'"),
            nullable=False,
        ),
        sa.Column("address", sa.Text(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_client_contacts_client_id", "client_contacts", ["client_id"])

    op.create_table(
        "service_request_messages",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("service_request_id", sa.Integer(), nullable=False),
        sa.Column("sender_type", sa.String(20), nullable=False),
        sa.Column("sender_id", sa.Integer(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(
            ["service_request_id"], ["service_requests.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_service_request_messages_request",
        "service_request_messages",
        ["service_request_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("idx_service_request_messages_request", table_name="service_request_messages")
    op.drop_table("service_request_messages")
    op.drop_index("ix_client_contacts_client_id", table_name="client_contacts")
    op.drop_table("client_contacts")
    with op.batch_alter_table("clients") as batch:
        batch.drop_column("company_name")
        batch.drop_column("is_business")
