from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from pagent.infrastructure.db.engine import Base


AMOUNT = Numeric(20, 6)


class UserModel(Base):
    __tablename__ = "users"
    __table_args__ = ({"schema": "public"},)

    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True)
    smart_account: Mapped[str] = mapped_column(Text, nullable=False)
    eoa_wallet_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    card_id: Mapped[str | None] = mapped_column(Text, nullable=True, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
    metadata_: Mapped[dict] = mapped_column(
        "metadata", JSONB, nullable=False, server_default=text("'{}'::jsonb")
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("now()"))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("now()"))


Index("uq_users_smart_account_lower", func.lower(UserModel.smart_account), unique=True)
Index(
    "uq_users_eoa_wallet_address_lower",
    func.lower(UserModel.eoa_wallet_address),
    unique=True,
    postgresql_where=UserModel.eoa_wallet_address.isnot(None),
)


class SiweNonceModel(Base):
    __tablename__ = "siwe_nonces"
    __table_args__ = ({"schema": "public"},)

    nonce: Mapped[str] = mapped_column(Text, primary_key=True)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    consumed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class PermissionModel(Base):
    __tablename__ = "permissions"
    __table_args__ = (
        CheckConstraint("status IN ('active', 'revoked', 'expired')", name="ck_permissions_status"),
        Index(
            "uq_permissions_one_active_per_user",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
        ),
        {"schema": "public"},
    )

    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True)
    user_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), ForeignKey("public.users.id"), nullable=False)
    token_address: Mapped[str] = mapped_column(Text, nullable=False)
    cap_amount: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    period_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    start_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    spender_address: Mapped[str] = mapped_column(Text, nullable=False)
    permission_signature: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("'active'"))
    metadata_: Mapped[dict] = mapped_column(
        "metadata", JSONB, nullable=False, server_default=text("'{}'::jsonb")
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("now()"))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("now()"))


class CreditUsageModel(Base):
    __tablename__ = "credit_usage"
    __table_args__ = ({"schema": "public"},)

    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True)
    user_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), ForeignKey("public.users.id"), nullable=False)
    permission_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), ForeignKey("public.permissions.id"), nullable=False, unique=True
    )
    period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    period_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    total_limit: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    used_amount: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False, server_default=text("0"))
    transaction_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    metadata_: Mapped[dict] = mapped_column(
        "metadata", JSONB, nullable=False, server_default=text("'{}'::jsonb")
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("now()"))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("now()"))


class ReceiptModel(Base):
    __tablename__ = "receipts"
    __table_args__ = (
        CheckConstraint("status IN ('pending', 'completed', 'failed')", name="ck_receipts_status"),
        Index("ix_receipts_user_created", "user_id", "created_at"),
        {"schema": "public"},
    )

    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True)
    user_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), ForeignKey("public.users.id"), nullable=False)
    card_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    auth_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    amount: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    merchant: Mapped[str] = mapped_column(Text, nullable=False)
    chain_tx: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_: Mapped[dict] = mapped_column(
        "metadata", JSONB, nullable=False, server_default=text("'{}'::jsonb")
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("now()"))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("now()"))


class UserRewardsModel(Base):
    __tablename__ = "user_rewards"
    __table_args__ = ({"schema": "public"},)

    user_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), ForeignKey("public.users.id"), primary_key=True)
    cashback_balance: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False, server_default=text("0"))
    points_balance: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default=text("0"))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("now()"))


class PromoModel(Base):
    __tablename__ = "promos"
    __table_args__ = (
        CheckConstraint("reward_type IN ('cashback', 'points', 'bonus')", name="ck_promos_reward_type"),
        CheckConstraint("status IN ('active', 'expired', 'used')", name="ck_promos_status"),
        Index("ix_promos_status_priority", "status", "priority"),
        {"schema": "public"},
    )

    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    reward_type: Mapped[str] = mapped_column(Text, nullable=False)
    reward_value: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    conditions: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("'active'"))
    priority: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("now()"))


class RecurringCreditModel(Base):
    __tablename__ = "recurring_credits"
    __table_args__ = (
        CheckConstraint("status IN ('active', 'paused', 'cancelled')", name="ck_recurring_credits_status"),
        Index("ix_recurring_credits_due", "status", "next_assignment"),
        {"schema": "public"},
    )

    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True)
    user_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), ForeignKey("public.users.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    period_seconds: Mapped[int] = mapped_column(BigInteger, nullable=False)
    next_assignment: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("'active'"))
    description: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    metadata_: Mapped[dict] = mapped_column(
        "metadata", JSONB, nullable=False, server_default=text("'{}'::jsonb")
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("now()"))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("now()"))


class CreditAssignmentModel(Base):
    __tablename__ = "credit_assignments"
    __table_args__ = (
        CheckConstraint(
            "credit_type IN ('recurring', 'topup', 'one-time')",
            name="ck_credit_assignments_type",
        ),
        {"schema": "public"},
    )

    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True)
    user_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), ForeignKey("public.users.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    credit_type: Mapped[str] = mapped_column(Text, nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("'active'"))
    description: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    metadata_: Mapped[dict] = mapped_column(
        "metadata", JSONB, nullable=False, server_default=text("'{}'::jsonb")
    )
