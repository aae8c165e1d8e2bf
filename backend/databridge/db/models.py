"""
SQLAlchemy ORM Models for Databridge

Document-style tables: each row carries a JSON document addressed by a
string id, mirroring the collections the shop admin dashboard reads.
"""
from datetime import datetime
from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Integer, String, UniqueConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class TransactionDocumentModel(Base):
    """
    ORM model for the transactions collection.

    One document per Paystack reference; `status` is copied out of the
    document so operators can filter on it.
    """
    __tablename__ = "transactions"

    reference = Column(String, primary_key=True)
    status = Column(String, nullable=False, index=True)
    data = Column(JSON, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)


class SystemSettingModel(Base):
    """
    ORM model for the systemSettings collection.

    The `instantDataConfig` document holds currentBalance and isServiceActive.
    """
    __tablename__ = "system_settings"

    id = Column(String, primary_key=True)
    data = Column(JSON, nullable=False)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class PackagePricingModel(Base):
    """ORM model for dataPackagePricing; maintained by operators, read-only here."""
    __tablename__ = "package_pricing"

    id = Column(Integer, primary_key=True, autoincrement=True)
    network = Column(String, nullable=False)
    data_amount = Column(String, nullable=False)
    price = Column(Float, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    __table_args__ = (
        UniqueConstraint("network", "data_amount", name="uq_pricing_network_amount"),
    )
