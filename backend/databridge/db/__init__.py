"""
Database package for Databridge.

Exports the Database handle and document models.
"""
from .init_db import Database
from .models import (
    Base,
    TransactionDocumentModel,
    SystemSettingModel,
    PackagePricingModel
)

__all__ = [
    "Database",
    "Base",
    "TransactionDocumentModel",
    "SystemSettingModel",
    "PackagePricingModel",
]
