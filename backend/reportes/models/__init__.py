"""
SQLAlchemy ORM models for the delivery report backend.

This module exports all database models and the declarative base.
Import models from this module to ensure they're registered with SQLAlchemy.
"""

from reportes.models.base import Base, TimestampMixin, UUIDMixin, ModelMixin
from reportes.models.user_profile import UserProfile
from reportes.models.store import Store
from reportes.models.reporte import Reporte
from reportes.models.message import Message
from reportes.models.push_subscription import PushSubscription
from reportes.models.processed_ticket import ProcessedTicket

# Export all models
__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "ModelMixin",
    # Models
    "UserProfile",
    "Store",
    "Reporte",
    "Message",
    "PushSubscription",
    "ProcessedTicket",
]
