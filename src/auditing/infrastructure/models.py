"""
Auditing Infrastructure Models
==============================

SQLAlchemy mixin adding audit columns to a mapped model.

Usage:
    class ProductModel(AuditableMixin, Base):
        __tablename__ = "products"
        id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column


class AuditableMixin:
    """
    Audit columns for a mapped model.

    Values are filled by the registered auditing hook at flush time.
    Columns are nullable so a process running with auditing disabled can
    still write rows.
    """

    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    updated_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
