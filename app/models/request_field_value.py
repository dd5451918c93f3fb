import uuid
from typing import Any

from sqlalchemy import String, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from app.db.session import Base
from app.models.common import UUIDMixin, TimestampMixin


class RequestFieldValue(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "request_field_values"
    __table_args__ = (
        UniqueConstraint(
            "request_id",
            "field_id",
            name="uq_request_field_values_request_field",
        ),
    )

    request_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    field_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)
