import uuid

from sqlalchemy import String, Boolean, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from app.db.session import Base
from app.models.common import UUIDMixin, TimestampMixin, ScopeMixin


class FormSection(Base, UUIDMixin, TimestampMixin, ScopeMixin):
    __tablename__ = "form_sections"

    name: Mapped[str] = mapped_column(String(80), nullable=False)
    label: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_collapsible: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    condition_field_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    condition_operator: Mapped[str | None] = mapped_column(String(20), nullable=True)
    condition_value: Mapped[str | None] = mapped_column(String(500), nullable=True)
