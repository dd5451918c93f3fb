import uuid

from sqlalchemy import String, Boolean, Text, Float, JSON
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from app.db.session import Base
from app.models.common import UUIDMixin, TimestampMixin, ScopeMixin


class CustomField(Base, UUIDMixin, TimestampMixin, ScopeMixin):
    __tablename__ = "template_custom_fields"

    name: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    label: Mapped[str] = mapped_column(String(200), nullable=False)
    field_type: Mapped[str] = mapped_column(String(30), nullable=False, default="text")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    placeholder: Mapped[str | None] = mapped_column(String(200), nullable=True)
    default_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    section_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True, index=True)
    # select options, or repeatable-table column definitions
    options: Mapped[list | None] = mapped_column(JSON, nullable=True)

    lookup_table: Mapped[str | None] = mapped_column(String(80), nullable=True)
    lookup_value_column: Mapped[str | None] = mapped_column(String(80), nullable=True)
    lookup_label_column: Mapped[str | None] = mapped_column(String(80), nullable=True)

    condition_field_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    condition_operator: Mapped[str | None] = mapped_column(String(20), nullable=True)
    condition_value: Mapped[str | None] = mapped_column(String(500), nullable=True)
    conditions_logic: Mapped[str] = mapped_column(String(3), default="AND", nullable=False)
    additional_conditions: Mapped[list | None] = mapped_column(JSON, nullable=True)

    validation_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    validation_params: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    validation_regex: Mapped[str | None] = mapped_column(String(500), nullable=True)
    validation_message: Mapped[str | None] = mapped_column(String(300), nullable=True)
    min_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_value: Mapped[float | None] = mapped_column(Float, nullable=True)
