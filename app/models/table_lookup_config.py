from sqlalchemy import String, Integer, Boolean, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base
from app.models.common import UUIDMixin, TimestampMixin


class TableLookupConfig(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "table_lookup_configs"
    __table_args__ = (
        UniqueConstraint(
            "table_name",
            "value_column",
            "display_column",
            name="uq_table_lookup_configs_table_columns",
        ),
    )

    table_name: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    value_column: Mapped[str] = mapped_column(String(80), nullable=False)
    display_column: Mapped[str] = mapped_column(String(80), nullable=False)
    label: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    filter_column: Mapped[str | None] = mapped_column(String(80), nullable=True)
    filter_value: Mapped[str | None] = mapped_column(String(200), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
