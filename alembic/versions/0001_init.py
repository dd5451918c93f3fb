"""init
Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _base_columns():
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def _scope_columns():
    return [
        sa.Column("is_common", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("process_template_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("sub_process_template_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
    ]


def upgrade():
    op.create_table(
        "process_templates",
        *_base_columns(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )

    op.create_table(
        "sub_process_templates",
        *_base_columns(),
        sa.Column("process_template_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_sub_process_templates_process_template_id", "sub_process_templates", ["process_template_id"])

    op.create_table(
        "form_sections",
        *_base_columns(),
        *_scope_columns(),
        sa.Column("name", sa.String(length=80), nullable=False),
        sa.Column("label", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_collapsible", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("condition_field_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("condition_operator", sa.String(length=20), nullable=True),
        sa.Column("condition_value", sa.String(length=500), nullable=True),
    )
    op.create_index("ix_form_sections_is_common", "form_sections", ["is_common"])
    op.create_index("ix_form_sections_process_template_id", "form_sections", ["process_template_id"])
    op.create_index("ix_form_sections_sub_process_template_id", "form_sections", ["sub_process_template_id"])

    op.create_table(
        "template_custom_fields",
        *_base_columns(),
        *_scope_columns(),
        sa.Column("name", sa.String(length=80), nullable=False),
        sa.Column("label", sa.String(length=200), nullable=False),
        sa.Column("field_type", sa.String(length=30), nullable=False, server_default="text"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("required", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("placeholder", sa.String(length=200), nullable=True),
        sa.Column("default_value", sa.Text(), nullable=True),
        sa.Column("section_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("options", sa.JSON(), nullable=True),
        sa.Column("lookup_table", sa.String(length=80), nullable=True),
        sa.Column("lookup_value_column", sa.String(length=80), nullable=True),
        sa.Column("lookup_label_column", sa.String(length=80), nullable=True),
        sa.Column("condition_field_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("condition_operator", sa.String(length=20), nullable=True),
        sa.Column("condition_value", sa.String(length=500), nullable=True),
        sa.Column("conditions_logic", sa.String(length=3), nullable=False, server_default="AND"),
        sa.Column("additional_conditions", sa.JSON(), nullable=True),
        sa.Column("validation_type", sa.String(length=30), nullable=True),
        sa.Column("validation_params", sa.JSON(), nullable=True),
        sa.Column("validation_regex", sa.String(length=500), nullable=True),
        sa.Column("validation_message", sa.String(length=300), nullable=True),
        sa.Column("min_value", sa.Float(), nullable=True),
        sa.Column("max_value", sa.Float(), nullable=True),
    )
    op.create_index("ix_template_custom_fields_name", "template_custom_fields", ["name"])
    op.create_index("ix_template_custom_fields_is_common", "template_custom_fields", ["is_common"])
    op.create_index("ix_template_custom_fields_process_template_id", "template_custom_fields", ["process_template_id"])
    op.create_index(
        "ix_template_custom_fields_sub_process_template_id", "template_custom_fields", ["sub_process_template_id"]
    )
    op.create_index("ix_template_custom_fields_section_id", "template_custom_fields", ["section_id"])

    op.create_table(
        "table_lookup_configs",
        *_base_columns(),
        sa.Column("table_name", sa.String(length=80), nullable=False),
        sa.Column("value_column", sa.String(length=80), nullable=False),
        sa.Column("display_column", sa.String(length=80), nullable=False),
        sa.Column("label", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("filter_column", sa.String(length=80), nullable=True),
        sa.Column("filter_value", sa.String(length=200), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint(
            "table_name",
            "value_column",
            "display_column",
            name="uq_table_lookup_configs_table_columns",
        ),
    )
    op.create_index("ix_table_lookup_configs_table_name", "table_lookup_configs", ["table_name"])

    op.create_table(
        "request_field_values",
        *_base_columns(),
        sa.Column("request_id", sa.String(length=64), nullable=False),
        sa.Column("field_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("value", sa.JSON(), nullable=True),
        sa.UniqueConstraint("request_id", "field_id", name="uq_request_field_values_request_field"),
    )
    op.create_index("ix_request_field_values_request_id", "request_field_values", ["request_id"])
    op.create_index("ix_request_field_values_field_id", "request_field_values", ["field_id"])


def downgrade():
    op.drop_table("request_field_values")
    op.drop_table("table_lookup_configs")
    op.drop_table("template_custom_fields")
    op.drop_table("form_sections")
    op.drop_table("sub_process_templates")
    op.drop_table("process_templates")
