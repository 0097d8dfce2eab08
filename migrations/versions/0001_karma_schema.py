"""karma schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
import json
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from karma_engine.services.seed_data import DEFAULT_HABIT_SUGGESTIONS, DEFAULT_WEIGHT_RULES

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _karma_type(create_type: bool = False) -> sa.Enum:
    return sa.Enum("good", "bad", "neutral", name="karma_type_enum", create_type=create_type)


def upgrade() -> None:
    # --- ENUM types ---
    sa.Enum("good", "bad", "neutral", name="karma_type_enum").create(op.get_bind(), checkfirst=True)

    # --- customers (identity; owned by the account service) ---
    bind = op.get_bind()
    if not sa.inspect(bind).has_table("customers"):
        op.create_table(
            "customers",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(200), nullable=True),
            sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_customers_id", "customers", ["id"])

    # --- karma_entries ---
    op.create_table(
        "karma_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("karma_type", _karma_type(), nullable=False),
        sa.Column("score", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("category_slug", sa.String(100), nullable=True),
        sa.Column("category_name", sa.String(100), nullable=True),
        sa.Column("pattern_key", sa.String(100), nullable=True),
        sa.Column("self_assessment", _karma_type(), nullable=True),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("classification", sa.Text(), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_karma_entries_id", "karma_entries", ["id"])
    op.create_index("ix_karma_entries_user_id", "karma_entries", ["user_id"])
    op.create_index("ix_karma_entries_pattern_key", "karma_entries", ["pattern_key"])
    op.create_index("ix_karma_entries_user_date", "karma_entries", ["user_id", "entry_date"])
    op.create_index("ix_karma_entries_user_type", "karma_entries", ["user_id", "karma_type", "is_deleted"])

    # --- karma_weight_rules ---
    op.create_table(
        "karma_weight_rules",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("category_slug", sa.String(100), nullable=False),
        sa.Column("pattern_key", sa.String(100), nullable=False),
        sa.Column("pattern_name", sa.String(200), nullable=False),
        sa.Column("karma_type", _karma_type(), nullable=False),
        sa.Column("base_weight", sa.Numeric(10, 2), nullable=False),
        sa.Column("keywords", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("category_slug", "pattern_key", name="uq_weight_rule_category_pattern"),
    )
    op.create_index("ix_karma_weight_rules_id", "karma_weight_rules", ["id"])

    # --- karma_habit_suggestions ---
    op.create_table(
        "karma_habit_suggestions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("pattern_key", sa.String(100), nullable=False),
        sa.Column("habit_title", sa.String(200), nullable=False),
        sa.Column("habit_description", sa.Text(), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("duration_days", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("daily_tasks", sa.Text(), nullable=True),
        sa.Column("motivational_message", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_karma_habit_suggestions_id", "karma_habit_suggestions", ["id"])
    op.create_index("ix_habit_pattern_priority", "karma_habit_suggestions", ["pattern_key", "priority"])

    # --- karma_patterns ---
    op.create_table(
        "karma_patterns",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("pattern_key", sa.String(100), nullable=False),
        sa.Column("pattern_name", sa.String(200), nullable=False),
        sa.Column("pattern_type", _karma_type(), nullable=False),
        sa.Column("frequency_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_score_impact", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("first_detected_date", sa.Date(), nullable=False),
        sa.Column("last_detected_date", sa.Date(), nullable=False),
        sa.Column("sample_actions", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "pattern_key", name="uq_karma_pattern_user_key"),
    )
    op.create_index("ix_karma_patterns_id", "karma_patterns", ["id"])
    op.create_index("ix_karma_patterns_user_id", "karma_patterns", ["user_id"])

    # --- karma_score_summaries ---
    op.create_table(
        "karma_score_summaries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("period_type", sa.String(16), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("karma_score", sa.Numeric(10, 2), nullable=False, server_default="50"),
        sa.Column("total_good_actions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_bad_actions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_neutral_actions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_positive_points", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("total_negative_points", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("ai_summary", sa.Text(), nullable=True),
        sa.Column("prediction", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id", "period_type", "period_start", name="uq_score_summary_user_period"
        ),
    )
    op.create_index("ix_karma_score_summaries_id", "karma_score_summaries", ["id"])
    op.create_index("ix_karma_score_summaries_user_id", "karma_score_summaries", ["user_id"])

    # --- Seed: default weight rules and habit suggestions ---
    rules = sa.table(
        "karma_weight_rules",
        sa.column("category_slug", sa.String),
        sa.column("pattern_key", sa.String),
        sa.column("pattern_name", sa.String),
        sa.column("karma_type", sa.String),
        sa.column("base_weight", sa.Numeric),
        sa.column("keywords", sa.Text),
        sa.column("is_active", sa.Boolean),
    )
    op.bulk_insert(rules, [
        {
            "category_slug": category,
            "pattern_key": key,
            "pattern_name": name,
            "karma_type": karma_type,
            "base_weight": weight,
            "keywords": json.dumps(keywords),
            "is_active": True,
        }
        for category, key, name, karma_type, weight, keywords in DEFAULT_WEIGHT_RULES
    ])

    habits = sa.table(
        "karma_habit_suggestions",
        sa.column("pattern_key", sa.String),
        sa.column("habit_title", sa.String),
        sa.column("habit_description", sa.Text),
        sa.column("priority", sa.Integer),
        sa.column("duration_days", sa.Integer),
        sa.column("daily_tasks", sa.Text),
        sa.column("motivational_message", sa.Text),
        sa.column("is_active", sa.Boolean),
    )
    op.bulk_insert(habits, [
        {
            "pattern_key": key,
            "habit_title": title,
            "habit_description": description,
            "priority": priority,
            "duration_days": 30,
            "daily_tasks": json.dumps(tasks),
            "motivational_message": message,
            "is_active": True,
        }
        for key, title, description, priority, tasks, message in DEFAULT_HABIT_SUGGESTIONS
    ])


def downgrade() -> None:
    op.drop_table("karma_score_summaries")
    op.drop_table("karma_patterns")
    op.drop_table("karma_habit_suggestions")
    op.drop_table("karma_weight_rules")
    op.drop_table("karma_entries")

    op.execute("DROP TYPE IF EXISTS karma_type_enum")
