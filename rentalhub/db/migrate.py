"""Tiny home-grown migration helpers with plain-language explanations."""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import inspect, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from ..models.pricing import DEFAULT_MODIFIERS, PricingModifier

logger = logging.getLogger(__name__)

# Simple, idempotent migrations that work on both SQLite and PostgreSQL.
# ``Base.metadata.create_all`` builds fresh tables; these helpers only ADD what
# older databases are missing. Nothing is ever dropped.

# Columns introduced after the first release of each table.
ADDITIVE_COLUMNS: dict[str, dict[str, str]] = {
    "users": {
        "is_student": "BOOLEAN DEFAULT FALSE NOT NULL",
        "status": "VARCHAR(20) DEFAULT 'active' NOT NULL",
        "invite_token": "VARCHAR(64)",
        "invite_expires_at": "TIMESTAMP",
    },
    "rentals": {
        "product_template_id": "VARCHAR(36)",
        "inventory_item_id": "VARCHAR(36)",
        "selected_color": "VARCHAR(100)",
        "pricing_period": "VARCHAR(20)",
        "weekly_rate": "FLOAT",
        "monthly_rate": "FLOAT",
        "deposit_amount": "FLOAT DEFAULT 0 NOT NULL",
        "student_discount_applied": "BOOLEAN DEFAULT FALSE NOT NULL",
        "new_equipment_fee_applied": "BOOLEAN DEFAULT FALSE NOT NULL",
        "discount_amount": "FLOAT DEFAULT 0 NOT NULL",
        "fee_amount": "FLOAT DEFAULT 0 NOT NULL",
        "final_total": "FLOAT",
        "deposit_status": "VARCHAR(20) DEFAULT 'held' NOT NULL",
        "deposit_released_at": "TIMESTAMP",
        "deposit_notes": "TEXT",
    },
    "product_templates": {
        "is_new": "BOOLEAN DEFAULT FALSE NOT NULL",
    },
}

INDEXES: tuple[tuple[str, str, tuple[str, ...]], ...] = (
    ("rentals", "ix_rentals_product_dates", ("product_template_id", "start_date", "end_date")),
    ("inventory_items", "ix_inventory_items_product_color_status", ("product_template_id", "color", "status")),
    ("inventory_items", "ix_inventory_items_accessory_color_status", ("accessory_id", "color", "status")),
    ("kb_articles", "ix_kb_articles_category_status", ("category_id", "status")),
)


def _column_names(engine: Engine, table: str) -> set[str]:
    """Return the existing column names, or an empty set when the table is absent."""

    inspector = inspect(engine)
    if not inspector.has_table(table):
        return set()
    return {column["name"] for column in inspector.get_columns(table)}


def _add_column(engine: Engine, table: str, col_def: str) -> None:
    """ALTER TABLE ADD COLUMN helper."""
    with engine.begin() as conn:
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {col_def}"))


def _create_index_if_not_exists(engine: Engine, table: str, name: str, cols: Iterable[str], unique: bool = False) -> None:
    """Build an index only if it hasn't already been defined."""

    cols_sql = ", ".join(cols)
    unique_sql = "UNIQUE " if unique else ""
    with engine.begin() as conn:
        conn.execute(text(f"CREATE {unique_sql}INDEX IF NOT EXISTS {name} ON {table} ({cols_sql})"))


def seed_pricing_modifiers(engine: Engine) -> int:
    """Insert the default student discount / new-equipment fee rows when none exist."""

    with Session(engine) as session:
        existing = set(session.execute(select(PricingModifier.name)).scalars())
        missing = [row for row in DEFAULT_MODIFIERS if row["name"] not in existing]
        for row in missing:
            session.add(PricingModifier(**row))
        session.commit()
    return len(missing)


def run_migrations(engine: Engine) -> None:
    """Bring an existing schema up-to-date with the expectations of the code."""

    for table, needed in ADDITIVE_COLUMNS.items():
        existing = _column_names(engine, table)
        if not existing:
            # Table absent -> create_all owns it.
            continue
        for name, dtype in needed.items():
            if name not in existing:
                logger.info("migration.add_column", extra={"extra_data": {"table": table, "column": name}})
                _add_column(engine, table, f"{name} {dtype}")

    for table, name, cols in INDEXES:
        if _column_names(engine, table):
            _create_index_if_not_exists(engine, table, name, cols)

    if _column_names(engine, "pricing_modifiers"):
        seeded = seed_pricing_modifiers(engine)
        if seeded:
            logger.info("migration.seed_pricing_modifiers", extra={"extra_data": {"count": seeded}})
