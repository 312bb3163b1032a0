"""
Database module for persisting kiosk state across restarts.

Kiosk state is stored as plain string key/value pairs (item snapshot, surge
counters, last price update, presence snapshot). Surge events are kept in a
separate table for history. Schema versioning ensures automatic migration
when the schema changes.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from models.item import Item
from models.surge import SurgeCounters, SurgeEvent

# Schema version - increment when schema changes
EXPECTED_SCHEMA_VERSION = 1

# Item snapshot keys
KEY_ITEM_ID = "current_item_id"
KEY_ITEM_NAME = "current_item_name"
KEY_ITEM_DESCRIPTION = "current_item_description"
KEY_ITEM_STARTING_PRICE = "current_item_starting_price"
KEY_ITEM_FLOOR_PRICE = "current_item_floor_price"
KEY_ITEM_LISTED_AT = "current_item_listed_at"
KEY_ITEM_LISTING_DURATION_DAYS = "current_item_listing_duration_days"
KEY_ITEM_PAYMENT_LINK = "current_item_payment_link"

# Surge and price keys
KEY_SURGE_COUNT = "surge_count"
KEY_PHYSICAL_SURGE_COUNT = "physical_surge_count"
KEY_ONLINE_SURGE_COUNT = "online_surge_count"
KEY_LAST_PRICE_UPDATE = "last_price_update"

# Presence snapshot (JSON-encoded tracker state)
KEY_PRESENCE_STATE = "presence_state"

ITEM_KEYS = [
    KEY_ITEM_ID,
    KEY_ITEM_NAME,
    KEY_ITEM_DESCRIPTION,
    KEY_ITEM_STARTING_PRICE,
    KEY_ITEM_FLOOR_PRICE,
    KEY_ITEM_LISTED_AT,
    KEY_ITEM_LISTING_DURATION_DAYS,
    KEY_ITEM_PAYMENT_LINK,
]


class Database:
    """
    Local store for kiosk state.

    Schema:
    - schema_meta: tracks schema version
    - kiosk_state: key/value strings
    - surge_events: one row per surge applied to the price

    Tables from an older schema version are dropped on init.
    """

    def __init__(self, local_database_path: str):
        """
        Initialize the database.

        Args:
            local_database_path: Path to the SQLite database file.
        """
        self.local_database_path = local_database_path
        self.conn: Optional[sqlite3.Connection] = None

        # Create directory if it doesn't exist
        db_dir = os.path.dirname(local_database_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        logging.info(f"Database initialized at {local_database_path}")

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self.conn is None:
            # The status API reads from its own thread.
            self.conn = sqlite3.connect(self.local_database_path, check_same_thread=False)
        return self.conn

    def _get_schema_version(self) -> Optional[int]:
        """Get current schema version from database."""
        try:
            cursor = self._get_connection().cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_meta'"
            )
            if cursor.fetchone() is None:
                return None

            cursor.execute("SELECT schema_version FROM schema_meta LIMIT 1")
            row = cursor.fetchone()
            return row[0] if row else None
        except sqlite3.Error:
            return None

    def _drop_old_tables(self) -> None:
        """Drop all kiosk tables."""
        cursor = self._get_connection().cursor()

        for table in ("kiosk_state", "surge_events", "schema_meta"):
            try:
                cursor.execute(f"DROP TABLE IF EXISTS {table}")
                logging.debug(f"Dropped table: {table}")
            except sqlite3.Error as e:
                logging.warning(f"Could not drop table {table}: {e}")

        self._get_connection().commit()
        logging.info("Old tables dropped")

    def _create_schema(self) -> None:
        """Create the kiosk schema."""
        cursor = self._get_connection().cursor()

        cursor.execute("""
            CREATE TABLE schema_meta (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                schema_version INTEGER NOT NULL,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)

        cursor.execute("""
            CREATE TABLE kiosk_state (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at INTEGER NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE surge_events (
                id INTEGER PRIMARY KEY,
                ts INTEGER NOT NULL,
                source TEXT NOT NULL,
                tracking_id INTEGER,
                surge_count INTEGER NOT NULL,
                price REAL NOT NULL
            )
        """)

        cursor.execute(
            "CREATE INDEX idx_surge_events_ts ON surge_events(ts)"
        )

        cursor.execute(
            "INSERT INTO schema_meta (id, schema_version) VALUES (1, ?)",
            (EXPECTED_SCHEMA_VERSION,)
        )

        self._get_connection().commit()
        logging.info(f"Created schema version {EXPECTED_SCHEMA_VERSION}")

    def initialize(self) -> None:
        """
        Initialize the database schema.

        If schema_meta is missing or version doesn't match EXPECTED_SCHEMA_VERSION,
        drops all old tables and creates fresh schema.
        """
        try:
            self._get_connection()

            current_version = self._get_schema_version()

            if current_version != EXPECTED_SCHEMA_VERSION:
                if current_version is not None:
                    logging.warning(
                        f"Schema version mismatch: found {current_version}, "
                        f"expected {EXPECTED_SCHEMA_VERSION}. Dropping old tables."
                    )
                else:
                    logging.info("No schema found, creating fresh database.")

                self._drop_old_tables()
                self._create_schema()
            else:
                logging.info(f"Schema version {current_version} is current")

        except sqlite3.Error as e:
            logging.error(f"Database initialization error: {e}")
            raise

    # -------------------------------------------------------------------------
    # Key/value primitives
    # -------------------------------------------------------------------------

    def set_values(self, values: Dict[str, Optional[str]]) -> bool:
        """
        Write several keys in one transaction.

        Returns:
            True on success, False on error.
        """
        try:
            conn = self._get_connection()
            now_ms = int(time.time() * 1000)
            with conn:
                conn.executemany(
                    "INSERT OR REPLACE INTO kiosk_state (key, value, updated_at) VALUES (?, ?, ?)",
                    [(key, value, now_ms) for key, value in values.items()],
                )
            return True
        except sqlite3.Error as e:
            logging.error(f"Error writing kiosk state: {e}")
            return False

    def set_value(self, key: str, value: Optional[str]) -> bool:
        return self.set_values({key: value})

    def get_value(self, key: str) -> Optional[str]:
        try:
            cursor = self._get_connection().cursor()
            cursor.execute("SELECT value FROM kiosk_state WHERE key = ?", (key,))
            row = cursor.fetchone()
            return row[0] if row else None
        except sqlite3.Error as e:
            logging.error(f"Error reading kiosk state key {key}: {e}")
            return None

    def delete_values(self, keys: List[str]) -> bool:
        try:
            conn = self._get_connection()
            with conn:
                conn.executemany("DELETE FROM kiosk_state WHERE key = ?", [(k,) for k in keys])
            return True
        except sqlite3.Error as e:
            logging.error(f"Error deleting kiosk state: {e}")
            return False

    # -------------------------------------------------------------------------
    # Item snapshot
    # -------------------------------------------------------------------------

    def save_item(self, item: Item) -> bool:
        """Persist the current item snapshot."""
        return self.set_values({
            KEY_ITEM_ID: item.id,
            KEY_ITEM_NAME: item.name,
            KEY_ITEM_DESCRIPTION: item.description,
            KEY_ITEM_STARTING_PRICE: repr(float(item.starting_price)),
            KEY_ITEM_FLOOR_PRICE: repr(float(item.floor_price)),
            KEY_ITEM_LISTED_AT: item.listed_at.isoformat(),
            KEY_ITEM_LISTING_DURATION_DAYS: repr(item.listing_duration_days),
            KEY_ITEM_PAYMENT_LINK: item.payment_link,
        })

    def load_item(self) -> Optional[Item]:
        """
        Load the saved item snapshot.

        Returns:
            The item, or None when nothing is saved or the snapshot is malformed.
        """
        item_id = self.get_value(KEY_ITEM_ID)
        if item_id is None:
            return None

        values = {key: self.get_value(key) for key in ITEM_KEYS}
        required = [k for k in ITEM_KEYS if k != KEY_ITEM_PAYMENT_LINK]
        if any(values[k] is None for k in required):
            logging.warning("Saved item snapshot is incomplete, ignoring it")
            return None

        try:
            return Item.from_dict({
                "id": values[KEY_ITEM_ID],
                "name": values[KEY_ITEM_NAME],
                "description": values[KEY_ITEM_DESCRIPTION],
                "starting_price": values[KEY_ITEM_STARTING_PRICE],
                "floor_price": values[KEY_ITEM_FLOOR_PRICE],
                "listed_at": values[KEY_ITEM_LISTED_AT],
                "listing_duration_days": float(values[KEY_ITEM_LISTING_DURATION_DAYS]),
                "payment_link": values[KEY_ITEM_PAYMENT_LINK],
            })
        except (ValueError, TypeError, KeyError) as e:
            logging.warning(f"Saved item snapshot is malformed, ignoring it: {e}")
            return None

    def clear_item(self) -> bool:
        return self.delete_values(ITEM_KEYS)

    def has_saved_state(self) -> bool:
        return self.get_value(KEY_ITEM_ID) is not None

    # -------------------------------------------------------------------------
    # Surge counters and price update time
    # -------------------------------------------------------------------------

    def save_surge_counts(self, counters: SurgeCounters) -> bool:
        return self.set_values({
            KEY_SURGE_COUNT: str(counters.total),
            KEY_PHYSICAL_SURGE_COUNT: str(counters.physical),
            KEY_ONLINE_SURGE_COUNT: str(counters.online),
        })

    def load_surge_counts(self) -> SurgeCounters:
        """
        Load surge counters. Missing or malformed values count as zero.

        The stored total is informational; the physical and online counts are
        authoritative so total always equals their sum.
        """
        physical = self._get_count(KEY_PHYSICAL_SURGE_COUNT)
        online = self._get_count(KEY_ONLINE_SURGE_COUNT)
        stored_total = self._get_count(KEY_SURGE_COUNT)
        if stored_total != physical + online:
            logging.warning(
                f"Stored surge total {stored_total} != physical {physical} + online {online}; "
                f"using {physical + online}"
            )
        return SurgeCounters(physical=physical, online=online)

    def _get_count(self, key: str) -> int:
        raw = self.get_value(key)
        if raw is None:
            return 0
        try:
            value = int(raw)
        except (TypeError, ValueError):
            logging.warning(f"Malformed counter {key}={raw!r}, treating as 0")
            return 0
        return value if value >= 0 else 0

    def save_last_price_update(self, timestamp: datetime) -> bool:
        return self.set_value(KEY_LAST_PRICE_UPDATE, timestamp.isoformat())

    def load_last_price_update(self) -> Optional[datetime]:
        raw = self.get_value(KEY_LAST_PRICE_UPDATE)
        if raw is None:
            return None
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            logging.warning(f"Malformed last price update {raw!r}, ignoring it")
            return None

    # -------------------------------------------------------------------------
    # Presence snapshot
    # -------------------------------------------------------------------------

    def save_presence_state(self, state: Dict[str, Any]) -> bool:
        return self.set_value(KEY_PRESENCE_STATE, json.dumps(state))

    def load_presence_state(self) -> Optional[Dict[str, Any]]:
        raw = self.get_value(KEY_PRESENCE_STATE)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            logging.warning("Malformed presence snapshot, ignoring it")
            return None
        return data if isinstance(data, dict) else None

    # -------------------------------------------------------------------------
    # Surge events
    # -------------------------------------------------------------------------

    def add_surge_event(self, event: SurgeEvent) -> Optional[int]:
        """
        Record a surge event.

        Returns:
            ID of the inserted record, or None on error.
        """
        try:
            cursor = self._get_connection().cursor()
            cursor.execute("""
                INSERT INTO surge_events (ts, source, tracking_id, surge_count, price)
                VALUES (?, ?, ?, ?, ?)
            """, (
                int(event.timestamp * 1000),
                event.source,
                event.tracking_id,
                event.surge_count,
                event.price,
            ))
            self._get_connection().commit()
            logging.debug(f"Surge event added: source={event.source}, count={event.surge_count}")
            return cursor.lastrowid
        except sqlite3.Error as e:
            logging.error(f"Error adding surge event: {e}")
            return None

    def get_recent_surge_events(self, limit: int = 20) -> List[SurgeEvent]:
        """Most recent surge events, newest first."""
        try:
            cursor = self._get_connection().cursor()
            cursor.execute("""
                SELECT ts, source, tracking_id, surge_count, price
                FROM surge_events
                ORDER BY ts DESC, id DESC
                LIMIT ?
            """, (limit,))
            return [
                SurgeEvent(
                    source=row[1],
                    timestamp=row[0] / 1000.0,
                    surge_count=row[3],
                    price=row[4],
                    tracking_id=row[2],
                )
                for row in cursor.fetchall()
            ]
        except sqlite3.Error as e:
            logging.error(f"Error reading surge events: {e}")
            return []

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def clear_all(self) -> bool:
        """Delete all kiosk state and surge history (schema is kept)."""
        try:
            conn = self._get_connection()
            with conn:
                conn.execute("DELETE FROM kiosk_state")
                conn.execute("DELETE FROM surge_events")
            return True
        except sqlite3.Error as e:
            logging.error(f"Error clearing kiosk state: {e}")
            return False

    def close(self) -> None:
        """Close database connection."""
        if self.conn is not None:
            self.conn.close()
            self.conn = None
