"""
Model catalog for Teach Cam.
Stores named collections of labeled samples in SQLite.
"""

import sqlite3
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .mapping import Rect
from .templates import LabeledSample

logger = logging.getLogger(__name__)

# SQL schema
SCHEMA = """
CREATE TABLE IF NOT EXISTS models (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    created_at TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS samples (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    model_id INTEGER NOT NULL,
    sample_uid TEXT NOT NULL,
    label TEXT NOT NULL,
    image_data BLOB NOT NULL,
    x INTEGER NOT NULL,
    y INTEGER NOT NULL,
    width INTEGER NOT NULL,
    height INTEGER NOT NULL,
    created_at TEXT NOT NULL,
    FOREIGN KEY(model_id) REFERENCES models(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_samples_model ON samples(model_id);
"""


class ModelNotFoundError(LookupError):
    """Raised when a model name or id does not exist in the catalog."""
    pass


@dataclass
class ModelSummary:
    """Overview of one saved model."""
    id: int
    name: str
    created_at: str  # ISO string
    is_active: bool
    sample_count: int
    labels: list[str]


def connect(db_path: str) -> sqlite3.Connection:
    """Open a catalog connection with foreign keys enforced."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def init_db(db_path: str) -> None:
    """
    Initialize the database: create tables and set pragmas.

    Args:
        db_path: Path to SQLite database file
    """
    logger.info(f"Initializing model catalog at {db_path}")

    conn = sqlite3.connect(db_path)
    try:
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.executescript(SCHEMA)
        conn.commit()
    finally:
        conn.close()


def _insert_samples(conn: sqlite3.Connection, model_id: int, samples: list[LabeledSample]) -> None:
    rows = [
        (
            model_id,
            s.id,
            s.label_name,
            sqlite3.Binary(s.image_data),
            int(s.bounding_box.x),
            int(s.bounding_box.y),
            int(s.bounding_box.width),
            int(s.bounding_box.height),
            s.created_at.isoformat(),
        )
        for s in samples
    ]
    conn.executemany(
        """INSERT INTO samples
           (model_id, sample_uid, label, image_data, x, y, width, height, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        rows
    )


def save_model(
    conn: sqlite3.Connection,
    name: str,
    samples: list[LabeledSample],
    activate: bool = True,
) -> int:
    """
    Save a new model with its samples in a single transaction.

    Args:
        conn: Database connection
        name: Unique model name
        samples: Samples the model was trained from
        activate: Make this the only active model

    Returns:
        The new model ID

    Raises:
        sqlite3.IntegrityError: If a model with this name already exists
    """
    with conn:
        if activate:
            conn.execute("UPDATE models SET is_active = 0")
        cursor = conn.execute(
            "INSERT INTO models (name, created_at, is_active) VALUES (?, ?, ?)",
            (name, datetime.now().isoformat(timespec="seconds"), int(activate))
        )
        model_id = cursor.lastrowid
        _insert_samples(conn, model_id, samples)

    logger.info(f"Saved model {model_id} '{name}' with {len(samples)} samples")
    return model_id


def add_samples(conn: sqlite3.Connection, model_id: int, samples: list[LabeledSample]) -> None:
    """Append samples to an existing model."""
    get_model(conn, model_id)
    with conn:
        _insert_samples(conn, model_id, samples)
    logger.info(f"Added {len(samples)} samples to model {model_id}")


def _summary_from_row(conn: sqlite3.Connection, row: sqlite3.Row) -> ModelSummary:
    labels = [
        r["label"] for r in conn.execute(
            "SELECT label FROM samples WHERE model_id = ? GROUP BY label ORDER BY MIN(id)",
            (row["id"],)
        )
    ]
    return ModelSummary(
        id=row["id"],
        name=row["name"],
        created_at=row["created_at"],
        is_active=bool(row["is_active"]),
        sample_count=row["sample_count"],
        labels=labels,
    )


_SUMMARY_QUERY = """
    SELECT m.id, m.name, m.created_at, m.is_active, COUNT(s.id) AS sample_count
    FROM models m
    LEFT JOIN samples s ON s.model_id = m.id
"""


def list_models(conn: sqlite3.Connection) -> list[ModelSummary]:
    """
    List all saved models, newest first.

    Returns:
        List of ModelSummary objects
    """
    cursor = conn.execute(_SUMMARY_QUERY + " GROUP BY m.id ORDER BY m.created_at DESC, m.id DESC")
    return [_summary_from_row(conn, row) for row in cursor.fetchall()]


def get_model(conn: sqlite3.Connection, name_or_id) -> ModelSummary:
    """
    Look up a model by ID (int or digit string) or by name.

    Raises:
        ModelNotFoundError: If no such model exists
    """
    if isinstance(name_or_id, int) or (isinstance(name_or_id, str) and name_or_id.isdigit()):
        cursor = conn.execute(_SUMMARY_QUERY + " WHERE m.id = ? GROUP BY m.id", (int(name_or_id),))
        row = cursor.fetchone()
        if row is None and isinstance(name_or_id, str):
            cursor = conn.execute(_SUMMARY_QUERY + " WHERE m.name = ? GROUP BY m.id", (name_or_id,))
            row = cursor.fetchone()
    else:
        cursor = conn.execute(_SUMMARY_QUERY + " WHERE m.name = ? GROUP BY m.id", (name_or_id,))
        row = cursor.fetchone()

    if row is None:
        raise ModelNotFoundError(f"Model {name_or_id} not found")
    return _summary_from_row(conn, row)


def get_active_model(conn: sqlite3.Connection) -> Optional[ModelSummary]:
    """Return the active model, or None if no model is active."""
    row = conn.execute("SELECT id FROM models WHERE is_active = 1 LIMIT 1").fetchone()
    if row is None:
        return None
    return get_model(conn, row["id"])


def load_samples(conn: sqlite3.Connection, model_id: int) -> list[LabeledSample]:
    """
    Load a model's samples in the order they were saved.

    Raises:
        ModelNotFoundError: If the model does not exist
    """
    get_model(conn, model_id)
    cursor = conn.execute(
        """SELECT sample_uid, label, image_data, x, y, width, height, created_at
           FROM samples WHERE model_id = ? ORDER BY id""",
        (model_id,)
    )
    return [
        LabeledSample(
            label_name=row["label"],
            image_data=bytes(row["image_data"]),
            bounding_box=Rect(row["x"], row["y"], row["width"], row["height"]),
            id=row["sample_uid"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )
        for row in cursor.fetchall()
    ]


def activate_model(conn: sqlite3.Connection, model_id: int) -> None:
    """
    Make one model the active model, deactivating all others.

    Raises:
        ModelNotFoundError: If the model does not exist
    """
    get_model(conn, model_id)
    with conn:
        conn.execute("UPDATE models SET is_active = 0")
        conn.execute("UPDATE models SET is_active = 1 WHERE id = ?", (model_id,))
    logger.info(f"Activated model {model_id}")


def delete_model(conn: sqlite3.Connection, model_id: int) -> None:
    """
    Delete a model and its samples.

    Raises:
        ModelNotFoundError: If the model does not exist
    """
    get_model(conn, model_id)
    with conn:
        conn.execute("DELETE FROM samples WHERE model_id = ?", (model_id,))
        conn.execute("DELETE FROM models WHERE id = ?", (model_id,))
    logger.info(f"Deleted model {model_id}")
