"""Relational fragment index.

One ``fragment_index`` row per fragment id, holding shared metadata plus
per-language (``en`` / ``ja``) availability, titles and object keys.  The
table is owned by codex-sync; nothing else writes to it.

Row invariant: a row exists iff ``has_en or has_ja``.  ``FragmentIndex.modify``
enforces it by deleting any row whose flags are both false on write.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import JSON, CheckConstraint, Column, event, text
from sqlmodel import Field, Session, SQLModel, create_engine, select

logger = logging.getLogger(__name__)

LANGUAGES = ("en", "ja")
STATUSES = ("production", "draft", "deprecated", "archived")
SENSITIVITIES = ("normal", "confidential", "embargoed")


def _in_list(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


class FragmentIndexRow(SQLModel, table=True):
    """Canonical per-fragment record."""

    __tablename__ = "fragment_index"  # type: ignore[assignment]
    __table_args__ = (
        CheckConstraint(_in_list("status", STATUSES), name="ck_fragment_status"),
        CheckConstraint(
            _in_list("sensitivity", SENSITIVITIES),
            name="ck_fragment_sensitivity",
        ),
    )

    id: str = Field(primary_key=True)
    category: str | None = Field(default=None, index=True)
    title_en: str | None = None
    title_ja: str | None = None
    type: str | None = Field(default=None, index=True)
    version: str | None = None
    status: str = Field(default="production", index=True)
    tags: list[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    has_en: bool = False
    has_ja: bool = False
    r2_key_en: str | None = None
    r2_key_ja: str | None = None
    sensitivity: str = "normal"
    author: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def has_language(self, lang: str) -> bool:
        return bool(getattr(self, f"has_{lang}"))

    def set_language(self, lang: str, title: str | None, key: str) -> None:
        """Mark *lang* present with its title and object key.

        The other language's fields are left as they are.
        """
        setattr(self, f"has_{lang}", True)
        setattr(self, f"title_{lang}", title)
        setattr(self, f"r2_key_{lang}", key)

    def clear_language(self, lang: str) -> None:
        setattr(self, f"has_{lang}", False)
        setattr(self, f"title_{lang}", None)
        setattr(self, f"r2_key_{lang}", None)

    @property
    def is_empty(self) -> bool:
        """True when neither language is present (the row must not exist)."""
        return not (self.has_en or self.has_ja)


def _configure_sqlite(dbapi_conn: Any, _connection_record: Any) -> None:
    """WAL mode plus a busy timeout so concurrent writers wait instead of failing."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=30000")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


def database_url(location: str) -> str:
    """Turn a SQLite path into a SQLAlchemy URL; URLs pass through."""
    if "://" in location:
        return location
    return f"sqlite:///{location}"


class FragmentIndex:
    """Access to the ``fragment_index`` table.

    Args:
        location: SQLAlchemy URL or a path to a SQLite file (parent
            directories are created).
    """

    def __init__(self, location: str) -> None:
        self.url = database_url(location)
        self._is_sqlite = self.url.startswith("sqlite")
        if self._is_sqlite and "://" not in location:
            Path(location).expanduser().parent.mkdir(parents=True, exist_ok=True)
        self.engine = self._create_engine()

    def _create_engine(self):
        if self._is_sqlite:
            engine = create_engine(
                self.url,
                connect_args={"check_same_thread": False},
                pool_pre_ping=True,
            )
            event.listen(engine, "connect", _configure_sqlite)
            return engine
        return create_engine(self.url, pool_pre_ping=True)

    def create_all(self) -> None:
        """Create the table and its indexes if missing."""
        SQLModel.metadata.create_all(
            self.engine, tables=[FragmentIndexRow.__table__]  # type: ignore[list-item]
        )

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """ORM session for reads."""
        with Session(self.engine, expire_on_commit=False) as session:
            yield session

    @contextmanager
    def transaction(self) -> Generator[Session, None, None]:
        """Session wrapped in a write transaction.

        On SQLite the transaction starts with ``BEGIN IMMEDIATE`` so a
        read-modify-write on one row cannot interleave with another writer.
        Commits on success, rolls back on exception.
        """
        with Session(self.engine, expire_on_commit=False) as session:
            if self._is_sqlite:
                session.execute(text("BEGIN IMMEDIATE"))
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, fragment_id: str) -> FragmentIndexRow | None:
        with self.session() as session:
            return session.get(FragmentIndexRow, fragment_id)

    def list_rows(
        self,
        category: str | None = None,
        status: str | None = None,
        lang: str | None = None,
    ) -> list[FragmentIndexRow]:
        """Rows filtered by category, status and language availability."""
        stmt = select(FragmentIndexRow)
        if category is not None:
            stmt = stmt.where(FragmentIndexRow.category == category)
        if status is not None:
            stmt = stmt.where(FragmentIndexRow.status == status)
        if lang == "en":
            stmt = stmt.where(FragmentIndexRow.has_en == True)  # noqa: E712
        elif lang == "ja":
            stmt = stmt.where(FragmentIndexRow.has_ja == True)  # noqa: E712
        stmt = stmt.order_by(FragmentIndexRow.id)
        with self.session() as session:
            return list(session.exec(stmt).all())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def modify(
        self,
        fragment_id: str,
        change: Callable[[FragmentIndexRow | None], FragmentIndexRow | None],
    ) -> FragmentIndexRow | None:
        """Apply *change* to the row for *fragment_id* in one transaction.

        *change* receives the current row (or ``None``) and returns the row
        to store, or ``None`` to leave the table untouched.  A returned row
        with neither language present is deleted instead of stored.

        Returns:
            The stored row, or ``None`` if nothing is stored afterwards.
        """
        with self.transaction() as session:
            current = session.get(FragmentIndexRow, fragment_id)
            updated = change(current)
            if updated is None:
                return current
            if updated.is_empty:
                if current is not None:
                    session.delete(current)
                    logger.info("Deleted fragment_index row %s", fragment_id)
                return None
            session.add(updated)
            session.flush()
            return updated

    def delete(self, fragment_id: str) -> bool:
        with self.transaction() as session:
            row = session.get(FragmentIndexRow, fragment_id)
            if row is None:
                return False
            session.delete(row)
            return True
