from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import psycopg2
from psycopg2.extras import Json

from ..config.loader import DatabaseConfig, StorageConfig
from ..models.column_mapping import SavedMapping
from ..models.metrics import METRIC_KEYS
from ..models.month_row import NormalizedMonthRow
from .repositories import StoreUnavailableError, UpsertError

"""PostgreSQL adapters for the repository interfaces (psycopg2).

Table and column names come from the validated config (identifier pattern)
and the closed metric catalogue, so they are quoted and interpolated; every
value goes through parameters.

Connection-level failures (OperationalError / InterfaceError) become
StoreUnavailableError; any other database error on a single statement
becomes UpsertError. The connection runs in autocommit: each upsert stands
alone and is idempotent on its conflict key.
"""

__all__ = [
    "build_dsn",
    "db_connection",
    "PostgresStatsRepository",
    "PostgresMappingRepository",
]

_CONNECTION_ERRORS = (psycopg2.OperationalError, psycopg2.InterfaceError)


def build_dsn(db_cfg: DatabaseConfig) -> str:
    """Resolve the DSN.

    Precedence:
        1. DATABASE_URL / PGDSN, then the config dsn
        2. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE, each falling back
           to the config value
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def db_connection(db_cfg: DatabaseConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    """Autocommit psycopg2 connection, closed on exit."""
    try:
        conn = psycopg2.connect(build_dsn(db_cfg))
    except psycopg2.Error as e:
        raise StoreUnavailableError(f"cannot connect: {e}") from e
    conn.autocommit = True
    try:
        yield conn
    finally:
        conn.close()


def _q(name: str) -> str:
    return f'"{name}"'


class PostgresStatsRepository:
    def __init__(self, conn: Any, storage: StorageConfig) -> None:
        self.conn = conn
        self.table = storage.stats_table
        self.owner_column = storage.owner_column

    def upsert(self, owner_id: str, row: NormalizedMonthRow) -> None:
        metrics = [k for k in METRIC_KEYS if k in row.values]
        columns = [self.owner_column, "month_date", *metrics]
        params = [owner_id, row.month_key, *(row.values[k] for k in metrics)]
        cols_sql = ",".join(_q(c) for c in columns)
        placeholders = ",".join(["%s"] * len(columns))
        conflict = f"{_q(self.owner_column)},{_q('month_date')}"
        if metrics:
            updates = ",".join(f"{_q(k)} = EXCLUDED.{_q(k)}" for k in metrics)
            action = f"DO UPDATE SET {updates}"
        else:
            action = "DO NOTHING"
        sql = (
            f"INSERT INTO {_q(self.table)} ({cols_sql}) VALUES ({placeholders}) "
            f"ON CONFLICT ({conflict}) {action}"
        )
        try:
            with self.conn.cursor() as cur:
                cur.execute(sql, params)
        except _CONNECTION_ERRORS as e:
            raise StoreUnavailableError(str(e)) from e
        except psycopg2.Error as e:
            raise UpsertError(f"{row.month_key}: {e}") from e


class PostgresMappingRepository:
    _FIELDS = (
        "sheet_name", "headers", "column_mapping", "date_column",
        "date_format", "start_row", "file_name", "created_at",
    )

    def __init__(self, conn: Any, storage: StorageConfig) -> None:
        self.conn = conn
        self.table = storage.mappings_table
        self.owner_column = storage.owner_column

    def recent(self, owner_id: str, limit: int) -> list[SavedMapping]:
        cols_sql = ",".join(_q(c) for c in self._FIELDS)
        sql = (
            f"SELECT {cols_sql} FROM {_q(self.table)} WHERE {_q(self.owner_column)} = %s "
            f"ORDER BY {_q('created_at')} DESC LIMIT %s"
        )
        try:
            with self.conn.cursor() as cur:
                cur.execute(sql, (owner_id, limit))
                fetched = cur.fetchall()
        except psycopg2.Error as e:
            raise StoreUnavailableError(str(e)) from e
        out: list[SavedMapping] = []
        for rec in fetched:
            data = dict(zip(self._FIELDS, rec, strict=True))
            out.append(
                SavedMapping(
                    owner_id=owner_id,
                    sheet_name=data["sheet_name"],
                    headers=tuple(data["headers"] or ()),
                    column_mapping=dict(data["column_mapping"] or {}),
                    date_column=int(data["date_column"]),
                    date_format=data["date_format"] or "auto",
                    start_row=int(data["start_row"] or 2),
                    file_name=data["file_name"],
                    created_at=data["created_at"],
                )
            )
        return out

    def save(self, saved: SavedMapping) -> None:
        values = {
            self.owner_column: saved.owner_id,
            "sheet_name": saved.sheet_name,
            "file_name": saved.file_name,
            "headers": Json(list(saved.headers)),
            "column_mapping": Json(saved.column_mapping),
            "date_column": saved.date_column,
            "date_format": saved.date_format,
            "start_row": saved.start_row,
        }
        cols_sql = ",".join(_q(c) for c in values) + f",{_q('created_at')}"
        placeholders = ",".join(["%s"] * len(values)) + ",now()"
        updates = ",".join(
            f"{_q(c)} = EXCLUDED.{_q(c)}" for c in values if c not in (self.owner_column, "sheet_name")
        )
        sql = (
            f"INSERT INTO {_q(self.table)} ({cols_sql}) VALUES ({placeholders}) "
            f"ON CONFLICT ({_q(self.owner_column)},{_q('sheet_name')}) "
            f"DO UPDATE SET {updates},{_q('created_at')} = now()"
        )
        try:
            with self.conn.cursor() as cur:
                cur.execute(sql, list(values.values()))
        except _CONNECTION_ERRORS as e:
            raise StoreUnavailableError(str(e)) from e
        except psycopg2.Error as e:
            raise UpsertError(f"mapping '{saved.sheet_name}': {e}") from e
