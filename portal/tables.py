# portal/tables.py
"""
Table-level access to the school database.

Repositories only talk to a client through five calls (select, insert,
update, delete, upsert) plus a ``Query`` describing filters and ordering.
Two clients implement them:

- ``SQLiteTables``   local file (db.py schema), used for development and tests
- ``SupabaseTables`` the hosted Postgres service via the supabase client

Any failure from either backend is raised as ``DataError``.
"""
from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from typing import Iterable, List, Optional

import db
from portal.settings import get_setting

logger = logging.getLogger(__name__)


class DataError(Exception):
    """Raised when the data service rejects or fails a request."""

    def __init__(self, message: str, table: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.table = table


class Query:
    """Filters, ordering and limit for one request; methods chain."""

    def __init__(self):
        self.filters: List[tuple] = []
        self.ordering: List[tuple] = []
        self.limit_n: Optional[int] = None

    def _add(self, op, column, value):
        self.filters.append((op, column, value))
        return self

    def eq(self, column, value):
        return self._add("eq", column, value)

    def neq(self, column, value):
        return self._add("neq", column, value)

    def gte(self, column, value):
        return self._add("gte", column, value)

    def lte(self, column, value):
        return self._add("lte", column, value)

    def in_(self, column, values: Iterable):
        return self._add("in", column, list(values))

    def ilike(self, column, pattern: str):
        return self._add("ilike", column, pattern)

    def order(self, column, desc: bool = False):
        self.ordering.append((column, desc))
        return self

    def limit(self, n: int):
        self.limit_n = n
        return self

    def columns(self):
        return [f[1] for f in self.filters] + [o[0] for o in self.ordering]


def where(**equals) -> Query:
    """Shorthand for a query made only of equality filters."""
    q = Query()
    for column, value in equals.items():
        q.eq(column, value)
    return q


class TablesBase:
    def select(self, table: str, query: Optional[Query] = None, columns: str = "*") -> List[dict]:
        raise NotImplementedError

    def insert(self, table: str, rows) -> List[dict]:
        raise NotImplementedError

    def update(self, table: str, values: dict, query: Query) -> List[dict]:
        raise NotImplementedError

    def delete(self, table: str, query: Query) -> int:
        raise NotImplementedError

    def upsert(self, table: str, row: dict, on_conflict: Iterable[str]) -> List[dict]:
        raise NotImplementedError

    def select_one(self, table: str, query: Optional[Query] = None, columns: str = "*") -> Optional[dict]:
        """Zero or one row; more than one match is an error."""
        rows = self.select(table, query, columns)
        if len(rows) > 1:
            raise DataError(f"Expected at most one row from '{table}', got {len(rows)}", table)
        return rows[0] if rows else None


# -------------------------
# SQLite
# -------------------------
def _to_sql_value(value):
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    return value


class SQLiteTables(TablesBase):
    """Runs each call on a fresh connection from db.get_connection()."""

    def _columns(self, conn, table):
        cur = conn.execute(f"PRAGMA table_info({table})")
        cols = [r[1] for r in cur.fetchall()]
        if not cols:
            raise DataError(f"Could not find the table '{table}' in the schema cache", table)
        return cols

    def _check_columns(self, table, known, wanted):
        for col in wanted:
            if col not in known:
                raise DataError(f"Could not find the '{col}' column of '{table}' in the schema cache", table)

    def _where_sql(self, query: Optional[Query]):
        clauses, params = [], []
        for op, col, value in (query.filters if query else []):
            if op == "eq":
                if value is None:
                    clauses.append(f"{col} IS NULL")
                else:
                    clauses.append(f"{col} = ?")
                    params.append(_to_sql_value(value))
            elif op == "neq":
                if value is None:
                    clauses.append(f"{col} IS NOT NULL")
                else:
                    clauses.append(f"{col} != ?")
                    params.append(_to_sql_value(value))
            elif op == "gte":
                clauses.append(f"{col} >= ?")
                params.append(value)
            elif op == "lte":
                clauses.append(f"{col} <= ?")
                params.append(value)
            elif op == "in":
                if not value:
                    clauses.append("0")
                else:
                    clauses.append(f"{col} IN ({', '.join('?' for _ in value)})")
                    params.extend(value)
            elif op == "ilike":
                # LIKE is case-insensitive for ASCII in SQLite
                clauses.append(f"{col} LIKE ?")
                params.append(value)
        sql = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return sql, params

    def _select(self, conn, table, query, columns="*"):
        known = self._columns(conn, table)
        wanted = [c.strip() for c in columns.split(",")] if columns.strip() != "*" else []
        self._check_columns(table, known, wanted + (query.columns() if query else []))
        sql = f"SELECT {columns} FROM {table}"
        where_sql, params = self._where_sql(query)
        sql += where_sql
        if query and query.ordering:
            sql += " ORDER BY " + ", ".join(f"{c} {'DESC' if d else 'ASC'}" for c, d in query.ordering)
        if query and query.limit_n is not None:
            sql += f" LIMIT {int(query.limit_n)}"
        return [dict(r) for r in conn.execute(sql, params).fetchall()]

    def _prepare_row(self, known, table, row):
        row = dict(row)
        self._check_columns(table, known, row.keys())
        if "id" in known and not row.get("id"):
            row["id"] = db.new_id()
        if "created_at" in known and not row.get("created_at"):
            row["created_at"] = db.now_iso()
        return row

    def select(self, table, query=None, columns="*"):
        conn = db.get_connection()
        try:
            return self._select(conn, table, query, columns)
        except DataError:
            raise
        except sqlite3.Error as e:
            raise DataError(str(e), table) from e
        finally:
            conn.close()

    def insert(self, table, rows):
        rows = [rows] if isinstance(rows, dict) else list(rows)
        conn = db.get_connection()
        try:
            known = self._columns(conn, table)
            ids = []
            for row in rows:
                row = self._prepare_row(known, table, row)
                cols = list(row.keys())
                conn.execute(
                    f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)})",
                    [_to_sql_value(row[c]) for c in cols],
                )
                ids.append(row.get("id"))
            conn.commit()
            if "id" not in known:
                return rows
            return self._select(conn, table, Query().in_("id", ids))
        except DataError:
            raise
        except sqlite3.Error as e:
            conn.rollback()
            raise DataError(str(e), table) from e
        finally:
            conn.close()

    def update(self, table, values, query):
        if not values:
            return []
        conn = db.get_connection()
        try:
            known = self._columns(conn, table)
            self._check_columns(table, known, values.keys())
            matched = [r["id"] for r in self._select(conn, table, query, "id")]
            if not matched:
                return []
            sets = ", ".join(f"{c} = ?" for c in values)
            conn.execute(
                f"UPDATE {table} SET {sets} WHERE id IN ({', '.join('?' for _ in matched)})",
                [_to_sql_value(v) for v in values.values()] + matched,
            )
            conn.commit()
            return self._select(conn, table, Query().in_("id", matched))
        except DataError:
            raise
        except sqlite3.Error as e:
            conn.rollback()
            raise DataError(str(e), table) from e
        finally:
            conn.close()

    def delete(self, table, query):
        conn = db.get_connection()
        try:
            self._check_columns(table, self._columns(conn, table), query.columns())
            where_sql, params = self._where_sql(query)
            cur = conn.execute(f"DELETE FROM {table}{where_sql}", params)
            conn.commit()
            return cur.rowcount
        except DataError:
            raise
        except sqlite3.Error as e:
            conn.rollback()
            raise DataError(str(e), table) from e
        finally:
            conn.close()

    def upsert(self, table, row, on_conflict):
        keys = list(on_conflict)
        conn = db.get_connection()
        try:
            known = self._columns(conn, table)
            row = self._prepare_row(known, table, row)
            self._check_columns(table, known, keys)
            cols = list(row.keys())
            updates = [c for c in cols if c not in keys and c not in ("id", "created_at")]
            if updates:
                action = "UPDATE SET " + ", ".join(f"{c}=excluded.{c}" for c in updates)
            else:
                action = "NOTHING"
            sql = (
                f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)}) "
                f"ON CONFLICT({', '.join(keys)}) DO {action}"
            )
            conn.execute(sql, [_to_sql_value(row[c]) for c in cols])
            conn.commit()
            lookup = Query()
            for k in keys:
                lookup.eq(k, row.get(k))
            return self._select(conn, table, lookup)
        except DataError:
            raise
        except sqlite3.Error as e:
            conn.rollback()
            raise DataError(str(e), table) from e
        finally:
            conn.close()


# -------------------------
# Supabase
# -------------------------
class SupabaseTables(TablesBase):
    """Thin adapter over the supabase-py query builder."""

    def __init__(self, url: str, key: str):
        from supabase import create_client

        self._client = create_client(url, key)

    def _apply(self, builder, query: Optional[Query]):
        if query is None:
            return builder
        for op, col, value in query.filters:
            if op == "eq":
                builder = builder.is_(col, "null") if value is None else builder.eq(col, value)
            elif op == "neq":
                builder = builder.not_.is_(col, "null") if value is None else builder.neq(col, value)
            elif op == "gte":
                builder = builder.gte(col, value)
            elif op == "lte":
                builder = builder.lte(col, value)
            elif op == "in":
                builder = builder.in_(col, value)
            elif op == "ilike":
                builder = builder.ilike(col, value)
        for col, desc in query.ordering:
            builder = builder.order(col, desc=desc)
        if query.limit_n is not None:
            builder = builder.limit(query.limit_n)
        return builder

    def _run(self, table, builder):
        from postgrest.exceptions import APIError

        try:
            return builder.execute().data or []
        except APIError as e:
            raise DataError(e.message or str(e), table) from e

    def select(self, table, query=None, columns="*"):
        return self._run(table, self._apply(self._client.table(table).select(columns), query))

    def insert(self, table, rows):
        if isinstance(rows, dict):
            rows = [rows]
        payload = [{k: (v.isoformat() if isinstance(v, datetime) else v) for k, v in r.items()} for r in rows]
        return self._run(table, self._client.table(table).insert(payload))

    def update(self, table, values, query):
        return self._run(table, self._apply(self._client.table(table).update(values), query))

    def delete(self, table, query):
        return len(self._run(table, self._apply(self._client.table(table).delete(), query)))

    def upsert(self, table, row, on_conflict):
        return self._run(table, self._client.table(table).upsert(row, on_conflict=",".join(on_conflict)))


_CLIENT: Optional[TablesBase] = None


def get_tables() -> TablesBase:
    """
    The configured client, created once per process.
    SCHOOL_BACKEND=supabase needs SUPABASE_URL and SUPABASE_KEY.
    """
    global _CLIENT
    if _CLIENT is not None:
        return _CLIENT

    backend = (get_setting("SCHOOL_BACKEND") or "sqlite").strip().lower()
    if backend == "supabase":
        url, key = get_setting("SUPABASE_URL"), get_setting("SUPABASE_KEY")
        if not url or not key:
            raise DataError("SUPABASE_URL and SUPABASE_KEY must be set for the supabase backend")
        logger.info("Using Supabase backend at %s", url)
        _CLIENT = SupabaseTables(url, key)
    else:
        logger.info("Using SQLite backend at %s", db.DB_PATH)
        _CLIENT = SQLiteTables()
    return _CLIENT
