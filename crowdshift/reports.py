# -*- coding: utf-8 -*-
"""
Community crowd reports
=======================
Visitors report how crowded a spot is (severity 1-5). Reports are stored in SQLite
and turned into a 0-100 report score from the recent window:

    report_score = mean((severity - 1) / 4 × 100) × min(1, n / MIN_REPORTS)

so a single report cannot push a spot to the top of the scale on its own.
"""
import sqlite3
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional

from crowdshift.exceptions import SignalUnavailable

MIN_REPORTS = 3


class ReportStore:
    def __init__(self, db_path, window_minutes: int = 60):
        self.db_path = Path(db_path) if str(db_path) != ":memory:" else None
        self.window_minutes = window_minutes
        self._lock = threading.Lock()
        self._memory_conn: Optional[sqlite3.Connection] = None
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        if self.db_path is None:
            # a single shared connection keeps the in-memory database alive
            if self._memory_conn is None:
                self._memory_conn = sqlite3.connect(":memory:", check_same_thread=False)
                self._memory_conn.row_factory = sqlite3.Row
            return self._memory_conn
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def _release(self, conn):
        if conn is not self._memory_conn:
            conn.close()

    def _init_db(self):
        if self.db_path is not None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = self._connect()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS crowd_report (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    spot_id TEXT NOT NULL,
                    severity INTEGER NOT NULL,
                    comment TEXT,
                    created_at REAL NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_report_spot_time ON crowd_report(spot_id, created_at)"
            )
            conn.commit()
        finally:
            self._release(conn)

    def add_report(self, spot_id: str, severity: int, comment: Optional[str] = None,
                   created_at: Optional[float] = None) -> int:
        if not 1 <= int(severity) <= 5:
            raise ValueError("severity must be within 1..5")
        ts = created_at if created_at is not None else time.time()
        with self._lock:
            conn = self._connect()
            try:
                cursor = conn.execute(
                    "INSERT INTO crowd_report (spot_id, severity, comment, created_at) "
                    "VALUES (?, ?, ?, ?)",
                    (spot_id, int(severity), comment, ts),
                )
                conn.commit()
                return int(cursor.lastrowid)
            finally:
                self._release(conn)

    def _recent(self, spot_id: Optional[str], now: float) -> List[sqlite3.Row]:
        since = now - self.window_minutes * 60
        with self._lock:
            conn = self._connect()
            try:
                if spot_id is None:
                    return conn.execute(
                        "SELECT spot_id, severity FROM crowd_report WHERE created_at >= ?",
                        (since,),
                    ).fetchall()
                return conn.execute(
                    "SELECT spot_id, severity FROM crowd_report "
                    "WHERE spot_id = ? AND created_at >= ?",
                    (spot_id, since),
                ).fetchall()
            finally:
                self._release(conn)

    def report_score(self, spot_id: str, now: Optional[float] = None) -> int:
        now = now if now is not None else time.time()
        rows = self._recent(spot_id, now)
        if not rows:
            return 0
        mean = sum((r["severity"] - 1) / 4 * 100 for r in rows) / len(rows)
        weight = min(1.0, len(rows) / MIN_REPORTS)
        return int(round(mean * weight))

    def fetch_report_score(self, spot_id: str) -> int:
        try:
            return self.report_score(spot_id)
        except sqlite3.Error as e:
            raise SignalUnavailable("reports", spot_id, str(e)) from e

    def stats(self, now: Optional[float] = None) -> Dict[str, Dict[str, float]]:
        """Per-spot report counts and mean severity over the recent window."""
        now = now if now is not None else time.time()
        per_spot: Dict[str, List[int]] = {}
        for row in self._recent(None, now):
            per_spot.setdefault(row["spot_id"], []).append(row["severity"])
        return {
            spot_id: {
                "count": len(values),
                "avg_severity": round(sum(values) / len(values), 2),
                "report_score": self.report_score(spot_id, now),
            }
            for spot_id, values in per_spot.items()
        }
