"""SQLite cache of citation formats so repeat lookups skip the citation service."""

import sqlite3
import json
import os
from pathlib import Path
from typing import List, Optional
from datetime import datetime, timedelta
from .models import CitationFormat


class CitationCache:
    """Cache fetched citation formats in SQLite database."""

    def __init__(self, cache_dir: str = None, ttl_days: int = 7):
        """
        Initialize cache.

        Args:
            cache_dir: Directory to store cache database. Defaults to ~/.citeshelf/
            ttl_days: Time-to-live for cache entries in days
        """
        if cache_dir is None:
            home_cache = os.path.join(Path.home(), ".citeshelf")
            try:
                Path(home_cache).mkdir(parents=True, exist_ok=True)
                cache_dir = home_cache
            except (PermissionError, OSError):
                cache_dir = os.path.join(os.getcwd(), ".citeshelf")

        Path(cache_dir).mkdir(parents=True, exist_ok=True)
        self.db_path = os.path.join(cache_dir, "cache.db")
        self.ttl_days = ttl_days
        self._init_db()

    def _init_db(self):
        """Initialize database schema."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS citation_cache (
                    paper_id TEXT PRIMARY KEY,
                    formats_json TEXT NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_citation_created_at
                ON citation_cache(created_at)
            """)
            conn.commit()

    def _cutoff(self) -> str:
        return (datetime.now() - timedelta(days=self.ttl_days)).isoformat()

    def get(self, paper_id: str) -> Optional[List[CitationFormat]]:
        """
        Get cached citation formats for a paper.

        Returns:
            Formats if found and not expired, None otherwise
        """
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                """
                SELECT formats_json FROM citation_cache
                WHERE paper_id = ? AND created_at > ?
                """,
                (paper_id, self._cutoff()),
            )
            row = cursor.fetchone()

        if row:
            return [CitationFormat(**f) for f in json.loads(row[0])]
        return None

    def set(self, paper_id: str, formats: List[CitationFormat]) -> None:
        """Store the formats returned for a paper."""
        formats_json = json.dumps([f.model_dump(mode="json") for f in formats])

        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO citation_cache
                (paper_id, formats_json, created_at)
                VALUES (?, ?, ?)
                """,
                (paper_id, formats_json, datetime.now().isoformat()),
            )
            conn.commit()

    def clear(self) -> int:
        """
        Clear all cache entries.

        Returns:
            Number of entries cleared
        """
        with sqlite3.connect(self.db_path) as conn:
            count = conn.execute("SELECT COUNT(*) FROM citation_cache").fetchone()[0]
            conn.execute("DELETE FROM citation_cache")
            conn.commit()
            return count

    def clear_expired(self) -> int:
        """
        Clear expired cache entries.

        Returns:
            Number of entries cleared
        """
        cutoff = self._cutoff()
        with sqlite3.connect(self.db_path) as conn:
            count = conn.execute(
                "SELECT COUNT(*) FROM citation_cache WHERE created_at <= ?",
                (cutoff,),
            ).fetchone()[0]
            conn.execute("DELETE FROM citation_cache WHERE created_at <= ?", (cutoff,))
            conn.commit()
            return count

    def stats(self) -> dict:
        """Get cache statistics."""
        with sqlite3.connect(self.db_path) as conn:
            total = conn.execute("SELECT COUNT(*) FROM citation_cache").fetchone()[0]
            valid = conn.execute(
                "SELECT COUNT(*) FROM citation_cache WHERE created_at > ?",
                (self._cutoff(),),
            ).fetchone()[0]

        return {
            "total_entries": total,
            "valid_entries": valid,
            "expired_entries": total - valid,
            "db_path": self.db_path,
            "ttl_days": self.ttl_days,
        }
