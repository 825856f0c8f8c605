"""
Persistent storage for moderation cases.

Rows are append-only: this repository inserts and reads, it never updates or
deletes a case.
"""

from __future__ import annotations

import json
from typing import Any, List, Optional

import aiosqlite

from modcase.datatypes.case_datatypes import CaseType, ModerationCaseRecord, Severity

_COLUMNS = (
    "id, case_number, guild_id, type, reason, target_id, target_tag, "
    "moderator_id, moderator_tag, severity, duration_ms, metadata, created_at, resolved_at"
)


def _row_to_record(row: Any) -> ModerationCaseRecord:
    metadata = json.loads(row["metadata"]) if row["metadata"] else {}
    return ModerationCaseRecord(
        id=str(row["id"]),
        case_number=row["case_number"],
        guild_id=str(row["guild_id"]),
        type=CaseType(row["type"]),
        reason=row["reason"] or "",
        target_id=str(row["target_id"]),
        target_tag=str(row["target_tag"]),
        moderator_id=str(row["moderator_id"]),
        moderator_tag=str(row["moderator_tag"]),
        severity=Severity(row["severity"]) if row["severity"] else None,
        duration_ms=row["duration_ms"],
        metadata=metadata or {},
        created_at=row["created_at"],
        resolved_at=row["resolved_at"],
    )


class ModerationCaseRepo:
    """Low-level access to the ``moderation_cases`` table."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def next_case_number(conn: aiosqlite.Connection, guild_id: str) -> int:
        """Next per-guild sequence value. Call inside the inserting transaction."""
        cursor = await conn.execute(
            "SELECT COALESCE(MAX(case_number), 0) + 1 FROM moderation_cases WHERE guild_id = ?",
            (str(guild_id),),
        )
        row = await cursor.fetchone()
        return int(row[0])

    @staticmethod
    async def insert(conn: aiosqlite.Connection, record: ModerationCaseRecord) -> None:
        await conn.execute(
            f"INSERT INTO moderation_cases ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.id,
                record.case_number,
                record.guild_id,
                record.type.value,
                record.reason,
                record.target_id,
                record.target_tag,
                record.moderator_id,
                record.moderator_tag,
                record.severity.value if record.severity else None,
                record.duration_ms,
                json.dumps(record.metadata, ensure_ascii=False),
                record.created_at,
                record.resolved_at,
            ),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def get(conn: aiosqlite.Connection, case_id: str) -> Optional[ModerationCaseRecord]:
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM moderation_cases WHERE id = ?",
            (str(case_id),),
        )
        row = await cursor.fetchone()
        return _row_to_record(row) if row is not None else None

    @staticmethod
    async def count(
        conn: aiosqlite.Connection,
        guild_id: str,
        target_id: str,
        case_type: CaseType,
    ) -> int:
        """Number of cases of ``case_type`` recorded against ``target_id``."""
        cursor = await conn.execute(
            "SELECT COUNT(*) FROM moderation_cases WHERE guild_id = ? AND target_id = ? AND type = ?",
            (str(guild_id), str(target_id), case_type.value),
        )
        row = await cursor.fetchone()
        return int(row[0])

    @staticmethod
    async def list_for_target(
        conn: aiosqlite.Connection,
        guild_id: str,
        target_id: str,
        case_type: Optional[CaseType] = None,
        limit: int = 25,
    ) -> List[ModerationCaseRecord]:
        """Cases against ``target_id``, newest first."""
        query = f"SELECT {_COLUMNS} FROM moderation_cases WHERE guild_id = ? AND target_id = ?"
        params: list = [str(guild_id), str(target_id)]
        if case_type is not None:
            query += " AND type = ?"
            params.append(case_type.value)
        query += " ORDER BY created_at DESC, case_number DESC LIMIT ?"
        params.append(limit)

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]
