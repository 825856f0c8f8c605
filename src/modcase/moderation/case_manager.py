"""
Moderation case recording and warn escalation.

The case manager persists one case per moderation action and, for warns,
decides whether the new case crosses a rung of the guild's escalation
ladder. It never talks to the chat platform: an escalation comes back as
data, the caller applies it and records the follow-up case through
:meth:`CaseManager.escalated_case_input`.

Counting and deciding happen per (guild, target). With
``serialize_per_target`` enabled (the default) warns for the same target are
processed one at a time, so two concurrent warns can't both observe the same
trigger count and fire the same rule twice. With it disabled the count is
read without coordination and concurrent warns may both fire a rule.
"""

from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Dict, List, Optional, Tuple

from modcase.database.db_connection import ConnectionManager
from modcase.datatypes.case_datatypes import (
    CaseType,
    EscalationResult,
    ModerationCaseInput,
    ModerationCaseRecord,
    ModerationCaseResponse,
    Severity,
)
from modcase.datatypes.moderation_config import EscalationKind
from modcase.errors import CaseWriteError, StorageError
from modcase.moderation.config_store import ModerationConfigStore
from modcase.moderation.escalation import evaluate
from modcase.repositories.moderation_case_repo import ModerationCaseRepo
from modcase.util.logger import get_logger

logger = get_logger("case_manager")


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_case_id() -> str:
    return str(uuid.uuid4())


@dataclass
class _TargetLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class CaseManager:
    """Records moderation cases and recommends warn escalations."""

    def __init__(
        self,
        db: ConnectionManager,
        config_store: ModerationConfigStore,
        repo: Optional[ModerationCaseRepo] = None,
        serialize_per_target: bool = True,
        id_factory: Callable[[], str] = _new_case_id,
        clock: Callable[[], str] = _utcnow_iso,
    ) -> None:
        self._db = db
        self._config_store = config_store
        self._repo = repo or ModerationCaseRepo()
        self._serialize_per_target = serialize_per_target
        self._id_factory = id_factory
        self._clock = clock
        self._per_target_locks: Dict[Tuple[str, str], _TargetLock] = {}

    @asynccontextmanager
    async def _target_lock(self, guild_id: str, target_id: str) -> AsyncIterator[None]:
        """Hold the (guild, target) lock; the entry is dropped once nobody holds or awaits it."""
        key = (str(guild_id), str(target_id))
        entry = self._per_target_locks.get(key)
        if entry is None:
            entry = self._per_target_locks[key] = _TargetLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                self._per_target_locks.pop(key, None)

    # ------------------------------------------------------------------
    # Case creation
    # ------------------------------------------------------------------

    async def create_moderation_case(self, case_input: ModerationCaseInput) -> ModerationCaseResponse:
        """
        Persist a case and, for warns, evaluate the escalation ladder.

        Args:
            case_input: The action being recorded.

        Returns:
            ModerationCaseResponse: the stored record plus the recommended
            escalation, if the new warn count hits a rule threshold exactly.

        Raises:
            ValueError: ``type`` or ``severity`` is not a known value.
            CaseWriteError: the case could not be stored. Not recovered here;
                the moderator issuing the command has to see the failure.
        """
        case_type = CaseType(case_input.type)
        severity = Severity(case_input.severity) if case_input.severity else None

        if case_type is CaseType.WARN and self._serialize_per_target:
            async with self._target_lock(case_input.guild_id, case_input.target_id):
                return await self._create(case_input, case_type, severity)
        return await self._create(case_input, case_type, severity)

    async def _create(
        self,
        case_input: ModerationCaseInput,
        case_type: CaseType,
        severity: Optional[Severity],
    ) -> ModerationCaseResponse:
        record = await self._insert(case_input, case_type, severity)

        if case_type is not CaseType.WARN:
            return ModerationCaseResponse(case_record=record)

        escalation = await self._resolve_warn_escalation(record)
        return ModerationCaseResponse(case_record=record, escalation=escalation)

    async def _insert(
        self,
        case_input: ModerationCaseInput,
        case_type: CaseType,
        severity: Optional[Severity],
    ) -> ModerationCaseRecord:
        guild_id = str(case_input.guild_id)
        try:
            async with self._db.transaction() as conn:
                case_number = await self._repo.next_case_number(conn, guild_id)
                record = ModerationCaseRecord(
                    id=self._id_factory(),
                    case_number=case_number,
                    guild_id=guild_id,
                    type=case_type,
                    reason=case_input.reason or "",
                    target_id=str(case_input.target_id),
                    target_tag=case_input.target_tag,
                    moderator_id=str(case_input.moderator_id),
                    moderator_tag=case_input.moderator_tag,
                    severity=severity,
                    duration_ms=case_input.duration_ms,
                    metadata=dict(case_input.metadata or {}),
                    created_at=self._clock(),
                )
                await self._repo.insert(conn, record)
        except Exception as exc:
            logger.error(
                "[CASE MANAGER] Failed to create %s case for %s in guild %s: %s",
                case_input.type, case_input.target_id, guild_id, exc,
            )
            raise CaseWriteError(f"could not persist {case_input.type} case for {case_input.target_id}") from exc

        logger.info(
            "[CASE MANAGER] Recorded case #%s (%s) for %s in guild %s",
            record.case_number, record.type, record.target_id, guild_id,
        )
        return record

    async def _resolve_warn_escalation(self, record: ModerationCaseRecord) -> Optional[EscalationResult]:
        config = await self._config_store.fetch_config(record.guild_id)
        rules = config.escalation.warn
        if not rules:
            return None

        try:
            trigger_count = await self.count_cases(record.guild_id, record.target_id, CaseType.WARN)
        except StorageError:
            logger.exception(
                "[CASE MANAGER] Could not count warns for %s in guild %s; skipping escalation",
                record.target_id, record.guild_id,
            )
            return None

        rule = evaluate(rules, trigger_count)
        if rule is None:
            return None

        logger.info(
            "[CASE MANAGER] Warn #%d for %s in guild %s triggers rule %s (%s)",
            trigger_count, record.target_id, record.guild_id, rule.id, rule.action.kind,
        )
        return EscalationResult(
            rule=rule,
            action=rule.action,
            trigger_count=trigger_count,
            source_case_id=record.id,
        )

    @staticmethod
    def escalated_case_input(source: ModerationCaseRecord, escalation: EscalationResult) -> ModerationCaseInput:
        """
        Input for the linked case documenting an applied escalation.

        Only record it after the action actually took effect on the platform.
        """
        action = escalation.action
        return ModerationCaseInput(
            guild_id=source.guild_id,
            type=CaseType(action.kind.value),
            target_id=source.target_id,
            target_tag=source.target_tag,
            moderator_id=source.moderator_id,
            moderator_tag=source.moderator_tag,
            reason=action.reason,
            duration_ms=action.duration_ms if action.kind is EscalationKind.TIMEOUT else None,
            metadata={
                "escalation_rule_id": escalation.rule.id,
                "trigger_count": escalation.trigger_count,
                "source_case_id": source.id,
            },
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def count_cases(self, guild_id: str, target_id: str, case_type: CaseType) -> int:
        """
        Raises:
            StorageError: the backend could not be read.
        """
        try:
            async with self._db.read() as conn:
                return await self._repo.count(conn, str(guild_id), str(target_id), case_type)
        except Exception as exc:
            raise StorageError(f"could not count {case_type} cases for {target_id}") from exc

    async def get_case(self, case_id: str) -> Optional[ModerationCaseRecord]:
        try:
            async with self._db.read() as conn:
                return await self._repo.get(conn, case_id)
        except Exception as exc:
            raise StorageError(f"could not load case {case_id}") from exc

    async def list_cases(
        self,
        guild_id: str,
        target_id: str,
        case_type: Optional[CaseType] = None,
        limit: int = 25,
    ) -> List[ModerationCaseRecord]:
        """Cases recorded against ``target_id``, newest first."""
        try:
            async with self._db.read() as conn:
                return await self._repo.list_for_target(conn, str(guild_id), str(target_id), case_type, limit)
        except Exception as exc:
            raise StorageError(f"could not list cases for {target_id}") from exc
