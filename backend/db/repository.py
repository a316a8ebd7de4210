"""Repository seam between the break service and MongoDB."""

import logging
from typing import Optional, Protocol

from beanie import PydanticObjectId
from beanie.operators import In
from bson.errors import InvalidId
from pymongo.errors import DuplicateKeyError, PyMongoError

from breaks.errors import ConcurrentModificationError, RepositoryError, WarningNotFoundError
from breaks.types import (
    BreakAssignment,
    BreakRule,
    BreakScheduleWarning,
    BreakType,
    CoverageRule,
    ScheduleConfig,
    Shift,
    WarningType,
    schedule_version,
    DEFAULT_BREAK_RULES,
)
from utils import utc_now

from .database import get_client
from .models import (
    BreakAssignmentDoc,
    BreakRuleDoc,
    BreakWarningDoc,
    CoverageRuleDoc,
    DurationBucketEmbed,
    EmployeeDoc,
    ScheduleConfigDoc,
    ShiftConfigurationDoc,
    ShiftDoc,
)


class ScheduleRepository(Protocol):
    """Everything the break service reads from and writes to storage."""

    async def get_shifts(self, date: str, department: Optional[str] = None) -> list[Shift]: ...

    async def get_shift(self, user_id: str, date: str) -> Optional[Shift]: ...

    async def get_break_rules(self) -> list[BreakRule]: ...

    async def get_coverage_rule(self) -> CoverageRule: ...

    async def get_schedule_config(self) -> Optional[ScheduleConfig]:
        """Stored config, or None to use the environment defaults."""
        ...

    async def get_shift_configurations(self) -> list[dict]: ...

    async def get_assignments(self, date: str, user_id: Optional[str] = None) -> list[BreakAssignment]: ...

    async def get_warnings(self, date: str) -> list[BreakScheduleWarning]: ...

    async def get_unresolved_warnings(self, date: str) -> list[BreakScheduleWarning]: ...

    async def replace_assignments(
        self,
        user_id: str,
        date: str,
        assignments: list[BreakAssignment],
        expected_version: Optional[str] = None,
    ) -> str:
        """
        Atomically swap the agent's break set; returns the new version.

        Dismissed warnings for the agent and date are retired with the old
        set, so a later mismatch against the new set is reported again.

        Raises:
            ConcurrentModificationError: If expected_version no longer matches
        """
        ...

    async def delete_assignments(self, user_id: str, date: str) -> int:
        """Remove the agent's breaks and retire its dismissed warnings."""
        ...

    async def delete_assignments_for_date(self, date: str) -> int: ...

    async def save_warnings(self, warnings: list[BreakScheduleWarning]) -> list[BreakScheduleWarning]: ...

    async def resolve_warning(self, warning_id: str) -> BreakScheduleWarning: ...

    async def delete_warnings(self, warning_ids: list[str]) -> int: ...

    async def save_break_rule(self, rule: BreakRule) -> BreakRule: ...

    async def save_coverage_rule(self, rule: CoverageRule) -> CoverageRule: ...

    async def save_shift_configuration(self, row: dict) -> dict: ...

    async def save_schedule_config(self, config: ScheduleConfig) -> ScheduleConfig: ...


def _shift_from_doc(doc: ShiftDoc, names: Optional[dict[str, str]] = None) -> Shift:
    return Shift(
        user_id=doc.user_id,
        date=doc.date,
        shift_code=doc.shift_code,
        department=doc.department,
        name=(names or {}).get(doc.user_id),
    )


def _assignment_from_doc(doc: BreakAssignmentDoc) -> BreakAssignment:
    return BreakAssignment(
        user_id=doc.user_id,
        date=doc.date,
        shift_code_at_assignment=doc.shift_code_at_assignment,
        interval_slot=doc.interval_slot,
        break_type=BreakType(doc.break_type),
        created_by=doc.created_by,
    )


def _assignment_to_doc(assignment: BreakAssignment) -> BreakAssignmentDoc:
    return BreakAssignmentDoc(
        user_id=assignment.user_id,
        date=assignment.date,
        shift_code_at_assignment=assignment.shift_code_at_assignment,
        interval_slot=assignment.interval_slot,
        break_type=assignment.break_type.value,
        created_by=assignment.created_by,
    )


def _warning_from_doc(doc: BreakWarningDoc) -> BreakScheduleWarning:
    return BreakScheduleWarning(
        id=str(doc.id),
        user_id=doc.user_id,
        date=doc.date,
        warning_type=WarningType(doc.warning_type),
        old_shift_code=doc.old_shift_code,
        new_shift_code=doc.new_shift_code,
        message=doc.message,
        resolved=doc.resolved,
        created_at=doc.created_at,
    )


def _rule_from_doc(doc: BreakRuleDoc) -> BreakRule:
    return BreakRule.from_dict({
        "break_type": doc.break_type,
        "buckets": [b.model_dump() for b in doc.buckets],
        "min_spacing_slots": doc.min_spacing_slots,
        "forbidden_edge_slots": doc.forbidden_edge_slots,
        "sequence": doc.sequence,
        "max_gap_slots": doc.max_gap_slots,
        "is_blocking": doc.is_blocking,
        "is_active": doc.is_active,
    })


def _shift_configuration_to_dict(doc: ShiftConfigurationDoc) -> dict:
    return {
        "shift_code": doc.shift_code,
        "start_time": doc.start_time,
        "end_time": doc.end_time,
        "description": doc.description,
        "is_active": doc.is_active,
    }


class BeanieScheduleRepository:
    """MongoDB repository on Beanie documents; call init_db() first."""

    async def get_shifts(self, date: str, department: Optional[str] = None) -> list[Shift]:
        query = ShiftDoc.find(ShiftDoc.date == date)
        if department:
            query = query.find(ShiftDoc.department == department)
        docs = await query.sort("+user_id").to_list()

        user_ids = [d.user_id for d in docs]
        employees = await EmployeeDoc.find(In(EmployeeDoc.user_id, user_ids)).to_list() if user_ids else []
        names = {e.user_id: e.name for e in employees}
        return [_shift_from_doc(d, names) for d in docs]

    async def get_shift(self, user_id: str, date: str) -> Optional[Shift]:
        doc = await ShiftDoc.find_one(ShiftDoc.user_id == user_id, ShiftDoc.date == date)
        return _shift_from_doc(doc) if doc else None

    async def get_break_rules(self) -> list[BreakRule]:
        # Stored rows override the defaults type by type
        rules = {r.break_type: r for r in DEFAULT_BREAK_RULES}
        for doc in await BreakRuleDoc.find().to_list():
            rule = _rule_from_doc(doc)
            rules[rule.break_type] = rule
        return sorted(rules.values(), key=lambda r: (r.sequence, r.break_type.value))

    async def get_coverage_rule(self) -> CoverageRule:
        doc = await CoverageRuleDoc.find_one()
        if not doc:
            return CoverageRule()
        return CoverageRule(
            max_concurrent_on_break=doc.max_concurrent_on_break,
            max_concurrent_percent=doc.max_concurrent_percent,
            min_available=doc.min_available,
        )

    async def get_schedule_config(self) -> Optional[ScheduleConfig]:
        doc = await ScheduleConfigDoc.find_one()
        if not doc:
            return None
        return ScheduleConfig(
            day_start=doc.day_start,
            day_end=doc.day_end,
            interval_minutes=doc.interval_minutes,
            solver_type=doc.solver_type,
            solver_time_limit_sec=doc.solver_time_limit_sec,
        )

    async def get_shift_configurations(self) -> list[dict]:
        docs = await ShiftConfigurationDoc.find().sort("+shift_code").to_list()
        return [_shift_configuration_to_dict(d) for d in docs]

    async def get_assignments(self, date: str, user_id: Optional[str] = None) -> list[BreakAssignment]:
        query = BreakAssignmentDoc.find(BreakAssignmentDoc.date == date)
        if user_id:
            query = query.find(BreakAssignmentDoc.user_id == user_id)
        docs = await query.sort("+user_id", "+interval_slot").to_list()
        return [_assignment_from_doc(d) for d in docs]

    async def get_warnings(self, date: str) -> list[BreakScheduleWarning]:
        docs = await BreakWarningDoc.find(BreakWarningDoc.date == date).sort("+created_at").to_list()
        return [_warning_from_doc(d) for d in docs]

    async def get_unresolved_warnings(self, date: str) -> list[BreakScheduleWarning]:
        docs = await BreakWarningDoc.find(
            BreakWarningDoc.date == date,
            BreakWarningDoc.resolved == False,
        ).sort("+created_at").to_list()
        return [_warning_from_doc(d) for d in docs]

    async def replace_assignments(
        self,
        user_id: str,
        date: str,
        assignments: list[BreakAssignment],
        expected_version: Optional[str] = None,
    ) -> str:
        docs = [_assignment_to_doc(a) for a in assignments]
        try:
            async with await get_client().start_session() as session:
                async with session.start_transaction():
                    if expected_version is not None:
                        shift = await ShiftDoc.find_one(
                            ShiftDoc.user_id == user_id, ShiftDoc.date == date, session=session
                        )
                        current = await BreakAssignmentDoc.find(
                            BreakAssignmentDoc.user_id == user_id,
                            BreakAssignmentDoc.date == date,
                            session=session,
                        ).to_list()
                        actual = schedule_version(
                            shift.shift_code if shift else None,
                            [_assignment_from_doc(d) for d in current],
                        )
                        if actual != expected_version:
                            raise ConcurrentModificationError(user_id, date, expected_version, actual)

                    await BreakAssignmentDoc.find(
                        BreakAssignmentDoc.user_id == user_id,
                        BreakAssignmentDoc.date == date,
                        session=session,
                    ).delete(session=session)
                    if docs:
                        await BreakAssignmentDoc.insert_many(docs, session=session)
                    await BreakWarningDoc.find(
                        BreakWarningDoc.user_id == user_id,
                        BreakWarningDoc.date == date,
                        BreakWarningDoc.resolved == True,
                        session=session,
                    ).delete(session=session)

                    shift = await ShiftDoc.find_one(
                        ShiftDoc.user_id == user_id, ShiftDoc.date == date, session=session
                    )
        except PyMongoError as e:
            raise RepositoryError(f"Failed to replace breaks for {user_id} on {date}: {e}") from e

        logging.info(f"Replaced breaks for {user_id} on {date}: {len(docs)} rows")
        return schedule_version(shift.shift_code if shift else None, assignments)

    async def delete_assignments(self, user_id: str, date: str) -> int:
        result = await BreakAssignmentDoc.find(
            BreakAssignmentDoc.user_id == user_id,
            BreakAssignmentDoc.date == date,
        ).delete()
        await BreakWarningDoc.find(
            BreakWarningDoc.user_id == user_id,
            BreakWarningDoc.date == date,
            BreakWarningDoc.resolved == True,
        ).delete()
        return result.deleted_count if result else 0

    async def delete_assignments_for_date(self, date: str) -> int:
        result = await BreakAssignmentDoc.find(BreakAssignmentDoc.date == date).delete()
        await BreakWarningDoc.find(
            BreakWarningDoc.date == date,
            BreakWarningDoc.resolved == True,
        ).delete()
        return result.deleted_count if result else 0

    async def save_warnings(self, warnings: list[BreakScheduleWarning]) -> list[BreakScheduleWarning]:
        saved = []
        for warning in warnings:
            doc = BreakWarningDoc(
                user_id=warning.user_id,
                date=warning.date,
                warning_type=warning.warning_type.value,
                old_shift_code=warning.old_shift_code,
                new_shift_code=warning.new_shift_code,
                message=warning.message,
                resolved=warning.resolved,
            )
            try:
                await doc.insert()
            except DuplicateKeyError:
                # A concurrent detection already stored this signature
                logging.info(f"Warning {warning.signature} already stored")
                continue
            saved.append(_warning_from_doc(doc))
        return saved

    async def resolve_warning(self, warning_id: str) -> BreakScheduleWarning:
        try:
            object_id = PydanticObjectId(warning_id)
        except (InvalidId, TypeError) as e:
            raise WarningNotFoundError(warning_id) from e

        doc = await BreakWarningDoc.get(object_id)
        if not doc:
            raise WarningNotFoundError(warning_id)
        if not doc.resolved:
            doc.resolved = True
            doc.resolved_at = utc_now()
            await doc.save()
        return _warning_from_doc(doc)

    async def delete_warnings(self, warning_ids: list[str]) -> int:
        object_ids = [PydanticObjectId(warning_id) for warning_id in warning_ids]
        if not object_ids:
            return 0
        result = await BreakWarningDoc.find(In(BreakWarningDoc.id, object_ids)).delete()
        return result.deleted_count if result else 0

    async def save_break_rule(self, rule: BreakRule) -> BreakRule:
        doc = await BreakRuleDoc.find_one(BreakRuleDoc.break_type == rule.break_type.value)
        if not doc:
            doc = BreakRuleDoc(break_type=rule.break_type.value)
        doc.buckets = [DurationBucketEmbed(min_shift_minutes=b.min_shift_minutes, count=b.count) for b in rule.buckets]
        doc.min_spacing_slots = rule.min_spacing_slots
        doc.forbidden_edge_slots = rule.forbidden_edge_slots
        doc.sequence = rule.sequence
        doc.max_gap_slots = rule.max_gap_slots
        doc.is_blocking = rule.is_blocking
        doc.is_active = rule.is_active
        doc.updated_at = utc_now()
        await doc.save()
        return _rule_from_doc(doc)

    async def save_coverage_rule(self, rule: CoverageRule) -> CoverageRule:
        doc = await CoverageRuleDoc.find_one()
        if not doc:
            doc = CoverageRuleDoc()
        doc.max_concurrent_on_break = rule.max_concurrent_on_break
        doc.max_concurrent_percent = rule.max_concurrent_percent
        doc.min_available = rule.min_available
        doc.updated_at = utc_now()
        await doc.save()
        return rule

    async def save_shift_configuration(self, row: dict) -> dict:
        code = row["shift_code"].upper()
        doc = await ShiftConfigurationDoc.find_one(ShiftConfigurationDoc.shift_code == code)
        if not doc:
            doc = ShiftConfigurationDoc(shift_code=code, start_time=row["start_time"], end_time=row["end_time"])
        doc.start_time = row["start_time"]
        doc.end_time = row["end_time"]
        doc.description = row.get("description")
        doc.is_active = row.get("is_active", True)
        doc.updated_at = utc_now()
        await doc.save()
        return _shift_configuration_to_dict(doc)

    async def save_schedule_config(self, config: ScheduleConfig) -> ScheduleConfig:
        doc = await ScheduleConfigDoc.find_one()
        if not doc:
            doc = ScheduleConfigDoc()
        doc.day_start = config.day_start
        doc.day_end = config.day_end
        doc.interval_minutes = config.interval_minutes
        doc.solver_type = config.solver_type
        doc.solver_time_limit_sec = config.solver_time_limit_sec
        doc.updated_at = utc_now()
        await doc.save()
        return config

