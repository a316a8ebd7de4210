from typing import Literal

from pydantic import BaseModel, Field


class BreakSlot(BaseModel):
    interval_slot: int
    break_type: Literal["HB1", "B", "HB2"]


class ValidateBreaksRequest(BaseModel):
    breaks: list[BreakSlot] = []


class ReplaceBreaksRequest(BaseModel):
    breaks: list[BreakSlot] = []
    created_by: str | None = None
    expected_version: str | None = None  # From GET /breaks/schedule; omit to skip the check


class ViolationSchema(BaseModel):
    violation_type: str
    severity: Literal["error", "warning"] = "error"
    message: str
    user_id: str | None = None
    slot: int | None = None
    break_type: str | None = None
    details: dict = {}


class ValidationResponse(BaseModel):
    ok: bool
    violations: list[ViolationSchema] = []
    error_count: int = 0
    warning_count: int = 0


class BreakAssignmentSchema(BaseModel):
    user_id: str
    date: str  # ISO date string: "2026-01-20"
    shift_code_at_assignment: str
    interval_slot: int
    break_type: str
    created_by: str | None = None


class ReplaceBreaksResponse(BaseModel):
    ok: bool
    version: str
    assignments: list[BreakAssignmentSchema]


class ClearBreaksResponse(BaseModel):
    deleted: int


class AgentBreak(BaseModel):
    interval_slot: int
    time: str | None = None
    break_type: str
    shift_code_at_assignment: str


class AgentSchedule(BaseModel):
    user_id: str
    name: str | None = None
    department: str | None = None
    shift_code: str
    shift_start: str | None = None
    shift_end: str | None = None
    required_breaks: dict[str, int]
    breaks: list[AgentBreak]
    version: str


class SlotCoverageSchema(BaseModel):
    slot: int
    staffed: int
    on_break: int
    available: int
    by_type: dict[str, int]


class CoverageStats(BaseModel):
    min_available: int
    max_available: int
    avg_available: float
    variance: float


class WarningSchema(BaseModel):
    id: str | None = None
    user_id: str
    date: str
    warning_type: str
    old_shift_code: str | None = None
    new_shift_code: str | None = None
    message: str
    resolved: bool
    created_at: str | None = None


class ScheduleResponse(BaseModel):
    date: str
    interval_minutes: int
    slots: list[str]
    agents: list[AgentSchedule]
    coverage: list[SlotCoverageSchema]
    coverage_stats: CoverageStats
    coverage_violations: list[ViolationSchema] = []
    warnings: list[WarningSchema] = []


class DistributionRequest(BaseModel):
    date: str
    department: str | None = None
    apply_mode: Literal["all", "only_unscheduled"] = "all"
    solver_type: Literal["greedy", "ortools", "staggered"] | None = None
    created_by: str | None = None


class RuleCompliance(BaseModel):
    total_violations: int = 0
    blocking_violations: int = 0
    warning_violations: int = 0


class DistributionResultSchema(BaseModel):
    assignments_by_user: dict[str, list[BreakAssignmentSchema]]
    violations: list[ViolationSchema] = []
    feasible: bool
    coverage: list[SlotCoverageSchema]
    coverage_stats: CoverageStats
    skipped_users: list[str] = []
    kept_users: list[str] = []
    solver: str
    rule_compliance: RuleCompliance


class FailedAgent(BaseModel):
    user_id: str
    reason: str  # "validation_failed", "concurrent_modification", "shift_not_found"
    violations: list[ViolationSchema] = []


class ApplyDistributionResponse(BaseModel):
    """
    Outcome of applying a distribution.

    status is "partial" when any agent was not stored or the result is not
    feasible (unplaceable breaks or slots over coverage capacity).
    """
    status: Literal["success", "partial"]
    applied_users: list[str]
    failed_agents: list[FailedAgent] = []
    result: DistributionResultSchema


class BulkAgentBreaks(BaseModel):
    user_id: str
    breaks: list[BreakSlot] = []
    expected_version: str | None = None


class BulkReplaceRequest(BaseModel):
    date: str
    schedules: list[BulkAgentBreaks]
    created_by: str | None = None


class BulkUpdated(BaseModel):
    user_id: str
    version: str


class BulkReplaceResponse(BaseModel):
    status: Literal["success", "partial"]
    updated: list[BulkUpdated] = []
    failed_agents: list[FailedAgent] = []


class DetectWarningsRequest(BaseModel):
    date: str


class DetectWarningsResponse(BaseModel):
    created: list[WarningSchema]


class DurationBucketSchema(BaseModel):
    min_shift_minutes: int = Field(ge=0)
    count: int = Field(ge=0)


class BreakRuleSchema(BaseModel):
    break_type: Literal["HB1", "B", "HB2"]
    buckets: list[DurationBucketSchema] = []
    min_spacing_slots: int = Field(default=6, ge=0)
    forbidden_edge_slots: int = Field(default=2, ge=0)
    sequence: int = 0
    max_gap_slots: int | None = Field(default=18, ge=1)
    is_blocking: bool = True
    is_active: bool = True


class BreakRuleUpdate(BaseModel):
    """Fields left out keep their stored value."""
    buckets: list[DurationBucketSchema] | None = None
    min_spacing_slots: int | None = Field(default=None, ge=0)
    forbidden_edge_slots: int | None = Field(default=None, ge=0)
    sequence: int | None = None
    max_gap_slots: int | None = Field(default=None, ge=1)  # Send null to remove the limit
    is_blocking: bool | None = None
    is_active: bool | None = None


class ToggleRuleRequest(BaseModel):
    is_active: bool


class CoverageRuleSchema(BaseModel):
    max_concurrent_on_break: int | None = Field(default=None, ge=0)
    max_concurrent_percent: float | None = Field(default=None, ge=0, le=100)
    min_available: int = Field(default=0, ge=0)


class ShiftConfigurationSchema(BaseModel):
    shift_code: str
    start_time: str
    end_time: str
    description: str | None = None
    is_active: bool = True


class ShiftConfigurationUpdate(BaseModel):
    start_time: str
    end_time: str
    description: str | None = None
    is_active: bool = True


class ScheduleConfigSchema(BaseModel):
    day_start: str = "09:00"
    day_end: str = "21:00"
    interval_minutes: int = Field(default=15, gt=0)
    solver_type: Literal["greedy", "ortools", "staggered"] = "greedy"
    solver_time_limit_sec: float = Field(default=10.0, gt=0)
