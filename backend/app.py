from contextlib import asynccontextmanager
from datetime import date as date_type

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from breaks import (
    BreakScheduleError,
    BreakType,
    ConcurrentModificationError,
    CoverageRule,
    RepositoryError,
    ScheduleConfig,
    ShiftNotFoundError,
    WarningNotFoundError,
)
from config import CORS_ORIGINS, setup_logging
from db import init_db, close_db
from db.repository import BeanieScheduleRepository, ScheduleRepository
from schedule_service import BreakScheduleService
from schemas import (
    ApplyDistributionResponse,
    BreakRuleSchema,
    BreakRuleUpdate,
    BulkReplaceRequest,
    BulkReplaceResponse,
    ClearBreaksResponse,
    CoverageRuleSchema,
    DetectWarningsRequest,
    DetectWarningsResponse,
    DistributionRequest,
    DistributionResultSchema,
    ReplaceBreaksRequest,
    ReplaceBreaksResponse,
    ScheduleConfigSchema,
    ScheduleResponse,
    ShiftConfigurationSchema,
    ShiftConfigurationUpdate,
    ToggleRuleRequest,
    ValidateBreaksRequest,
    ValidationResponse,
    WarningSchema,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await init_db()
    yield
    await close_db()


app = FastAPI(title="breakScheduler", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_repository() -> ScheduleRepository:
    return BeanieScheduleRepository()


def get_service(repository: ScheduleRepository = Depends(get_repository)) -> BreakScheduleService:
    return BreakScheduleService(repository)


def _check_date(value: str) -> str:
    try:
        date_type.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date format. Use YYYY-MM-DD")
    return value


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, (ShiftNotFoundError, WarningNotFoundError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ConcurrentModificationError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, RepositoryError):
        return HTTPException(status_code=503, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def _proposed(breaks) -> list[tuple[int, BreakType]]:
    return [(b.interval_slot, BreakType(b.break_type)) for b in breaks]


@app.get("/")
def root():
    return {"message": "Break scheduler API"}


@app.get("/breaks/schedule", response_model=ScheduleResponse)
async def get_schedule(date: str, department: str | None = None, service: BreakScheduleService = Depends(get_service)):
    _check_date(date)
    try:
        return await service.get_schedule(date, department)
    except (BreakScheduleError, ValueError) as e:
        raise _http_error(e) from e


@app.post("/breaks/distribution/preview", response_model=DistributionResultSchema)
async def preview_distribution(request: DistributionRequest, service: BreakScheduleService = Depends(get_service)):
    _check_date(request.date)
    try:
        result = await service.preview_distribution(
            request.date,
            department=request.department,
            apply_mode=request.apply_mode,
            solver_type=request.solver_type,
            created_by=request.created_by,
        )
    except (BreakScheduleError, ValueError) as e:
        raise _http_error(e) from e
    return result.to_dict()


@app.post("/breaks/distribution/apply", response_model=ApplyDistributionResponse)
async def apply_distribution(request: DistributionRequest, service: BreakScheduleService = Depends(get_service)):
    _check_date(request.date)
    try:
        return await service.apply_distribution(
            request.date,
            department=request.department,
            apply_mode=request.apply_mode,
            solver_type=request.solver_type,
            created_by=request.created_by,
        )
    except (BreakScheduleError, ValueError) as e:
        raise _http_error(e) from e


@app.post("/breaks/warnings/detect", response_model=DetectWarningsResponse)
async def detect_warnings(request: DetectWarningsRequest, service: BreakScheduleService = Depends(get_service)):
    _check_date(request.date)
    try:
        created = await service.detect_warnings(request.date)
    except BreakScheduleError as e:
        raise _http_error(e) from e
    return {"created": [w.to_dict() for w in created]}


@app.patch("/breaks/warnings/{warning_id}/dismiss", response_model=WarningSchema)
async def dismiss_warning(warning_id: str, service: BreakScheduleService = Depends(get_service)):
    try:
        warning = await service.dismiss_warning(warning_id)
    except BreakScheduleError as e:
        raise _http_error(e) from e
    return warning.to_dict()


# Rules and configuration; registered before /breaks/{date}/{user_id}

@app.get("/breaks/rules", response_model=list[BreakRuleSchema])
async def get_break_rules(service: BreakScheduleService = Depends(get_service)):
    rules = await service.get_break_rules()
    return [r.to_dict() for r in rules]


@app.put("/breaks/rules/{break_type}", response_model=BreakRuleSchema)
async def update_break_rule(break_type: str, request: BreakRuleUpdate, service: BreakScheduleService = Depends(get_service)):
    # max_gap_slots may be set to null on purpose; other nulls mean "leave as is"
    changes = {
        key: value
        for key, value in request.model_dump(exclude_unset=True).items()
        if value is not None or key == "max_gap_slots"
    }
    try:
        saved = await service.update_break_rule(break_type, changes)
    except (BreakScheduleError, ValueError) as e:
        raise _http_error(e) from e
    return saved.to_dict()


@app.patch("/breaks/rules/{break_type}/toggle", response_model=BreakRuleSchema)
async def toggle_break_rule(break_type: str, request: ToggleRuleRequest, service: BreakScheduleService = Depends(get_service)):
    try:
        saved = await service.toggle_break_rule(break_type, request.is_active)
    except (BreakScheduleError, ValueError) as e:
        raise _http_error(e) from e
    return saved.to_dict()


@app.get("/breaks/coverage-rule", response_model=CoverageRuleSchema)
async def get_coverage_rule(service: BreakScheduleService = Depends(get_service)):
    rule = await service.get_coverage_rule()
    return rule.to_dict()


@app.put("/breaks/coverage-rule", response_model=CoverageRuleSchema)
async def update_coverage_rule(request: CoverageRuleSchema, service: BreakScheduleService = Depends(get_service)):
    try:
        saved = await service.save_coverage_rule(CoverageRule(**request.model_dump()))
    except (BreakScheduleError, ValueError) as e:
        raise _http_error(e) from e
    return saved.to_dict()


@app.get("/breaks/shift-configurations", response_model=list[ShiftConfigurationSchema])
async def get_shift_configurations(service: BreakScheduleService = Depends(get_service)):
    return await service.get_shift_configurations()


@app.put("/breaks/shift-configurations/{shift_code}", response_model=ShiftConfigurationSchema)
async def update_shift_configuration(
    shift_code: str,
    request: ShiftConfigurationUpdate,
    service: BreakScheduleService = Depends(get_service),
):
    try:
        return await service.save_shift_configuration({"shift_code": shift_code, **request.model_dump()})
    except (BreakScheduleError, ValueError) as e:
        raise _http_error(e) from e


@app.get("/breaks/config", response_model=ScheduleConfigSchema)
async def get_schedule_config(service: BreakScheduleService = Depends(get_service)):
    config = await service.get_schedule_config()
    return {
        "day_start": config.day_start,
        "day_end": config.day_end,
        "interval_minutes": config.interval_minutes,
        "solver_type": config.solver_type,
        "solver_time_limit_sec": config.solver_time_limit_sec,
    }


@app.put("/breaks/config", response_model=ScheduleConfigSchema)
async def update_schedule_config(request: ScheduleConfigSchema, service: BreakScheduleService = Depends(get_service)):
    try:
        await service.save_schedule_config(ScheduleConfig(**request.model_dump()))
    except (BreakScheduleError, ValueError) as e:
        raise _http_error(e) from e
    return request


# Per-date and per-agent edits

@app.post("/breaks/bulk", response_model=BulkReplaceResponse)
async def bulk_replace_breaks(request: BulkReplaceRequest, service: BreakScheduleService = Depends(get_service)):
    _check_date(request.date)
    updates = [
        {"user_id": s.user_id, "breaks": _proposed(s.breaks), "expected_version": s.expected_version}
        for s in request.schedules
    ]
    try:
        return await service.bulk_replace(request.date, updates, created_by=request.created_by)
    except (BreakScheduleError, ValueError) as e:
        raise _http_error(e) from e


@app.delete("/breaks/{date}", response_model=ClearBreaksResponse)
async def clear_breaks_for_date(date: str, service: BreakScheduleService = Depends(get_service)):
    _check_date(date)
    try:
        deleted = await service.clear_all_for_date(date)
    except BreakScheduleError as e:
        raise _http_error(e) from e
    return {"deleted": deleted}


@app.post("/breaks/{date}/{user_id}/validate", response_model=ValidationResponse)
async def validate_breaks(date: str, user_id: str, request: ValidateBreaksRequest, service: BreakScheduleService = Depends(get_service)):
    _check_date(date)
    try:
        result = await service.validate(user_id, date, _proposed(request.breaks))
    except (BreakScheduleError, ValueError) as e:
        raise _http_error(e) from e
    return result.to_dict()


@app.put("/breaks/{date}/{user_id}", response_model=ReplaceBreaksResponse)
async def replace_breaks(date: str, user_id: str, request: ReplaceBreaksRequest, service: BreakScheduleService = Depends(get_service)):
    _check_date(date)
    try:
        outcome = await service.validate_and_replace(
            user_id,
            date,
            _proposed(request.breaks),
            created_by=request.created_by,
            expected_version=request.expected_version,
        )
    except (BreakScheduleError, ValueError) as e:
        raise _http_error(e) from e

    if not outcome.ok:
        raise HTTPException(status_code=422, detail=outcome.validation.to_dict())

    return {
        "ok": True,
        "version": outcome.version,
        "assignments": [a.to_dict() for a in outcome.assignments],
    }


@app.delete("/breaks/{date}/{user_id}", response_model=ClearBreaksResponse)
async def clear_breaks(date: str, user_id: str, service: BreakScheduleService = Depends(get_service)):
    _check_date(date)
    try:
        deleted = await service.clear_assignments(user_id, date)
    except BreakScheduleError as e:
        raise _http_error(e) from e
    return {"deleted": deleted}
