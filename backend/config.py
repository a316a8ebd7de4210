import logging
import os

from dotenv import load_dotenv

from breaks.types import ScheduleConfig, DEFAULT_SHIFT_WINDOWS

load_dotenv()

MONGODB_URL = os.getenv("MONGODB_URL", "mongodb://localhost:27017/break_scheduler")

BREAKS_DAY_START = os.getenv("BREAKS_DAY_START", "09:00")
BREAKS_DAY_END = os.getenv("BREAKS_DAY_END", "21:00")
BREAKS_INTERVAL_MINUTES = int(os.getenv("BREAKS_INTERVAL_MINUTES", "15"))
BREAKS_SOLVER = os.getenv("BREAKS_SOLVER", "greedy")
BREAKS_SOLVER_TIME_LIMIT_SEC = float(os.getenv("BREAKS_SOLVER_TIME_LIMIT_SEC", "10"))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

_logging_configured = False


def default_schedule_config() -> ScheduleConfig:
    """Schedule config from the environment; database rows override it."""
    return ScheduleConfig(
        day_start=BREAKS_DAY_START,
        day_end=BREAKS_DAY_END,
        interval_minutes=BREAKS_INTERVAL_MINUTES,
        shift_windows=dict(DEFAULT_SHIFT_WINDOWS),
        solver_type=BREAKS_SOLVER,
        solver_time_limit_sec=BREAKS_SOLVER_TIME_LIMIT_SEC,
    )


def setup_logging():
    global _logging_configured
    if _logging_configured:
        return

    logger = logging.getLogger()
    if not logger.handlers:
        logger.setLevel(LOG_LEVEL)

        console = logging.StreamHandler()
        console.setLevel(LOG_LEVEL)
        console.setFormatter(logging.Formatter('%(name)-12s: %(levelname)-8s %(message)s'))
        logger.addHandler(console)

    _logging_configured = True
