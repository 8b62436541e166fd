import os
from pathlib import Path

# Repo root is always the parent of /backend.
repo_root = Path(__file__).resolve().parent.parent

# Load local environment variables (do NOT commit secrets).
# Lets developers tune thresholds via .env without exporting in every terminal.
try:
    from dotenv import load_dotenv  # type: ignore

    load_dotenv(repo_root / ".env", override=False)
except ImportError:
    # If python-dotenv isn't installed, continue with process env.
    pass
from dataclasses import dataclass


def _int_env(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None or val.strip() == "":
        return default
    try:
        return int(val)
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    val = os.getenv(name)
    if val is None or val.strip() == "":
        return default
    try:
        return float(val)
    except ValueError:
        return default


def _bool_env(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class Settings:
    app_name: str = "Migrant Health Surveillance Backend"
    env: str = os.getenv("APP_ENV", os.getenv("ENV", "local"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    cors_origins: str = os.getenv("CORS_ORIGINS", "http://localhost:5173")

    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./surveillance.db")

    # Seeding (demo): load a records CSV when the database is empty.
    seed_sample_data: bool = _bool_env("SEED_SAMPLE_DATA", "false")
    sample_csv_path: str = os.getenv(
        "SAMPLE_CSV_PATH", str((repo_root / "data/sample_records.csv").resolve())
    )

    # Window ceilings. Out-of-range requests are clamped to these, never rejected.
    default_lookback_days: int = _int_env("DISEASE_DEFAULT_LOOKBACK_DAYS", 30)
    default_trend_days: int = _int_env("DISEASE_DEFAULT_TREND_DAYS", 30)
    max_lookback_days: int = _int_env("DISEASE_MAX_LOOKBACK_DAYS", 120)
    max_trend_window_days: int = _int_env("DISEASE_MAX_TREND_WINDOW_DAYS", 120)
    max_offset_days: int = _int_env("DISEASE_MAX_OFFSET_DAYS", 365)
    max_cases_range_days: int = _int_env("DISEASE_MAX_CASES_RANGE_DAYS", 45)
    new_case_window_days: int = _int_env("DISEASE_NEW_CASE_WINDOW_DAYS", 7)
    outbreak_lookback_days: int = _int_env("DISEASE_OUTBREAK_LOOKBACK_DAYS", 5)

    # District resolver
    district_cache_limit: int = _int_env("DISEASE_DISTRICT_CACHE_LIMIT", 150)
    district_max_edit_distance: int = _int_env("DISEASE_DISTRICT_MAX_EDIT_DISTANCE", 2)

    # Per-node sample caps and list lengths
    max_taluk_patients: int = _int_env("DISEASE_MAX_TALUK_PATIENTS", 20)
    max_village_patients: int = _int_env("DISEASE_MAX_VILLAGE_PATIENTS", 12)
    max_recent_patients: int = _int_env("DISEASE_MAX_RECENT_PATIENTS", 4)
    latest_admission_limit: int = _int_env("DISEASE_LATEST_ADMISSION_LIMIT", 10)
    active_cases_limit: int = _int_env("DISEASE_ACTIVE_CASES_LIMIT", 19)
    bar_chart_max_diseases: int = _int_env("DISEASE_BAR_CHART_MAX_DISEASES", 4)
    trend_max_diseases: int = _int_env("DISEASE_TREND_MAX_DISEASES", 2)
    alert_result_limit: int = _int_env("DISEASE_ALERT_RESULT_LIMIT", 12)

    # Dashboard KPI tiles and rapid risk snapshot
    dashboard_lookback_days: int = _int_env("DASHBOARD_LOOKBACK_DAYS", 7)
    risk_rows_limit: int = _int_env("DASHBOARD_RISK_ROWS_LIMIT", 6)
    snapshot_critical_cases: int = _int_env("SNAPSHOT_CRITICAL_CASES", 20)
    snapshot_critical_contagious: int = _int_env("SNAPSHOT_CRITICAL_CONTAGIOUS", 5)
    snapshot_critical_sla_hours: int = _int_env("SNAPSHOT_CRITICAL_SLA_HOURS", 4)
    snapshot_observe_sla_hours: int = _int_env("SNAPSHOT_OBSERVE_SLA_HOURS", 8)

    # Upstream fetch tuning. Keeps a slow store from hanging a dashboard request.
    query_timeout_s: float = _float_env("DISEASE_QUERY_TIMEOUT_S", 5.0)
    slow_call_warn_ms: int = _int_env("DISEASE_WARN_THRESHOLD_MS", 1500)

    # Heatmap risk thresholds (count- and percent-based heuristics)
    risk_critical_cases: int = _int_env("RISK_CRITICAL_CASES", 60)
    risk_critical_percent: int = _int_env("RISK_CRITICAL_PERCENT", 30)
    risk_observe_cases: int = _int_env("RISK_OBSERVE_CASES", 25)
    risk_observe_percent: int = _int_env("RISK_OBSERVE_PERCENT", 10)

    # Leaderboard status thresholds
    status_critical_total: int = _int_env("STATUS_CRITICAL_TOTAL", 80)
    status_critical_contagious: int = _int_env("STATUS_CRITICAL_CONTAGIOUS", 12)
    status_critical_new: int = _int_env("STATUS_CRITICAL_NEW", 25)
    status_moderate_total: int = _int_env("STATUS_MODERATE_TOTAL", 30)
    status_moderate_new: int = _int_env("STATUS_MODERATE_NEW", 10)


settings = Settings()


@dataclass(frozen=True)
class RiskThresholds:
    critical_cases: int = 60
    critical_percent: int = 30
    observe_cases: int = 25
    observe_percent: int = 10

    @classmethod
    def from_settings(cls, s: Settings = settings) -> "RiskThresholds":
        return cls(
            critical_cases=s.risk_critical_cases,
            critical_percent=s.risk_critical_percent,
            observe_cases=s.risk_observe_cases,
            observe_percent=s.risk_observe_percent,
        )


@dataclass(frozen=True)
class StatusThresholds:
    critical_total: int = 80
    critical_contagious: int = 12
    critical_new: int = 25
    moderate_total: int = 30
    moderate_new: int = 10

    @classmethod
    def from_settings(cls, s: Settings = settings) -> "StatusThresholds":
        return cls(
            critical_total=s.status_critical_total,
            critical_contagious=s.status_critical_contagious,
            critical_new=s.status_critical_new,
            moderate_total=s.status_moderate_total,
            moderate_new=s.status_moderate_new,
        )


@dataclass(frozen=True)
class SnapshotThresholds:
    critical_cases: int = 20
    critical_contagious: int = 5
    critical_sla_hours: int = 4
    observe_sla_hours: int = 8

    @classmethod
    def from_settings(cls, s: Settings = settings) -> "SnapshotThresholds":
        return cls(
            critical_cases=s.snapshot_critical_cases,
            critical_contagious=s.snapshot_critical_contagious,
            critical_sla_hours=s.snapshot_critical_sla_hours,
            observe_sla_hours=s.snapshot_observe_sla_hours,
        )
