from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql+asyncpg://localhost:5432/fitmetrics"
    api_key: str | None = None
    store_backend: str = "memory"  # "memory" | "sql"
    log_level: str = "INFO"

    # Derived-value cache
    cache_ttl_seconds: float = 300.0
    cache_check_period_seconds: float = 60.0  # Background sweep interval

    # Metrics engine
    metrics_calorie_floor: int = 0  # Calorie target never goes below this (kcal/day)
    metrics_eager_recompute: bool = False  # Recompute right after a profile/goal write

    # Goal validation bounds
    goals_max_weekly_loss_rate: float = 2.0  # kg/week
    goals_max_time_frame_weeks: int = 104  # 2 years

    # Onboarding step ids, in display order
    onboarding_steps: list[str] = ["profile", "goals", "diet_preferences", "workout_preferences"]

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
