from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./gpe.db"
    default_tz: str = "UTC"
    kernel_api_key: str | None = None

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Goal progress engine
    gpe_store: str = "memory"  # "memory" | "sql"
    gpe_max_contributions: int = 360  # Newest entries kept per (goal, track)
    gpe_max_events_per_goal: int = 240
    gpe_max_snapshots_per_goal: int = 365  # Snapshot history kept per goal, store and insights
    gpe_default_pacing_window_days: int = 30
    gpe_widget_limit: int = 3
    gpe_dedup_source_ids: bool = False  # Ignore repeated (goal_id, source_id) events
    gpe_seed_defaults: bool = True  # Register presets on app startup

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
