import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        default_payday: int,
        locale: str,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.default_payday = default_payday
        self.locale = locale


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("BUDGET_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "budget.db"
    database_url = os.getenv("BUDGET_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("BUDGET_TIMEZONE", "Europe/Stockholm")
    default_payday = int(os.getenv("BUDGET_DEFAULT_PAYDAY", "25"))
    if not 1 <= default_payday <= 31:
        raise ValueError("BUDGET_DEFAULT_PAYDAY must be between 1 and 31")
    locale = os.getenv("BUDGET_LOCALE", "sv")
    return Settings(
        database_url=database_url,
        timezone=timezone,
        default_payday=default_payday,
        locale=locale,
    )
