from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional
import json
import os


BASE_DIR = Path(__file__).resolve().parents[1]
DEFAULT_SWEEP_INTERVAL = 5.0


@dataclass
class BotConfig:
    token: str
    application_id: Optional[int]
    guild_ids: Optional[List[int]]
    database_path: Path
    sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    def sanitize(self) -> Dict[str, Any]:
        data = asdict(self)
        if data.get("token"):
            data["token"] = "<redacted>"
        return data


def _id_list(source: Any) -> Optional[List[int]]:
    """Accept a JSON list or a comma separated string; entries that are not ids are dropped."""
    if source is None:
        return None
    if isinstance(source, str):
        items: List[Any] = source.split(",")
    elif isinstance(source, list):
        items = source
    else:
        return None
    ids: List[int] = []
    for item in items:
        if isinstance(item, str):
            item = item.strip()
            if not item:
                continue
        try:
            ids.append(int(item))
        except (TypeError, ValueError):
            continue
    return ids or None


def _optional_int(name: str, raw: Any) -> Optional[int]:
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")


def _positive_float(name: str, raw: Any, default: float) -> float:
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise RuntimeError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise RuntimeError(f"{name} must be positive")
    return value


def load_config(config_path: Optional[Path] = None) -> BotConfig:
    if config_path is None:
        config_path = BASE_DIR / "config.json"
    file_data: Dict[str, Any] = {}
    if config_path.exists():
        text = config_path.read_text(encoding="utf-8")
        if text.strip():
            file_data = json.loads(text)

    token = os.getenv("DISCORD_TOKEN") or file_data.get("token")
    if not token:
        raise RuntimeError("No bot token configured: set DISCORD_TOKEN or add \"token\" to config.json")

    application_id = _optional_int(
        "application_id",
        os.getenv("DISCORD_APPLICATION_ID") or file_data.get("application_id"),
    )
    guild_ids = _id_list(os.getenv("DISCORD_GUILD_IDS") or file_data.get("guild_ids"))

    database_raw = os.getenv("RAINCOAT_DATABASE_PATH") or file_data.get("database_path")
    database_path = Path(database_raw) if database_raw else BASE_DIR / "raincoat.db"

    sweep_interval = _positive_float(
        "sweep_interval_seconds",
        os.getenv("RAINCOAT_SWEEP_INTERVAL") or file_data.get("sweep_interval_seconds"),
        DEFAULT_SWEEP_INTERVAL,
    )

    log_level = str(os.getenv("RAINCOAT_LOG_LEVEL") or file_data.get("log_level") or "INFO").upper()
    log_file_raw = os.getenv("RAINCOAT_LOG_FILE") or file_data.get("log_file")
    log_file = Path(log_file_raw) if log_file_raw else None

    return BotConfig(
        token=token,
        application_id=application_id,
        guild_ids=guild_ids,
        database_path=database_path,
        sweep_interval_seconds=sweep_interval,
        log_level=log_level,
        log_file=log_file,
    )
