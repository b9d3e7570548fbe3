from __future__ import annotations

from configparser import ConfigParser
from dataclasses import dataclass
from pathlib import Path

APP_ID = "io.github.WorkoutMapper"
APP_DIR = Path(f"~/.local/share/{APP_ID}").expanduser()

DEFAULT_ZOOM_LEVEL = 13
DEFAULT_TILE_URL = "https://tile.openstreetmap.fr/hot/{z}/{x}/{y}.png"
DEFAULT_ATTRIBUTION = "© OpenStreetMap contributors"


@dataclass(frozen=True)
class AppConfig:
    database_url: str
    zoom_level: int = DEFAULT_ZOOM_LEVEL
    tile_url: str = DEFAULT_TILE_URL
    attribution: str = DEFAULT_ATTRIBUTION

    # Static location, used when Geoclue is disabled
    latitude: float | None = None
    longitude: float | None = None
    use_geoclue: bool = True

    @property
    def static_location(self) -> tuple[float, float] | None:
        if self.latitude is None or self.longitude is None:
            return None
        return self.latitude, self.longitude


def _getfloat_or_none(cfg: ConfigParser, section: str, option: str) -> float | None:
    raw = cfg.get(section, option, fallback="").strip()
    return float(raw) if raw else None


def load_config(app_dir: Path = APP_DIR) -> AppConfig:
    """
    Read config.ini from the application directory, creating the directory
    on first run. Missing options fall back to the defaults above.
    """
    app_dir.mkdir(parents=True, exist_ok=True)
    config_file = app_dir / "config.ini"
    default_db = f"sqlite:///{app_dir / 'workouts.db'}"

    cfg = ConfigParser()
    if config_file.exists():
        cfg.read(config_file)

    return AppConfig(
        database_url=cfg.get("storage", "database_url", fallback=default_db) or default_db,
        zoom_level=cfg.getint("map", "zoom_level", fallback=DEFAULT_ZOOM_LEVEL),
        tile_url=cfg.get("map", "tile_url", fallback=DEFAULT_TILE_URL),
        attribution=cfg.get("map", "attribution", fallback=DEFAULT_ATTRIBUTION),
        latitude=_getfloat_or_none(cfg, "location", "latitude"),
        longitude=_getfloat_or_none(cfg, "location", "longitude"),
        use_geoclue=cfg.getboolean("location", "use_geoclue", fallback=True),
    )
