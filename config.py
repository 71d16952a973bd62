"""
Central configuration for the partner sync service.

Remote endpoint credentials, local database paths and simulation settings
are defined here. Override via environment variables or by passing a
Config instance directly.

Settings priority (highest wins):
  1. Environment variables
  2. config/sync_settings.json  (admin-editable, persisted)
  3. Hardcoded defaults in this file
"""
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Project root (directory containing this file)
PROJECT_ROOT = Path(__file__).parent

# Default data locations (relative to project root)
DEFAULT_DATA_DIR        = PROJECT_ROOT / "data"
DEFAULT_DB_PATH         = DEFAULT_DATA_DIR / "catalog.db"
DEFAULT_SCRATCH_DB_PATH = DEFAULT_DATA_DIR / "simulation_scratch.db"


def _optional_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    return float(raw) if raw else None


@dataclass
class Config:
    # --- Remote endpoint (SFTP) ---
    sftp_host: str = field(default_factory=lambda: os.getenv("SFTP_HOST", "localhost"))
    sftp_port: int = field(default_factory=lambda: int(os.getenv("SFTP_PORT", "22")))
    sftp_username: str = field(default_factory=lambda: os.getenv("SFTP_USERNAME", ""))
    sftp_password: Optional[str] = field(default_factory=lambda: os.getenv("SFTP_PASSWORD"))
    sftp_key_path: Optional[str] = field(default_factory=lambda: os.getenv("SFTP_KEY_PATH"))
    # When set, host keys are checked against this file and unknown hosts rejected.
    sftp_known_hosts: Optional[str] = field(default_factory=lambda: os.getenv("SFTP_KNOWN_HOSTS"))
    # None leaves the timeout to the transport.
    sftp_timeout: Optional[float] = field(default_factory=lambda: _optional_float("SFTP_TIMEOUT"))

    # --- Local storage ---
    db_path: Path = field(
        default_factory=lambda: Path(os.getenv("DB_PATH", str(DEFAULT_DB_PATH)))
    )
    scratch_db_path: Path = field(
        default_factory=lambda: Path(os.getenv("SCRATCH_DB_PATH", str(DEFAULT_SCRATCH_DB_PATH)))
    )
    temp_dir: Path = field(
        default_factory=lambda: Path(os.getenv("SYNC_TEMP_DIR", tempfile.gettempdir()))
    )

    # --- Simulation ---
    simulation_ttl_minutes: int = field(
        default_factory=lambda: int(os.getenv("SIMULATION_TTL_MINUTES", "60"))
    )

    # --- Bulk snapshots ---
    snapshot_retention_count: int = field(
        default_factory=lambda: int(os.getenv("SNAPSHOT_RETENTION_COUNT", "0"))
    )
    # 0 keeps every snapshot ever exported

    def __post_init__(self) -> None:
        """Overlay runtime-tunable settings from sync_settings.json if present."""
        config_dir = Path(os.getenv("CONFIG_DIR", str(PROJECT_ROOT / "config")))
        settings_file = config_dir / "sync_settings.json"
        if not settings_file.exists():
            return
        _type_map: dict[str, type] = {
            "sftp_host":                str,
            "sftp_port":                int,
            "sftp_username":            str,
            "sftp_key_path":            str,
            "sftp_known_hosts":         str,
            "sftp_timeout":             float,
            "simulation_ttl_minutes":   int,
            "snapshot_retention_count": int,
        }
        try:
            with open(settings_file, encoding="utf-8") as f:
                overrides = {k: v for k, v in json.load(f).items() if not k.startswith("_")}
            for key, val in overrides.items():
                # Environment variables win over the settings file
                if key in _type_map and hasattr(self, key) and os.getenv(key.upper()) is None:
                    setattr(self, key, _type_map[key](val))
        except Exception as exc:
            logger.warning("Failed to load sync_settings.json: %s", exc)

    def ensure_local_dirs(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.scratch_db_path.parent.mkdir(parents=True, exist_ok=True)
        self.temp_dir.mkdir(parents=True, exist_ok=True)
