"""
GRAPHVAULT v1.0 — Configuration.

Environment-driven defaults plus the frozen ``GraphVaultConfig`` value
that is handed to the engine, API and CLI at construction time.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

# Base Paths
GRAPHVAULT_DIR = Path.home() / ".graphvault"

# Database Configuration
DEFAULT_DB_PATH = GRAPHVAULT_DIR / "graphvault.db"
DB_PATH = os.environ.get("GRAPHVAULT_DB", str(DEFAULT_DB_PATH))

# Connection Pool
POOL_MIN = int(os.environ.get("GRAPHVAULT_POOL_MIN", "2"))
POOL_MAX = int(os.environ.get("GRAPHVAULT_POOL_MAX", "10"))
BUSY_TIMEOUT_MS = int(os.environ.get("GRAPHVAULT_BUSY_TIMEOUT_MS", "5000"))

# Restrict dependency updates in bulk saves to the target project
SCOPE_DEPENDENCY_UPDATES = os.environ.get("GRAPHVAULT_SCOPE_DEPENDENCY_UPDATES", "0") == "1"

# Security Configuration
ALLOWED_ORIGINS = os.environ.get(
    "GRAPHVAULT_ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173"
).split(",")

LOG_LEVEL = os.environ.get("GRAPHVAULT_LOG_LEVEL", "INFO")


def reload() -> None:
    """Re-read module defaults from the environment (used by tests)."""
    global DB_PATH, POOL_MIN, POOL_MAX, BUSY_TIMEOUT_MS
    global SCOPE_DEPENDENCY_UPDATES, ALLOWED_ORIGINS, LOG_LEVEL

    DB_PATH = os.environ.get("GRAPHVAULT_DB", str(DEFAULT_DB_PATH))
    POOL_MIN = int(os.environ.get("GRAPHVAULT_POOL_MIN", "2"))
    POOL_MAX = int(os.environ.get("GRAPHVAULT_POOL_MAX", "10"))
    BUSY_TIMEOUT_MS = int(os.environ.get("GRAPHVAULT_BUSY_TIMEOUT_MS", "5000"))
    SCOPE_DEPENDENCY_UPDATES = os.environ.get("GRAPHVAULT_SCOPE_DEPENDENCY_UPDATES", "0") == "1"
    ALLOWED_ORIGINS = os.environ.get(
        "GRAPHVAULT_ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173"
    ).split(",")
    LOG_LEVEL = os.environ.get("GRAPHVAULT_LOG_LEVEL", "INFO")


@dataclass(frozen=True)
class GraphVaultConfig:
    """Settings for one engine instance.

    Built once by the caller and passed down; components never consult
    the module globals above after construction.
    """

    db_path: str = str(DEFAULT_DB_PATH)
    pool_min: int = 2
    pool_max: int = 10
    busy_timeout_ms: int = 5000
    scope_dependency_updates: bool = False
    allowed_origins: tuple[str, ...] = field(default_factory=tuple)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, db_path: str | None = None) -> GraphVaultConfig:
        """Snapshot the current module defaults into a config value."""
        return cls(
            db_path=db_path or DB_PATH,
            pool_min=POOL_MIN,
            pool_max=POOL_MAX,
            busy_timeout_ms=BUSY_TIMEOUT_MS,
            scope_dependency_updates=SCOPE_DEPENDENCY_UPDATES,
            allowed_origins=tuple(o.strip() for o in ALLOWED_ORIGINS if o.strip()),
            log_level=LOG_LEVEL,
        )

    def ensure_dirs(self) -> None:
        """Create the database parent directory if missing."""
        Path(self.db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger once for CLI and server entry points."""
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
