"""
GRAPHVAULT v1.0 — SQLite Schema Definitions.

Tables and indexes for projects, the live service graph, snapshots
and the change history.
"""

SCHEMA_VERSION = "1.0.0"

# ─── Projects (owners of a graph) ────────────────────────────────────
CREATE_PROJECTS = """
CREATE TABLE IF NOT EXISTS projects (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT NOT NULL,
    slug        TEXT NOT NULL UNIQUE,
    description TEXT NOT NULL DEFAULT '',
    owner_id    INTEGER NOT NULL,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
"""

# ─── Services (graph nodes) ──────────────────────────────────────────
CREATE_SERVICES = """
CREATE TABLE IF NOT EXISTS services (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id      INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    name            TEXT NOT NULL,
    description     TEXT NOT NULL DEFAULT '',
    type            TEXT NOT NULL,
    status          TEXT NOT NULL DEFAULT 'active',
    version         TEXT NOT NULL DEFAULT '',
    language        TEXT NOT NULL DEFAULT '',
    environment     TEXT NOT NULL DEFAULT 'production',
    deploy_url      TEXT NOT NULL DEFAULT '',
    domain          TEXT NOT NULL DEFAULT '',
    git_repo        TEXT NOT NULL DEFAULT '',
    health_metrics  TEXT,
    metadata        TEXT,
    pos_x           INTEGER NOT NULL DEFAULT 0,
    pos_y           INTEGER NOT NULL DEFAULT 0,
    notes           TEXT NOT NULL DEFAULT '',
    created_by      INTEGER NOT NULL,
    updated_by      INTEGER,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);
"""

CREATE_SERVICES_INDEX = """
CREATE INDEX IF NOT EXISTS idx_services_project ON services(project_id);
"""

# ─── Dependencies (directed edges, cascade with either endpoint) ─────
CREATE_DEPENDENCIES = """
CREATE TABLE IF NOT EXISTS dependencies (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    source_id   INTEGER NOT NULL REFERENCES services(id) ON DELETE CASCADE,
    target_id   INTEGER NOT NULL REFERENCES services(id) ON DELETE CASCADE,
    type        TEXT NOT NULL DEFAULT '',
    description TEXT NOT NULL DEFAULT '',
    protocol    TEXT NOT NULL DEFAULT '',
    method      TEXT NOT NULL DEFAULT '',
    created_by  INTEGER NOT NULL,
    updated_by  INTEGER,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
"""

CREATE_DEPENDENCIES_INDEX = """
CREATE INDEX IF NOT EXISTS idx_dependencies_source ON dependencies(source_id);
CREATE INDEX IF NOT EXISTS idx_dependencies_target ON dependencies(target_id);
"""

# ─── Snapshots (immutable, versioned per project) ────────────────────
CREATE_SNAPSHOTS = """
CREATE TABLE IF NOT EXISTS snapshots (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id  INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    version_num INTEGER NOT NULL,
    payload     TEXT NOT NULL,
    created_by  INTEGER NOT NULL,
    created_at  TEXT NOT NULL,
    notes       TEXT NOT NULL DEFAULT '',
    UNIQUE (project_id, version_num)
);
"""

# Last issued version per project. Bumped under the write lock so two
# writers can never observe the same value.
CREATE_SNAPSHOT_COUNTERS = """
CREATE TABLE IF NOT EXISTS snapshot_counters (
    project_id   INTEGER PRIMARY KEY REFERENCES projects(id) ON DELETE CASCADE,
    last_version INTEGER NOT NULL
);
"""

# ─── Change History (append-only) ────────────────────────────────────
CREATE_CHANGE_HISTORY = """
CREATE TABLE IF NOT EXISTS change_history (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id  INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    service_id  INTEGER,
    user_id     INTEGER NOT NULL,
    action      TEXT NOT NULL,
    details     TEXT NOT NULL DEFAULT '{}',
    timestamp   TEXT NOT NULL
);
"""

CREATE_CHANGE_HISTORY_INDEX = """
CREATE INDEX IF NOT EXISTS idx_history_project ON change_history(project_id, id);
"""

ALL_SCHEMA = [
    CREATE_PROJECTS,
    CREATE_SERVICES,
    CREATE_SERVICES_INDEX,
    CREATE_DEPENDENCIES,
    CREATE_DEPENDENCIES_INDEX,
    CREATE_SNAPSHOTS,
    CREATE_SNAPSHOT_COUNTERS,
    CREATE_CHANGE_HISTORY,
    CREATE_CHANGE_HISTORY_INDEX,
]
