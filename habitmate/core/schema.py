"""SQLite schema management (code-first approach)."""

import logging

from habitmate.core.db_client import get_connection


logger = logging.getLogger(__name__)


# Central list of all collections in the schema
COLLECTIONS = [
    "profiles",
    "tasks",
    "task_completions",
    "friendships",
    "partner_tasks",
    "partner_task_completions",
]

_NOW = "(strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))"

_TABLE_DDL: dict[str, str] = {
    "profiles": f"""
        CREATE TABLE IF NOT EXISTS profiles (
            id TEXT PRIMARY KEY,
            username TEXT UNIQUE,
            first_name TEXT NOT NULL DEFAULT '',
            last_name TEXT NOT NULL DEFAULT '',
            email TEXT NOT NULL UNIQUE,
            dob TEXT,
            avatar_url TEXT,
            caption TEXT,
            created_at TEXT NOT NULL DEFAULT {_NOW},
            updated_at TEXT NOT NULL DEFAULT {_NOW}
        )
    """,
    "tasks": f"""
        CREATE TABLE IF NOT EXISTS tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            owner_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            title TEXT NOT NULL,
            description TEXT,
            created_at TEXT NOT NULL DEFAULT {_NOW},
            updated_at TEXT NOT NULL DEFAULT {_NOW}
        )
    """,
    "task_completions": f"""
        CREATE TABLE IF NOT EXISTS task_completions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
            user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            completed_on TEXT NOT NULL,
            caption TEXT,
            photo_url TEXT,
            task_title_snapshot TEXT,
            created_at TEXT NOT NULL DEFAULT {_NOW},
            updated_at TEXT NOT NULL DEFAULT {_NOW},
            UNIQUE (task_id, user_id, completed_on)
        )
    """,
    "friendships": f"""
        CREATE TABLE IF NOT EXISTS friendships (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            requester_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            addressee_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            status TEXT NOT NULL DEFAULT 'requested' CHECK (status IN ('requested', 'confirmed')),
            created_at TEXT NOT NULL DEFAULT {_NOW},
            updated_at TEXT NOT NULL DEFAULT {_NOW},
            CHECK (requester_id != addressee_id),
            UNIQUE (requester_id, addressee_id)
        )
    """,
    "partner_tasks": f"""
        CREATE TABLE IF NOT EXISTS partner_tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            creator_profile_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            partner_profile_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            title TEXT NOT NULL,
            description TEXT,
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'accepted', 'declined', 'cancelled')),
            created_at TEXT NOT NULL DEFAULT {_NOW},
            updated_at TEXT NOT NULL DEFAULT {_NOW},
            CHECK (creator_profile_id != partner_profile_id)
        )
    """,
    "partner_task_completions": f"""
        CREATE TABLE IF NOT EXISTS partner_task_completions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            partner_task_id INTEGER NOT NULL REFERENCES partner_tasks(id) ON DELETE CASCADE,
            profile_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            completion_date TEXT NOT NULL,
            photo_url TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT {_NOW},
            UNIQUE (partner_task_id, profile_id, completion_date)
        )
    """,
}

_INDEX_DDL = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_owner ON tasks (owner_id)",
    "CREATE INDEX IF NOT EXISTS idx_task_completions_user ON task_completions (user_id, completed_on)",
    "CREATE INDEX IF NOT EXISTS idx_friendships_addressee ON friendships (addressee_id)",
    "CREATE INDEX IF NOT EXISTS idx_partner_tasks_partner ON partner_tasks (partner_profile_id)",
    "CREATE INDEX IF NOT EXISTS idx_partner_completions_task ON partner_task_completions (partner_task_id)",
]


async def init_db(*, db_path: str | None = None) -> None:
    """Create all tables and indexes if they do not exist yet."""
    conn = await get_connection(db_path=db_path)

    for collection in COLLECTIONS:
        await conn.execute(_TABLE_DDL[collection])
    for statement in _INDEX_DDL:
        await conn.execute(statement)
    await conn.commit()

    logger.info("Database schema initialized", extra={"collections": len(COLLECTIONS)})
