"""
Database operations for the sports day scoreboard.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import aiosqlite

from .errors import StorageError
from .plan import Plan
from .scores import ScoreSheet, dump_score_sheet

logger = logging.getLogger(__name__)

BLOCKED_SQL_PATTERNS = (
    "attach database",
    "detach database",
    "load_extension",
    "vacuum into",
)


@dataclass(frozen=True)
class VerifiedSession:
    id: str
    verified: bool
    user_id: Optional[int] = None
    has_admin: bool = False
    has_set_score: bool = False


ANONYMOUS_SESSION = VerifiedSession(id="", verified=False)


class DatabaseManager:
    """Manages the schedule, user and session tables."""

    def __init__(
        self,
        db_path: str,
        cache_ttl: float = 30,
    ) -> None:
        self.db_path = db_path
        # Simple in-memory cache with TTL
        self._cache: Dict[str, Tuple[Any, float]] = {}
        self._cache_ttl = cache_ttl

    def _get_cache_key(self, *args: Any) -> str:
        """
        Generate a cache key from arguments.

        @param args: Variable arguments to create cache key from
        @return: String cache key generated from arguments
        """
        return ":".join(str(arg) for arg in args)

    def _get_from_cache(
        self,
        cache_key: str,
    ) -> Optional[Any]:
        """
        Get value from cache if valid.

        @param cache_key: String cache key to lookup
        @return: Cached data if valid, None if expired or not found
        """
        if cache_key in self._cache:
            data, timestamp = self._cache[cache_key]

            if time.time() - timestamp < self._cache_ttl:
                return data
            del self._cache[cache_key]
        return None

    def _set_cache(
        self,
        cache_key: str,
        data: Any,
    ) -> None:
        self._cache[cache_key] = (data, time.time())

    def _invalidate_cache(self) -> None:
        self._cache.clear()

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Open a connection with foreign keys enforced and dict-like rows.

        @return: Async context manager yielding the connection
        """
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            await db.execute("PRAGMA foreign_keys=ON")
            yield db

    async def init_db(self) -> None:
        """
        Initialize the SQLite database.

        Creates the years, events, users and user_sessions tables.
        """
        async with self._connect() as db:
            await db.execute("PRAGMA journal_mode=WAL")
            await db.execute("PRAGMA synchronous=NORMAL")

            await db.execute("""
                CREATE TABLE IF NOT EXISTS years (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL
                )
            """)
            await db.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    year_id TEXT NOT NULL REFERENCES years(id),
                    gender_id TEXT NOT NULL,
                    filter_key TEXT NOT NULL,
                    scores TEXT NOT NULL DEFAULT '{}'
                )
            """)
            await db.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT NOT NULL UNIQUE,
                    has_admin INTEGER NOT NULL DEFAULT 0,
                    has_set_score INTEGER NOT NULL DEFAULT 0
                )
            """)
            await db.execute("""
                CREATE TABLE IF NOT EXISTS user_sessions (
                    id TEXT PRIMARY KEY,
                    user_id INTEGER NOT NULL REFERENCES users(id),
                    has_admin INTEGER NOT NULL DEFAULT 0,
                    has_set_score INTEGER NOT NULL DEFAULT 0
                )
            """)

            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_events_filter
                ON events(year_id, filter_key, gender_id)
            """)

            await db.commit()

    async def apply_plan(
        self,
        plan: Plan,
    ) -> None:
        """
        Replace the stored schedule with a freshly built plan.

        Event rows are deleted before year rows, then every year is inserted
        followed by its events. The whole sequence is one transaction: on
        failure nothing is changed.

        @param plan: Plan produced by build_plan
        @raise StorageError: A step failed; the transaction was rolled back
        """
        logger.info("Implementing plan with %d years", len(plan.year_plans))

        async with self._connect() as db:
            step = "delete events"
            try:
                await db.execute("DELETE FROM events")

                step = "delete years"
                await db.execute("DELETE FROM years")

                for year_plan in plan.year_plans:
                    step = f"insert year {year_plan.id}"
                    logger.debug("Inserting planned year %s", year_plan.id)
                    await db.execute(
                        "INSERT INTO years (id, name) VALUES (?, ?)",
                        (year_plan.id, year_plan.name),
                    )

                    for event_plan in year_plan.events:
                        step = f"insert event {event_plan.id}"
                        logger.debug("Inserting planned event %s", event_plan.id)
                        await db.execute(
                            "INSERT INTO events "
                            "(id, name, year_id, gender_id, filter_key, scores) "
                            "VALUES (?, ?, ?, ?, ?, ?)",
                            (
                                event_plan.id,
                                event_plan.name,
                                year_plan.id,
                                event_plan.gender_id,
                                event_plan.filter_key,
                                event_plan.scores,
                            ),
                        )

                step = "commit"
                await db.commit()

            except aiosqlite.Error as e:
                logger.error("Plan failed during '%s': %s", step, e)
                await db.rollback()
                raise StorageError(step, e) from e

            finally:
                self._invalidate_cache()

        logger.info("Plan implemented: %d events", plan.event_count())

    async def get_all_years(self) -> List[Dict[str, Any]]:
        """
        Get all stored years.

        @return: List of dictionaries with "id" and "name"
        """
        async with self._connect() as db:
            cursor = await db.execute("SELECT id, name FROM years ORDER BY rowid")
            return [dict(row) for row in await cursor.fetchall()]

    async def get_all_events(self) -> List[Dict[str, Any]]:
        """
        Get every stored event, cached for the scoreboard.

        @return: List of event dictionaries in insertion order
        """
        cache_key = self._get_cache_key("all_events")
        cached_data = self._get_from_cache(cache_key)

        if cached_data is not None:
            return cached_data

        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, name, year_id, gender_id, filter_key, scores "
                "FROM events ORDER BY rowid"
            )
            result = [dict(row) for row in await cursor.fetchall()]

        self._set_cache(cache_key, result)
        return result

    async def get_events_where(
        self,
        year_id: Optional[str] = None,
        filter_key: Optional[str] = None,
        gender_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Get events matching every given filter exactly.

        @param year_id: Year to match, or None for any
        @param filter_key: Activity (source event id) to match, or None for any
        @param gender_id: Gender to match, or None for any
        @return: List of matching event dictionaries
        """
        clauses = []
        params: List[str] = []

        for column, value in (
            ("year_id", year_id),
            ("filter_key", filter_key),
            ("gender_id", gender_id),
        ):
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value)

        query = "SELECT id, name, year_id, gender_id, filter_key, scores FROM events"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY rowid"

        async with self._connect() as db:
            cursor = await db.execute(query, params)
            return [dict(row) for row in await cursor.fetchall()]

    async def get_event(
        self,
        event_id: str,
    ) -> Optional[Dict[str, Any]]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, name, year_id, gender_id, filter_key, scores "
                "FROM events WHERE id = ?",
                (event_id,),
            )
            row = await cursor.fetchone()
            return dict(row) if row else None

    async def set_event_scores(
        self,
        event_id: str,
        sheet: ScoreSheet,
    ) -> bool:
        """
        Store a validated score sheet on an event.

        @param event_id: Composite event id
        @param sheet: Mapping of form id to score
        @return: True if the event exists and was updated
        @raise StorageError: The update failed
        """
        logger.debug("Setting scores for event %s", event_id)
        async with self._connect() as db:
            try:
                cursor = await db.execute(
                    "UPDATE events SET scores = ? WHERE id = ?",
                    (dump_score_sheet(sheet), event_id),
                )
                await db.commit()
            except aiosqlite.Error as e:
                raise StorageError(f"set scores {event_id}", e) from e

        self._invalidate_cache()
        return cursor.rowcount > 0

    async def count_events(self) -> int:
        async with self._connect() as db:
            cursor = await db.execute("SELECT COUNT(*) FROM events")
            return (await cursor.fetchone())[0]

    async def count_users(self) -> int:
        async with self._connect() as db:
            cursor = await db.execute("SELECT COUNT(*) FROM users")
            return (await cursor.fetchone())[0]

    async def create_user(
        self,
        email: str,
        has_admin: bool = False,
        has_set_score: bool = False,
    ) -> Dict[str, Any]:
        """
        Insert a new user.

        @param email: Unique email address
        @param has_admin: Grant access to the admin console
        @param has_set_score: Grant access to score entry
        @return: The created user as a dictionary
        @raise StorageError: The email is already taken or the insert failed
        """
        async with self._connect() as db:
            try:
                cursor = await db.execute(
                    "INSERT INTO users (email, has_admin, has_set_score) VALUES (?, ?, ?)",
                    (email, int(has_admin), int(has_set_score)),
                )
                await db.commit()
            except aiosqlite.Error as e:
                raise StorageError(f"insert user {email}", e) from e

        logger.info("Created user %s", email)
        return {
            "id": cursor.lastrowid,
            "email": email,
            "has_admin": has_admin,
            "has_set_score": has_set_score,
        }

    async def get_or_create_user(
        self,
        email: str,
        has_admin: bool = False,
        has_set_score: bool = False,
    ) -> Dict[str, Any]:
        """
        Find a user by email, creating it with the given flags if missing.

        @param email: Email address
        @param has_admin: Admin flag for a newly created user
        @param has_set_score: Score entry flag for a newly created user
        @return: User dictionary
        """
        user = await self.find_user_by_email(email)
        if user is not None:
            logger.debug("User found with email: %s", email)
            return user

        logger.debug("User not found, creating new user with email: %s", email)
        return await self.create_user(email, has_admin, has_set_score)

    async def find_user_by_email(
        self,
        email: str,
    ) -> Optional[Dict[str, Any]]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, email, has_admin, has_set_score FROM users WHERE email = ?",
                (email,),
            )
            row = await cursor.fetchone()
            return _user_from_row(row) if row else None

    async def find_user_by_id(
        self,
        user_id: int,
    ) -> Optional[Dict[str, Any]]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, email, has_admin, has_set_score FROM users WHERE id = ?",
                (user_id,),
            )
            row = await cursor.fetchone()
            return _user_from_row(row) if row else None

    async def get_all_users(self) -> List[Dict[str, Any]]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, email, has_admin, has_set_score FROM users ORDER BY id"
            )
            return [_user_from_row(row) for row in await cursor.fetchall()]

    async def update_user(
        self,
        user_id: int,
        email: str,
        has_admin: bool,
        has_set_score: bool,
    ) -> bool:
        """
        Update a user's email and permissions.

        Existing sessions of the user get the new permissions as well.

        @param user_id: User id
        @param email: New email address
        @param has_admin: New admin flag
        @param has_set_score: New score entry flag
        @return: True if the user exists
        @raise StorageError: The update failed
        """
        async with self._connect() as db:
            try:
                cursor = await db.execute(
                    "UPDATE users SET email = ?, has_admin = ?, has_set_score = ? "
                    "WHERE id = ?",
                    (email, int(has_admin), int(has_set_score), user_id),
                )
                await db.execute(
                    "UPDATE user_sessions SET has_admin = ?, has_set_score = ? "
                    "WHERE user_id = ?",
                    (int(has_admin), int(has_set_score), user_id),
                )
                await db.commit()
            except aiosqlite.Error as e:
                raise StorageError(f"update user {user_id}", e) from e

        return cursor.rowcount > 0

    async def create_session(
        self,
        user: Dict[str, Any],
    ) -> str:
        """
        Open a session for a user, copying the user's permissions.

        @param user: User dictionary as returned by the user queries
        @return: New session id
        """
        session_id = str(uuid.uuid4())
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO user_sessions (id, user_id, has_admin, has_set_score) "
                "VALUES (?, ?, ?, ?)",
                (
                    session_id,
                    user["id"],
                    int(user["has_admin"]),
                    int(user["has_set_score"]),
                ),
            )
            await db.commit()
        return session_id

    async def verify_session(
        self,
        session_id: str,
    ) -> VerifiedSession:
        """
        Look up a session cookie value.

        @param session_id: Session id from the cookie
        @return: VerifiedSession, with verified=False when unknown
        """
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, user_id, has_admin, has_set_score "
                "FROM user_sessions WHERE id = ?",
                (session_id,),
            )
            row = await cursor.fetchone()

        if row is None:
            logger.debug("No session found for cookie")
            return VerifiedSession(id=session_id, verified=False)

        return VerifiedSession(
            id=session_id,
            verified=True,
            user_id=row["user_id"],
            has_admin=bool(row["has_admin"]),
            has_set_score=bool(row["has_set_score"]),
        )

    async def delete_session(
        self,
        session_id: str,
    ) -> None:
        async with self._connect() as db:
            await db.execute("DELETE FROM user_sessions WHERE id = ?", (session_id,))
            await db.commit()

    async def execute_sql(
        self,
        query: str,
    ) -> Dict[str, Any]:
        """
        Run an operator-supplied SQL statement.

        @param query: A single SQL statement
        @return: Dictionary with "columns" and "rows"
        @raise ValueError: The statement is blocked
        @raise StorageError: SQLite rejected the statement
        """
        lowered = " ".join(query.lower().split())
        for pattern in BLOCKED_SQL_PATTERNS:
            if pattern in lowered:
                raise ValueError(f"Statement blocked: contains '{pattern}'")

        logger.info("Executing SQL console statement: %s", query)
        async with self._connect() as db:
            try:
                cursor = await db.execute(query)
                rows = await cursor.fetchall()
                columns = [column[0] for column in cursor.description or []]
                await db.commit()
            except aiosqlite.Error as e:
                raise StorageError("sql console", e) from e

        self._invalidate_cache()
        return {"columns": columns, "rows": [list(row) for row in rows]}


def _user_from_row(row: Any) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "email": row["email"],
        "has_admin": bool(row["has_admin"]),
        "has_set_score": bool(row["has_set_score"]),
    }
