"""
auth/store.py -- SQLAlchemy Core persistence layer for users and sessions.

Pattern: Repository + Data Mapper.
UserStore and SessionStore are the repositories; _row_to_user /
_row_to_session are the mappers. Service and route code never touches SQL
directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Rotation is a conditional UPDATE keyed by (id, current refresh_token).
  When two requests present the same refresh token concurrently, the
  database applies the first UPDATE; the second matches zero rows and
  rotate() returns False. No in-process lock is needed.

  sessions.user_id carries ON DELETE CASCADE. SQLite only honours it with
  PRAGMA foreign_keys=ON, which _configure_sqlite sets on every connection.
  UserStore.delete_user also deletes the sessions explicitly, in the same
  transaction, so the cascade holds even on backends without FK enforcement.

Timestamps:
  created_at / updated_at / expires_at are stored as ISO 8601 UTC strings.
  All values share the same format, so ORDER BY created_at is chronological.

DB path: auth/sessionauth.db unless DATABASE_URL says otherwise.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine

from auth.models import Session, User
from auth.roles import Role

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("name", String(255), nullable=False),
    Column("role", String(30), nullable=False, server_default=Role.CLIENT.value),
    Column("hashed_password", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_sessions = Table(
    "sessions",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("refresh_token", Text, nullable=False, unique=True),
    Column("user_agent", Text),
    Column("ip_address", String(64)),
    Column("expires_at", String(32), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _configure_sqlite(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def open_engine(db_url: str) -> Engine:
    """Create the engine shared by UserStore and SessionStore and ensure the schema exists."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _configure_sqlite)
    _metadata.create_all(engine)
    return engine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


def _to_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        engine = open_engine("sqlite:///auth.db")
        users = UserStore(engine)
        user_id = users.create_user(User(email="a@x.com", name="A", hashed_password=digest))
        user = users.get_by_email("a@x.com")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create_user(self, user: User) -> str:
        """Insert a new user and return its id.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        IdentityDirectory checks first and treats the IntegrityError as the
        signal that a concurrent request won the race.
        """
        user_id = user.id or _new_id()
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    email=user.email,
                    name=user.name,
                    role=user.role,
                    hashed_password=user.hashed_password,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return user_id

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all users, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.created_at, _users.c.email)).fetchall()
        return [_row_to_user(r) for r in rows]

    def update_user(self, user_id: str, **fields) -> bool:
        """Update mutable fields on an existing user.

        Accepted fields: email, name, role, hashed_password. updated_at is
        stamped automatically. Returns True if a row was updated.
        """
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_user(self, user_id: str) -> bool:
        """Permanently delete a user record and every session it owns, in one transaction.

        Sessions are deleted explicitly as well as through ON DELETE CASCADE, so
        backends without FK enforcement behave the same.
        """
        with self.engine.begin() as conn:
            conn.execute(_sessions.delete().where(_sessions.c.user_id == user_id))
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
        return result.rowcount > 0

    def count_admins(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count()).select_from(_users).where(_users.c.role == Role.ADMIN.value)
            ).scalar()
        return result or 0


class SessionStore:
    """Repository for Session records (active refresh-token grants)."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create(self, session: Session) -> str:
        session_id = session.id or _new_id()
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _sessions.insert().values(
                    id=session_id,
                    user_id=session.user_id,
                    refresh_token=session.refresh_token,
                    user_agent=session.user_agent,
                    ip_address=session.ip_address,
                    expires_at=_to_iso(session.expires_at),
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return session_id

    def find_by_token(self, token: str) -> Session | None:
        with self.engine.connect() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.refresh_token == token)).fetchone()
        return _row_to_session(row) if row is not None else None

    def find_by_token_with_user(self, token: str) -> tuple[Session, User] | None:
        """Return the session matching token together with its owning user, in one query."""
        query = (
            select(
                _sessions,
                _users.c.email,
                _users.c.name,
                _users.c.role,
                _users.c.hashed_password,
                _users.c.created_at.label("user_created_at"),
                _users.c.updated_at.label("user_updated_at"),
            )
            .select_from(_sessions.join(_users, _sessions.c.user_id == _users.c.id))
            .where(_sessions.c.refresh_token == token)
        )
        with self.engine.connect() as conn:
            row = conn.execute(query).fetchone()
        if row is None:
            return None
        user = User(
            id=row.user_id,
            email=row.email,
            name=row.name,
            role=row.role,
            hashed_password=row.hashed_password,
            created_at=row.user_created_at,
            updated_at=row.user_updated_at,
        )
        return _row_to_session(row), user

    def update(self, session_id: str, **fields) -> bool:
        """Update fields on a session. expires_at may be passed as a datetime."""
        if isinstance(fields.get("expires_at"), datetime):
            fields["expires_at"] = _to_iso(fields["expires_at"])
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.update().where(_sessions.c.id == session_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def rotate(self, session_id: str, current_token: str, new_token: str, expires_at: datetime) -> bool:
        """Replace the refresh token in place if the row still holds current_token.

        Returns False when the row is gone or already carries a different
        token -- i.e. a concurrent refresh or logout got there first.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _sessions.update()
                .where((_sessions.c.id == session_id) & (_sessions.c.refresh_token == current_token))
                .values(refresh_token=new_token, expires_at=_to_iso(expires_at), updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def delete_by_token(self, token: str) -> int:
        """Delete every session whose token matches. Returns the number removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.refresh_token == token))
            conn.commit()
        return result.rowcount

    def delete_all_for_user(self, user_id: str) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.user_id == user_id))
            conn.commit()
        return result.rowcount

    def list_for_user(self, user_id: str) -> list[Session]:
        """Return all sessions of a user, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _sessions.select().where(_sessions.c.user_id == user_id).order_by(_sessions.c.created_at.desc())
            ).fetchall()
        return [_row_to_session(r) for r in rows]


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        role=row.role,
        hashed_password=row.hashed_password,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_session(row) -> Session:
    return Session(
        id=row.id,
        user_id=row.user_id,
        refresh_token=row.refresh_token,
        user_agent=row.user_agent,
        ip_address=row.ip_address,
        expires_at=datetime.fromisoformat(row.expires_at),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
