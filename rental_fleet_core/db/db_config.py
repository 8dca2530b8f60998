import os
from typing import Any, Dict, Optional

from pydantic import BaseModel, SecretStr
from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine
from sqlalchemy.orm import Session, declarative_base, scoped_session, sessionmaker

from ..config import get_config
from ..exceptions import ErrorCode, ServiceError, ValidationError
from ..utils.logger import get_logger

Base: Any = declarative_base()

SUPPORTED_DB_TYPES = ("postgres", "sqlite")


class DatabaseConfig(BaseModel):
    """Connection settings for the fleet store."""

    db_type: str = "postgres"
    database: str
    host: Optional[str] = None
    port: int = 5432
    username: Optional[str] = None
    password: Optional[SecretStr] = None
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    statement_timeout_seconds: Optional[float] = None
    echo: bool = False
    development_mode: bool = False

    @property
    def is_sqlite(self) -> bool:
        return self.db_type.lower() == "sqlite"

    def url(self) -> URL:
        kind = self.db_type.lower()
        if kind not in SUPPORTED_DB_TYPES:
            raise ValidationError(
                f"Unsupported database type: {self.db_type}",
                error_code=ErrorCode.INVALID_FORMAT,
                field="db_type",
                value=self.db_type,
            )

        if kind == "sqlite":
            return URL.create("sqlite", database=self.database)

        missing = [
            name
            for name in ("host", "database", "username", "password")
            if not getattr(self, name)
        ]
        if missing:
            raise ValidationError(
                "Postgres connection settings incomplete",
                error_code=ErrorCode.MISSING_REQUIRED,
                field="database_config",
                missing=missing,
            )
        return URL.create(
            "postgresql+psycopg2",
            username=self.username,
            password=self.password.get_secret_value(),
            host=self.host,
            port=self.port,
            database=self.database,
        )

    def get_connection_string(self) -> str:
        return self.url().render_as_string(hide_password=False)

    def effective_statement_timeout(self) -> float:
        """
        Seconds a single statement may run (or, on SQLite, wait for the write
        lock). Unless set explicitly, the slowest store operation limit.
        """
        if self.statement_timeout_seconds is not None:
            return self.statement_timeout_seconds
        limits = get_config().timeouts
        return max(limits.query, limits.insert, limits.update, limits.delete)

    def engine_options(self) -> Dict[str, Any]:
        limit = self.effective_statement_timeout()
        if self.is_sqlite:
            return {"connect_args": {"check_same_thread": False, "timeout": limit}}
        return {
            "pool_size": self.pool_size,
            "max_overflow": self.max_overflow,
            "pool_timeout": self.pool_timeout,
            "connect_args": {"options": f"-c statement_timeout={int(limit * 1000)}"},
        }


def _sqlite_connect(dbapi_connection, connection_record):
    # pysqlite must not open transactions on its own; SQLAlchemy emits BEGIN
    # so that SAVEPOINTs nest inside the session transaction
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _sqlite_begin(conn):
    conn.exec_driver_sql("BEGIN")


class DatabaseManager:
    """
    Owns the engine and the session factories for one DatabaseConfig.

    ``get_session`` hands out the thread-scoped session; ``new_session``
    an independent one for work that must commit on its own.
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.engine = self._build_engine()
        self.session_factory = sessionmaker(bind=self.engine)
        self.scoped_session = scoped_session(self.session_factory)

    def _build_engine(self) -> Engine:
        engine = create_engine(self.config.url(), echo=self.config.echo, **self.config.engine_options())
        if self.config.is_sqlite:
            event.listen(engine, "connect", _sqlite_connect)
            event.listen(engine, "begin", _sqlite_begin)
        return engine

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        if not self.config.development_mode:
            raise ServiceError(
                "Refusing to drop tables outside development mode",
                error_code=ErrorCode.CONFIGURATION_ERROR,
                operation="drop_tables",
            )
        Base.metadata.drop_all(self.engine)

    def get_session(self) -> Session:
        return self.scoped_session()

    def new_session(self) -> Session:
        return self.session_factory()

    def close_session(self, session: Optional[Session] = None) -> None:
        if session is None:
            self.scoped_session.remove()
        else:
            session.close()

    def close(self) -> None:
        self.scoped_session.remove()
        self.engine.dispose()


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "false").lower() in ("1", "true", "yes")


def get_development_config() -> DatabaseConfig:
    """SQLite store at DEV_DB_PATH (in memory when unset)."""
    return DatabaseConfig(
        db_type="sqlite",
        database=os.environ.get("DEV_DB_PATH", ":memory:"),
        echo=_env_flag("DB_ECHO"),
        development_mode=True,
    )


def get_production_config() -> DatabaseConfig:
    """Postgres store described by the DB_* environment variables."""
    env = os.environ
    return DatabaseConfig(
        db_type="postgres",
        host=env.get("DB_HOST", "localhost"),
        port=int(env.get("DB_PORT", "5432")),
        database=env.get("DB_NAME", "rental_fleet"),
        username=env.get("DB_USER", "postgres"),
        password=env.get("DB_PASSWORD") or None,
        pool_size=int(env.get("DB_POOL_SIZE", "5")),
        max_overflow=int(env.get("DB_MAX_OVERFLOW", "10")),
        pool_timeout=int(env.get("DB_POOL_TIMEOUT", "30")),
        echo=_env_flag("DB_ECHO"),
    )


def import_all_models():
    """Register every model on Base.metadata and configure the mappers."""
    from sqlalchemy.orm import configure_mappers

    from . import db_location_models, db_tenant_models, db_vehicle_models  # noqa: F401

    configure_mappers()


_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    if _db_manager is None:
        raise ServiceError(
            "Database manager not initialized. Call initialize_db() first.",
            error_code=ErrorCode.CONFIGURATION_ERROR,
            operation="get_db_manager",
        )
    return _db_manager


def set_db_manager(manager: Optional[DatabaseManager]) -> None:
    """Install (or clear) the process-wide manager. Tests use this to inject one."""
    global _db_manager
    _db_manager = manager


def initialize_db(config: Optional[DatabaseConfig] = None) -> DatabaseManager:
    """
    Create the process-wide manager and the tables.

    Args:
        config: Store settings; the DB_* environment is used when omitted

    Returns:
        The new DatabaseManager
    """
    config = config or get_production_config()
    get_logger().info(
        "Initializing database",
        extra={"db_type": config.db_type, "host": config.host, "database": config.database},
    )

    manager = DatabaseManager(config)
    import_all_models()
    manager.create_tables()
    set_db_manager(manager)
    return manager


def close_db() -> None:
    """Dispose of the process-wide manager, if any."""
    global _db_manager
    if _db_manager is not None:
        _db_manager.close()
        _db_manager = None
