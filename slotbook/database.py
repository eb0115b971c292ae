from threading import Lock

from fastapi import Request
from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from slotbook.core import config


Base = declarative_base()


def build_engine_options(
    url: str,
    *,
    pool_timeout: int,
    lock_timeout: int,
    statement_timeout: int,
    echo: bool = False,
) -> dict:
    backend = make_url(url).get_backend_name()
    options: dict = {'echo': echo, 'pool_pre_ping': True}

    if backend == 'sqlite':
        # `timeout` is the busy timeout a writer waits for the database lock.
        options['connect_args'] = {'check_same_thread': False, 'timeout': lock_timeout}
    else:
        options['pool_timeout'] = pool_timeout
        if backend == 'postgresql':
            options['connect_args'] = {
                'connect_timeout': pool_timeout,
                'options': (
                    f'-c lock_timeout={lock_timeout * 1000} '
                    f'-c statement_timeout={statement_timeout * 1000}'
                ),
            }

    return options


def enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute('PRAGMA foreign_keys=ON')
    cursor.close()


class Database:
    """Store handle: owns the engine and session factory for one process."""

    def __init__(
        self,
        url: str,
        *,
        pool_timeout: int = config.DB_POOL_TIMEOUT_SECONDS,
        lock_timeout: int = config.DB_LOCK_TIMEOUT_SECONDS,
        statement_timeout: int = config.DB_STATEMENT_TIMEOUT_SECONDS,
        echo: bool = config.DB_ECHO,
    ) -> None:
        self.url = url
        self.engine = create_engine(
            url,
            **build_engine_options(
                url,
                pool_timeout=pool_timeout,
                lock_timeout=lock_timeout,
                statement_timeout=statement_timeout,
                echo=echo,
            ),
        )
        if self.engine.dialect.name == 'sqlite':
            event.listen(self.engine, 'connect', enable_sqlite_foreign_keys)
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine,
        )
        self._schema_lock = Lock()
        self._schema_checked = False

    def session(self) -> Session:
        return self.SessionLocal()

    def create_schema(self) -> None:
        # Model modules register their tables on Base when imported.
        from slotbook.models import appointment, day_rule, slot, slot_rule, user  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        self.ensure_booking_schema()

    def ensure_booking_schema(self) -> None:
        if self._schema_checked:
            return

        with self._schema_lock:
            if self._schema_checked:
                return

            inspector = inspect(self.engine)
            table_names = set(inspector.get_table_names())

            with self.engine.begin() as connection:
                if 'appointment_slots' in table_names:
                    slot_columns = {column['name'] for column in inspector.get_columns('appointment_slots')}
                    if 'lock_version' not in slot_columns:
                        connection.execute(
                            text('ALTER TABLE appointment_slots ADD COLUMN lock_version INTEGER NOT NULL DEFAULT 0')
                        )

                if 'appointments' in table_names:
                    appointment_columns = {column['name'] for column in inspector.get_columns('appointments')}
                    migration_steps = [
                        ('slot_id', 'ALTER TABLE appointments ADD COLUMN slot_id INTEGER'),
                        ('survey_response_id', 'ALTER TABLE appointments ADD COLUMN survey_response_id INTEGER'),
                        ('note', 'ALTER TABLE appointments ADD COLUMN note VARCHAR'),
                        ('handled_by_admin_name', 'ALTER TABLE appointments ADD COLUMN handled_by_admin_name VARCHAR'),
                    ]
                    for column_name, statement in migration_steps:
                        if column_name not in appointment_columns:
                            connection.execute(text(statement))
                    connection.execute(
                        text('CREATE INDEX IF NOT EXISTS idx_appointments_slot_status ON appointments(slot_id, status)')
                    )
                    connection.execute(
                        text(
                            'CREATE UNIQUE INDEX IF NOT EXISTS uq_appointments_raw_upcoming '
                            'ON appointments(date_local, time_local) '
                            "WHERE status = 'upcoming' AND slot_id IS NULL"
                        )
                    )

            self._schema_checked = True

    def dispose(self) -> None:
        self.engine.dispose()


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_db(request: Request):
    db = get_database(request).session()
    try:
        yield db
    finally:
        db.close()
