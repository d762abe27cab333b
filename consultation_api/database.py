from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from consultation_api.core import config


if config.DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        config.DATABASE_URL,
        connect_args={"check_same_thread": False},
        echo=config.DATABASE_ECHO,
    )
else:
    engine = create_engine(
        config.DATABASE_URL,
        pool_pre_ping=True,
        echo=config.DATABASE_ECHO,
    )

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

ACTIVE_SLOT_INDEX_NAME = 'uq_appointments_active_slot'

_schema_lock = Lock()
_availability_schema_checked = False
_appointment_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_availability_schema() -> None:
    global _availability_schema_checked

    if _availability_schema_checked:
        return

    with _schema_lock:
        if _availability_schema_checked:
            return

        inspector = inspect(engine)

        if 'admin_availability' not in inspector.get_table_names():
            _availability_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('admin_availability')}
        migration_steps = [
            ('slot_duration', 'ALTER TABLE admin_availability ADD COLUMN slot_duration INTEGER DEFAULT 60'),
            ('break_between', 'ALTER TABLE admin_availability ADD COLUMN break_between INTEGER DEFAULT 15'),
            ('enabled', 'ALTER TABLE admin_availability ADD COLUMN enabled BOOLEAN DEFAULT TRUE'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_availability_day_enabled ON admin_availability(day_of_week, enabled)')
            )

        _availability_schema_checked = True


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('user_id', 'ALTER TABLE appointments ADD COLUMN user_id INTEGER'),
            ('customer_email', 'ALTER TABLE appointments ADD COLUMN customer_email VARCHAR'),
            ('customer_notes', 'ALTER TABLE appointments ADD COLUMN customer_notes VARCHAR'),
            ('admin_notes', 'ALTER TABLE appointments ADD COLUMN admin_notes VARCHAR'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            # Older databases predate the one-active-booking-per-slot guarantee.
            connection.execute(
                text(
                    f'CREATE UNIQUE INDEX IF NOT EXISTS {ACTIVE_SLOT_INDEX_NAME} '
                    "ON appointments(date, time) WHERE status <> 'CANCELLED'"
                )
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_status_date ON appointments(status, date)')
            )

        _appointment_schema_checked = True
