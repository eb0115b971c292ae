import logging

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from slotbook.auth.dependencies import require_admin
from slotbook.booking.notifications import build_notifier
from slotbook.core import config
from slotbook.database import Database
from slotbook.routes import admin_routes, appointment_routes

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
)

app = FastAPI(title='Slotbook API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def open_database() -> None:
    config.validate_runtime_config()
    app.state.database = Database(config.DATABASE_URL)
    app.state.notifier = build_notifier()
    try:
        app.state.database.create_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.on_event('shutdown')
def close_database() -> None:
    database = getattr(app.state, 'database', None)
    if database is not None:
        database.dispose()


@app.get('/')
def root():
    return {'status': 'Slotbook API Running'}


app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(admin_routes.router, prefix='/admin', dependencies=[Depends(require_admin)])
