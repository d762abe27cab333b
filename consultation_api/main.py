import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from consultation_api.core import config
from consultation_api.database import Base, engine, ensure_appointment_schema, ensure_availability_schema
from consultation_api.models import appointment, availability, consultation_type, user  # noqa: F401
from consultation_api.routes import account_routes, admin_routes, consultation_routes

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

app = FastAPI(title='Consultation Booking API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


def _validation_errors_safe(errors) -> list[dict]:
    safe_errors = []
    for error in errors:
        error = dict(error)
        if isinstance(error.get('ctx'), dict):
            error['ctx'] = {key: str(value) for key, value in error['ctx'].items()}
        safe_errors.append(error)
    return safe_errors


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={'error': exc.detail},
        headers=getattr(exc, 'headers', None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            'error': 'Tous les champs requis doivent être remplis',
            'details': jsonable_encoder(_validation_errors_safe(exc.errors())),
        },
    )


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_availability_schema()
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL.')


@app.get('/')
def root():
    return {'status': 'Consultation Booking API Running'}


app.include_router(consultation_routes.router, prefix='/consultations')
app.include_router(account_routes.router, prefix='/account/appointments')
app.include_router(admin_routes.router, prefix='/admin/appointments')
