import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from clinic_feedback.core.errors import DomainError, ImportRejected
from clinic_feedback.core.settings import Settings, settings, validate_settings
from clinic_feedback.db.session import SessionLocal, engine
from clinic_feedback.models import Base
from clinic_feedback.routers.auth import router as auth_router
from clinic_feedback.routers.call_statuses import router as call_statuses_router
from clinic_feedback.routers.feedbacks import router as feedbacks_router
from clinic_feedback.routers.messages import router as messages_router
from clinic_feedback.routers.patients import router as patients_router
from clinic_feedback.routers.ratings import router as ratings_router
from clinic_feedback.routers.reports import router as reports_router
from clinic_feedback.routers.side_effects import router as side_effects_router
from clinic_feedback.routers.users import router as users_router
from clinic_feedback.routers.webhooks import router as webhooks_router
from clinic_feedback.services.board import BoardClient, BoardConfig, BoardSync
from clinic_feedback.services.messaging import InboundMessageHandler, MessagingClient, MessagingConfig
from clinic_feedback.services.patient_import.pipeline import ImportConfig
from clinic_feedback.services.side_effects import SideEffectDispatcher, get_dispatcher, install_dispatcher
from clinic_feedback.services.users import seed_initial_admin

app = FastAPI(title="Clinic Feedback API", version="0.1.0")
logger = logging.getLogger("clinic_feedback.startup")


def configure_collaborators(target: FastAPI, config: Settings, session_factory=SessionLocal) -> None:
    """Build the external collaborators from explicit config values and attach them to ``target.state``."""
    import_config = ImportConfig.from_settings(config)
    board_config = BoardConfig.from_settings(config)
    messaging_config = MessagingConfig.from_settings(config)
    messaging_client = MessagingClient(messaging_config)

    target.state.import_config = import_config
    target.state.messaging_config = messaging_config
    target.state.messaging_client = messaging_client
    target.state.board = BoardSync(BoardClient(board_config), session_factory)
    target.state.inbound_handler = InboundMessageHandler(messaging_client, session_factory, import_config)


configure_collaborators(app, settings)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    payload: dict = {"detail": exc.message}
    if isinstance(exc, ImportRejected):
        payload["error_count"] = exc.error_count
    return JSONResponse(status_code=exc.status_code, content=payload)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = request.headers.get("x-request-id")
    logger.exception("Unhandled server error", extra={"request_id": request_id})
    payload = {"detail": "Internal server error"}
    if request_id:
        payload["request_id"] = request_id
    return JSONResponse(status_code=500, content=payload)


@app.on_event("startup")
def startup():
    validate_settings(settings)
    Base.metadata.create_all(bind=engine)
    install_dispatcher(SideEffectDispatcher(inline=settings.side_effects_inline))

    admin_login = settings.admin_login
    admin_password = settings.admin_password.strip()
    db: Session = SessionLocal()
    try:
        created = seed_initial_admin(db, login=admin_login, password=admin_password)
        if created:
            logger.info("Initial admin created for %s.", admin_login)
        else:
            logger.info("Initial admin not created (users already exist).")
    finally:
        db.close()


@app.on_event("shutdown")
def shutdown():
    get_dispatcher().shutdown()


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(auth_router)
app.include_router(users_router)
app.include_router(patients_router)
app.include_router(call_statuses_router)
app.include_router(ratings_router)
app.include_router(feedbacks_router)
app.include_router(messages_router)
app.include_router(webhooks_router)
app.include_router(reports_router)
app.include_router(side_effects_router)
