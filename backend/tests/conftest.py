from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from openpyxl import Workbook
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinic_feedback.core.security import TokenClaims, hash_password, issue_token
from clinic_feedback.core.settings import settings
from clinic_feedback.db.session import get_db
from clinic_feedback.deps import token_secret
from clinic_feedback.main import app
from clinic_feedback.models import Base, Role, User
from clinic_feedback.services.patient_import.pipeline import ImportConfig
from clinic_feedback.services.side_effects import SideEffectDispatcher, install_dispatcher

TEST_PASSWORD = "secret123"


def _sqlite_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite needs explicit BEGIN for SAVEPOINT to work.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


@pytest.fixture
def engine():
    engine = _sqlite_engine()
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def connection(engine):
    # Sessions share one connection, each inside its own SAVEPOINT.
    connection = engine.connect()
    outer = connection.begin()
    yield connection
    outer.rollback()
    connection.close()


@pytest.fixture
def session_factory(connection):
    return sessionmaker(bind=connection, autoflush=False, join_transaction_mode="create_savepoint")


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def inline_dispatcher():
    dispatcher = SideEffectDispatcher(inline=True)
    previous = install_dispatcher(dispatcher)
    yield dispatcher
    install_dispatcher(previous)


def _add_user(db, login: str, role: Role) -> User:
    user = User(
        login=login,
        full_name=login.title(),
        role=role,
        is_active=True,
        hashed_password=hash_password(TEST_PASSWORD),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def operator(db):
    return _add_user(db, "operator", Role.user)


@pytest.fixture
def admin(db):
    return _add_user(db, "admin", Role.admin)


def _bearer(user: User) -> dict[str, str]:
    token = issue_token(
        TokenClaims(user_id=user.id),
        secret=token_secret(),
        alg=settings.jwt_alg,
        expires_minutes=30,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def operator_headers(operator):
    return _bearer(operator)


@pytest.fixture
def admin_headers(admin):
    return _bearer(admin)


class RecordingBoard:
    def __init__(self):
        self.created: list[int] = []
        self.webhooks: list[dict] = []

    def create_card_for_feedback(self, feedback_id: int) -> str:
        self.created.append(feedback_id)
        return f"card-{feedback_id}"

    def handle_webhook(self, payload):
        self.webhooks.append(payload)
        return {"ok": True}


@pytest.fixture
def board():
    return RecordingBoard()


@pytest.fixture
def client(session_factory, board, monkeypatch):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    monkeypatch.setattr(app.state, "board", board)
    monkeypatch.setattr(app.state, "import_config", ImportConfig())
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def xlsx_factory():
    def _build(rows: list[list[object]]) -> bytes:
        workbook = Workbook()
        sheet = workbook.active
        for row in rows:
            sheet.append(row)
        buffer = BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()

    return _build
