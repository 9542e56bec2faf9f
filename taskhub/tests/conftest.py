import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
import os
from datetime import datetime, timedelta
from typing import Callable, Generator, Any

# Переменные окружения задаются ДО импорта settings и приложения
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SECRET_KEY"] = "testsecretkey"
os.environ["FIRST_SUPERUSER_USERNAME"] = "testadmin"
os.environ["FIRST_SUPERUSER_EMAIL"] = "testadmin@example.com"
os.environ["FIRST_SUPERUSER_PASSWORD"] = "testpassword"
os.environ["ADMIN_REGISTRATION_CODE"] = "let-me-in"
os.environ["OPENAI_API_KEY"] = ""

# Все модели регистрируются в Base.metadata через taskhub.models
import taskhub.models
from taskhub.models.base import Base

from taskhub.core.settings import settings as app_settings
from taskhub.main import app

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# pysqlite сам управляет BEGIN и ломает SAVEPOINT; отдаём транзакции SQLAlchemy
@event.listens_for(engine, "connect")
def _sqlite_connect(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None

@event.listens_for(engine, "begin")
def _sqlite_begin(conn):
    conn.exec_driver_sql("BEGIN")

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

from taskhub.dependencies import get_db
from taskhub.crud.user import create_user, get_user_by_username
from taskhub.crud.task import create_task
from taskhub.core import security
from taskhub.core.timeutils import utcnow
from taskhub.models.user import User
from taskhub.models.task import Task


@pytest.fixture(scope="session", autouse=True)
def create_test_tables_session_scope():
    """
    Create all tables once per test session. Drops them again after the session.
    """
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Session bound to an outer transaction that is rolled back after the test.
    Commits and rollbacks inside the code under test only touch a savepoint.
    """
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection, join_transaction_mode="create_savepoint")

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """
    TestClient with `get_db` overridden to the test session.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    del app.dependency_overrides[get_db]


def _ensure_user(db: Session, username: str, email: str, role: str = "user") -> User:
    user = get_user_by_username(db, username=username)
    if not user:
        user = create_user(db=db, data={
            "username": username,
            "email": email,
            "password": "testpassword",
            "first_name": username.capitalize(),
            "role": role,
        })
    return user


@pytest.fixture(scope="function")
def test_user(db: Session) -> User:
    return _ensure_user(db, "testuser", "testuser@example.com")


@pytest.fixture(scope="function")
def other_user(db: Session) -> User:
    return _ensure_user(db, "otheruser", "otheruser@example.com")


@pytest.fixture(scope="function")
def test_admin(db: Session) -> User:
    return _ensure_user(db, app_settings.FIRST_SUPERUSER_USERNAME, app_settings.FIRST_SUPERUSER_EMAIL, role="admin")


def _token_headers(user: User) -> dict[str, str]:
    token, _ = security.create_access_token(
        data={"sub": user.username, "user_id": user.id, "role": user.role},
        expires_delta=timedelta(minutes=app_settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def normal_user_token_headers(test_user: User) -> dict[str, str]:
    return _token_headers(test_user)


@pytest.fixture(scope="function")
def other_user_token_headers(other_user: User) -> dict[str, str]:
    return _token_headers(other_user)


@pytest.fixture(scope="function")
def admin_token_headers(test_admin: User) -> dict[str, str]:
    return _token_headers(test_admin)


@pytest.fixture
def task_factory(db: Session) -> Callable[..., Task]:
    """
    Creates tasks through the crud layer; `now` pins created_at for time-based checks.
    """
    def _make(owner: User, now: datetime = None, **fields: Any) -> Task:
        data = {
            "title": "Write report",
            "category": "Work",
            "priority": "medium",
            "due_date": (now or utcnow()) + timedelta(days=10),
        }
        data.update(fields)
        return create_task(db, owner.id, data, now=now)
    return _make
