import pytest

from config import Settings
from database import create_db_engine, init_db, make_session_factory
from errors import MailError
from mailer import Mailer


class FakeMailer(Mailer):
    """Records messages instead of talking to an SMTP server."""

    def __init__(self):
        super().__init__(host=None, port=25, sender="servicio@orasystem.cl")
        self.sent = []
        self.fail = False

    def send(self, message):
        if self.fail:
            raise MailError(detail="Connection refused")
        self.sent.append(message)
        return f"<{len(self.sent)}@orasystem.cl>"

    def verify(self):
        return True


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(DATABASE_URL=f"sqlite:///{tmp_path / 'orasystem.db'}", DB_TIMEOUT_SECONDS=30)


@pytest.fixture
def engine(settings):
    engine = create_db_engine(settings)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()
