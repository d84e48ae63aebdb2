import pytest
from sqlalchemy import inspect

import manage
from config import Settings
from database import create_db_engine, init_db, make_session_factory
from mailer import Mailer
from models import ForumImage


@pytest.fixture
def env_file(tmp_path, monkeypatch):
    db_url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("DATABASE_URL", db_url)
    path = tmp_path / ".env"
    path.write_text(f"DATABASE_URL={db_url}\n")
    return path


def test_migrate_creates_tables(env_file, tmp_path):
    assert manage.main(["--env-file", str(env_file), "migrate"]) == 0

    engine = create_db_engine(Settings(DATABASE_URL=f"sqlite:///{tmp_path / 'cli.db'}"))
    try:
        tables = set(inspect(engine).get_table_names())
    finally:
        engine.dispose()
    assert {"contact_forms", "job_applications", "forum_images", "security_evaluations"} <= tables


def test_purge_duplicates_command(env_file, tmp_path):
    engine = create_db_engine(Settings(DATABASE_URL=f"sqlite:///{tmp_path / 'cli.db'}"))
    init_db(engine)
    db = make_session_factory(engine)()
    db.add(ForumImage(title="Huérfana", image_base64=None))
    db.commit()
    db.close()

    assert manage.main(["--env-file", str(env_file), "purge-duplicates"]) == 0

    db = make_session_factory(engine)()
    try:
        assert db.query(ForumImage).count() == 0
    finally:
        db.close()
        engine.dispose()


def test_send_report_command(env_file, monkeypatch):
    sent = []
    monkeypatch.setattr(Mailer, "send", lambda self, message: sent.append(message) or "<1@orasystem.cl>")

    assert manage.main(["--env-file", str(env_file), "send-report"]) == 0

    assert len(sent) == 1
    assert sent[0].attachments[0].filename.endswith(".xlsx")


def test_command_is_required():
    with pytest.raises(SystemExit):
        manage.main([])
