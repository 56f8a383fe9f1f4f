from app.core.security import verify_password
from app.create_admin import main
from app.models.admin import Admin


def test_creates_first_admin(db, session_factory, capsys):
    code = main(
        ["--name", "Owner", "--email", "owner@example.com", "--password", "s3cret"],
        session_factory=session_factory,
    )

    assert code == 0
    admin = db.query(Admin).filter(Admin.email == "owner@example.com").one()
    assert verify_password("s3cret", admin.password_hash)
    assert "owner@example.com" in capsys.readouterr().out


def test_existing_email_is_refused(db, session_factory, admin, capsys):
    code = main(
        ["--name", "Again", "--email", admin.email, "--password", "pw"],
        session_factory=session_factory,
    )

    assert code == 1
    assert "already exists" in capsys.readouterr().err
    assert db.query(Admin).count() == 1


def test_password_is_prompted(db, session_factory, monkeypatch):
    monkeypatch.setattr("app.create_admin.getpass.getpass", lambda prompt: "typed-secret")

    assert main(["--name", "Owner", "--email", "owner@example.com"], session_factory=session_factory) == 0
    admin = db.query(Admin).one()
    assert verify_password("typed-secret", admin.password_hash)
