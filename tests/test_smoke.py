import pytest

from app.rtims import create_app
from app.rtims.auth import _login_attempts
from app.rtims.models import Base


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("BACKEND", "sql")
    for k in ("SUPABASE_URL", "SUPABASE_ANON_KEY"):
        monkeypatch.delenv(k, raising=False)
    _login_attempts.clear()

    app = create_app()

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    app.extensions["rtims_backend"].register_user("alice@example.com", "pw", name="Alice Martin")

    return app.test_client()


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_healthz_ok(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_health_checks_skip_session_and_csrf(client):
    assert client.post("/health").status_code == 405
    assert client.post("/healthz").status_code == 405
    with client.session_transaction() as sess:
        assert "csrf_token" not in sess


def test_paths_only_resembling_health_checks_are_guarded(client):
    r = client.post("/healthcheck")
    assert r.status_code == 400
    assert "Jeton CSRF" in r.get_data(as_text=True)


@pytest.mark.parametrize(
    "path,heading",
    [
        ("/", "RTIMS CONSULTING"),
        ("/services", "Nos Services"),
        ("/expertise", "Notre Expertise"),
        ("/contact", "Contact"),
    ],
)
def test_public_pages(client, path, heading):
    r = client.get(path)
    assert r.status_code == 200
    assert f"<h1>{heading}</h1>" in r.get_data(as_text=True)


def test_contact_page_shows_configured_details(client):
    body = client.get("/contact").get_data(as_text=True)
    assert "contact@rtims-consulting.fr" in body
    assert "tel:+33123456789" in body


def test_unknown_path_renders_404(client):
    r = client.get("/nope")
    assert r.status_code == 404
    assert "Page introuvable" in r.get_data(as_text=True)


def test_login_and_portal_access(client):
    # Anonymous gets the login view in place of the portal
    r = client.get("/employee")
    assert r.status_code == 200
    assert "Connexion" in r.get_data(as_text=True)
    assert "Gestion des congés" not in r.get_data(as_text=True)

    r = client.post("/auth/login", data={"email": "alice@example.com", "password": "pw"}, follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/employee")

    r = client.get("/employee")
    assert r.status_code == 200
    body = r.get_data(as_text=True)
    assert "Gestion des congés" in body
    assert "Discussions récentes" in body
