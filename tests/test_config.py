from config import is_admin_token, parse_included_airlines, resolve_database_url


def test_parse_included_airlines():
    assert parse_included_airlines("CCJ:6E,AI,QR;trv: 6e , ai") == {"CCJ": "6E,AI,QR", "TRV": "6E,AI"}
    assert parse_included_airlines("") == {}
    assert parse_included_airlines("garbage;CCJ:") == {}


def test_database_url_prefers_database_url(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgres://u:p@db:5432/cart")

    assert resolve_database_url() == "postgresql+psycopg2://u:p@db:5432/cart"


def test_database_url_from_pg_vars(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("PG_HOST", "db")
    monkeypatch.setenv("PG_DATABASE", "cart")
    monkeypatch.setenv("PG_USER", "app")
    monkeypatch.setenv("PG_PASSWORD", "pw")
    monkeypatch.setenv("PG_PORT", "6543")

    assert resolve_database_url() == "postgresql+psycopg2://app:pw@db:6543/cart"


def test_database_url_unset(monkeypatch):
    for var in ("DATABASE_URL", "PG_HOST", "PG_DATABASE"):
        monkeypatch.delenv(var, raising=False)

    assert resolve_database_url() is None


def test_admin_token():
    assert is_admin_token("test-admin-token") is True
    assert is_admin_token("Bearer test-admin-token") is True
    assert is_admin_token("wrong") is False
    assert is_admin_token(None) is False
