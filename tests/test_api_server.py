"""Integration tests for the magazine API."""

import pytest
from fastapi.testclient import TestClient

from flipbook.api.main import create_app

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "correct horse battery"


@pytest.fixture
def app(tmp_path):
    return create_app(
        data_dir=tmp_path / "data",
        secret="test-secret",
        admin_email=ADMIN_EMAIL,
        admin_password=ADMIN_PASSWORD,
    )


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(client):
    response = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


def _upload(client, headers, pdf_bytes, title="Spring Issue", client_slug="acme"):
    return client.post(
        "/api/magazines",
        headers=headers,
        files={"file": ("spring.pdf", pdf_bytes, "application/pdf")},
        data={"title": title, "client_slug": client_slug},
    )


def _insert(app, title, client_slug="acme", is_published=True):
    return app.state.db.insert_magazine(
        client_slug=client_slug,
        title=title,
        pdf_url=f"https://cdn.example.com/{title}.pdf",
        page_count=8,
        is_published=is_published,
    )


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["message"] == "Flipbook Magazine API"


class TestAuth:
    """Test login, session and password change."""

    def test_login_sets_cookie(self, client):
        response = client.post("/api/auth/login", json={"email": ADMIN_EMAIL.upper(), "password": ADMIN_PASSWORD})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["user"]["email"] == ADMIN_EMAIL
        assert "password_hash" not in body["user"]
        assert response.cookies.get("token") == body["token"]

    def test_login_wrong_password(self, client):
        response = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "nope"})
        assert response.status_code == 401

    def test_login_missing_fields(self, client):
        response = client.post("/api/auth/login", json={"email": "", "password": ""})
        assert response.status_code == 400

    def test_me_with_bearer(self, client, auth_headers):
        response = client.get("/api/auth/me", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["user"]["email"] == ADMIN_EMAIL

    def test_me_with_cookie(self, client):
        login = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
        client.cookies.set("token", login.json()["token"])
        assert client.get("/api/auth/me").status_code == 200

    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer not-a-jwt"}])
    def test_me_unauthenticated(self, client, headers):
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_change_password(self, client, auth_headers):
        wrong = client.post(
            "/api/auth/change-password",
            headers=auth_headers,
            json={"current_password": "wrong", "new_password": "a new password"},
        )
        assert wrong.status_code == 401

        response = client.post(
            "/api/auth/change-password",
            headers=auth_headers,
            json={"current_password": ADMIN_PASSWORD, "new_password": "a new password"},
        )
        assert response.status_code == 200
        old = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
        assert old.status_code == 401
        new = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "a new password"})
        assert new.status_code == 200

    def test_change_password_too_short(self, client, auth_headers):
        response = client.post(
            "/api/auth/change-password",
            headers=auth_headers,
            json={"current_password": ADMIN_PASSWORD, "new_password": "short"},
        )
        assert response.status_code == 422


class TestPublicMagazines:
    """Test public listing endpoints."""

    def test_client_required(self, client):
        assert client.get("/api/magazines").status_code == 400
        assert client.get("/api/magazines/latest").status_code == 400

    def test_list_published_only(self, app, client):
        _insert(app, "Winter")
        _insert(app, "Draft", is_published=False)
        _insert(app, "Other client", client_slug="globex")

        body = client.get("/api/magazines", params={"client": "acme"}).json()

        assert body["total"] == 1
        assert [m["title"] for m in body["magazines"]] == ["Winter"]
        assert body["limit"] == 50
        assert body["offset"] == 0

    def test_newest_first_then_sort_order(self, app, client):
        _insert(app, "First")
        _insert(app, "Second")
        third = _insert(app, "Third")

        titles = [m["title"] for m in client.get("/api/magazines", params={"client": "acme"}).json()["magazines"]]
        assert titles == ["Third", "Second", "First"]

        app.state.db.reorder([(third["id"], 5)])
        titles = [m["title"] for m in client.get("/api/magazines", params={"client": "acme"}).json()["magazines"]]
        assert titles == ["Second", "First", "Third"]

    def test_pagination(self, app, client):
        for number in range(5):
            _insert(app, f"Issue {number}")

        body = client.get("/api/magazines", params={"client": "acme", "limit": 2, "offset": 2}).json()

        assert body["total"] == 5
        assert len(body["magazines"]) == 2

    @pytest.mark.parametrize("params", [{"limit": 0}, {"limit": 501}, {"offset": -1}])
    def test_invalid_paging(self, client, params):
        assert client.get("/api/magazines", params={"client": "acme", **params}).status_code == 422

    def test_latest(self, app, client):
        assert client.get("/api/magazines/latest", params={"client": "acme"}).status_code == 404
        _insert(app, "Old")
        _insert(app, "New")

        body = client.get("/api/magazines/latest", params={"client": "acme"}).json()
        assert body["magazine"]["title"] == "New"

    def test_get_by_id(self, app, client):
        published = _insert(app, "Visible")
        draft = _insert(app, "Hidden", is_published=False)

        assert client.get(f"/api/magazines/{published['id']}").json()["magazine"]["title"] == "Visible"
        assert client.get(f"/api/magazines/{draft['id']}").status_code == 404
        assert client.get("/api/magazines/does-not-exist").status_code == 404


class TestAdminMagazines:
    """Test authenticated magazine management."""

    def test_requires_auth(self, client, pdf_bytes):
        assert _upload(client, {}, pdf_bytes).status_code == 401
        assert client.get("/api/magazines/admin/all").status_code == 401
        assert client.patch("/api/magazines/x", json={"title": "t"}).status_code == 401
        assert client.delete("/api/magazines/x").status_code == 401

    def test_upload_creates_magazine_and_cover(self, client, auth_headers, pdf_bytes):
        response = _upload(client, auth_headers, pdf_bytes)

        assert response.status_code == 201
        magazine = response.json()["magazine"]
        assert magazine["title"] == "Spring Issue"
        assert magazine["page_count"] == 5
        assert magazine["file_size"] == len(pdf_bytes)
        assert magazine["pdf_url"].startswith("/files/magazines/acme/")
        assert magazine["cover_url"].startswith("/files/covers/acme/")

        pdf = client.get(magazine["pdf_url"])
        assert pdf.status_code == 200
        assert pdf.content == pdf_bytes
        cover = client.get(magazine["cover_url"])
        assert cover.content[:3] == b"\xff\xd8\xff"  # JPEG

    def test_upload_rejects_non_pdf(self, client, auth_headers):
        response = _upload(client, auth_headers, b"hello world")
        assert response.status_code == 400

    def test_upload_requires_title(self, client, auth_headers, pdf_bytes):
        response = _upload(client, auth_headers, pdf_bytes, title="   ")
        assert response.status_code == 400

    def test_admin_list_includes_drafts(self, app, client, auth_headers):
        _insert(app, "Published")
        _insert(app, "Draft", is_published=False)
        _insert(app, "Elsewhere", client_slug="globex")

        body = client.get("/api/magazines/admin/all", headers=auth_headers, params={"client": "acme"}).json()
        assert sorted(m["title"] for m in body["magazines"]) == ["Draft", "Published"]

    def test_update_publish_and_title(self, app, client, auth_headers):
        draft = _insert(app, "Draft", is_published=False)

        response = client.patch(
            f"/api/magazines/{draft['id']}",
            headers=auth_headers,
            json={"title": "Summer", "is_published": True},
        )

        assert response.status_code == 200
        magazine = response.json()["magazine"]
        assert magazine["title"] == "Summer"
        assert magazine["is_published"] is True
        assert magazine["published_at"] is not None
        assert client.get(f"/api/magazines/{draft['id']}").status_code == 200

    def test_update_errors(self, app, client, auth_headers):
        existing = _insert(app, "Issue")
        assert client.patch(f"/api/magazines/{existing['id']}", headers=auth_headers, json={}).status_code == 400
        assert client.patch("/api/magazines/missing", headers=auth_headers, json={"title": "x"}).status_code == 404

    def test_reorder(self, app, client, auth_headers):
        first = _insert(app, "First")
        second = _insert(app, "Second")

        response = client.patch(
            "/api/magazines/reorder",
            headers=auth_headers,
            json={"order": [{"id": first["id"], "sort_order": 0}, {"id": second["id"], "sort_order": 1}]},
        )

        assert response.status_code == 200
        titles = [m["title"] for m in client.get("/api/magazines", params={"client": "acme"}).json()["magazines"]]
        assert titles == ["First", "Second"]

    def test_delete_removes_files(self, client, auth_headers, pdf_bytes):
        magazine = _upload(client, auth_headers, pdf_bytes).json()["magazine"]

        response = client.delete(f"/api/magazines/{magazine['id']}", headers=auth_headers)

        assert response.status_code == 200
        assert client.get(f"/api/magazines/{magazine['id']}").status_code == 404
        assert client.get(magazine["pdf_url"]).status_code == 404
        assert client.get(magazine["cover_url"]).status_code == 404
        assert client.delete(f"/api/magazines/{magazine['id']}", headers=auth_headers).status_code == 404


def test_file_route_rejects_traversal(client):
    assert client.get("/files/../../etc/passwd").status_code == 404
    assert client.get("/files/%2e%2e/%2e%2e/secret").status_code == 404
