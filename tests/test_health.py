# tests/test_health.py
from weekly_brief.auth import create_api_token


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}
    assert r.headers.get("x-request-id")


def test_cors_preflight(client):
    r = client.options(
        "/newsletter/send",
        headers={
            "Origin": "https://admin.example.com",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "authorization, content-type",
        },
    )
    assert r.status_code == 200
    assert r.headers["access-control-allow-origin"] == "*"


def test_admin_routes_need_bearer_token(client):
    r = client.post("/newsletter/preview", json={"edition_id": 1})
    assert r.status_code == 401
    assert r.json() == {"error": "Missing authorization header"}

    r = client.post("/newsletter/preview", json={"edition_id": 1}, headers={"Authorization": "Bearer nope"})
    assert r.status_code == 401


def test_non_admin_is_forbidden(client, session):
    token = create_api_token(session, "writer@example.com", role="editor")
    r = client.post("/newsletter/preview", json={"edition_id": 1}, headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 403
    assert r.json() == {"error": "Admin access required"}


def test_preview(client, admin_headers, make_edition):
    edition = make_edition()
    r = client.post("/newsletter/preview", json={"edition_id": edition.id}, headers=admin_headers)
    assert r.status_code == 200
    html = r.json()["html"]
    # previews must not feed the tracker
    assert "/newsletter/track" not in html
    assert "https://news.example.com/article/hero-2026-10-16" in html
    assert client.post("/newsletter/preview", json={"edition_id": 999}, headers=admin_headers).status_code == 404


def test_bad_body_is_400(client, admin_headers):
    r = client.post("/newsletter/send", json={"edition_id": "abc"}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"].startswith("edition_id")


def test_unknown_route_uses_error_shape(client):
    r = client.get("/nope")
    assert r.status_code == 404
    assert r.json() == {"error": "Not Found"}
