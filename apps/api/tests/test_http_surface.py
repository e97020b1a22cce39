"""CORS, error envelopes and store availability at the HTTP edge."""

from __future__ import annotations

import unittest

from fastapi.testclient import TestClient

from lifelog.adapters.auth import TokenClaims
from lifelog.core.config import Settings
from lifelog.main import create_app
from lifelog.repositories.base import StoreError
from lifelog.repositories.memory import InMemoryStore

_SECRET = "test-secret-for-the-http-suite"


class _UnreachableStore(InMemoryStore):
    async def connect(self) -> None:
        raise StoreError("connection refused")


class _CrashingStore(InMemoryStore):
    async def select(self, table, **kwargs):
        if table == "incomes":
            raise RuntimeError("kaboom")
        return await super().select(table, **kwargs)


class CorsTests(unittest.TestCase):
    def test_preflight_short_circuits_with_cors_headers(self) -> None:
        client = TestClient(create_app(settings=Settings(jwt_secret=_SECRET), store=InMemoryStore()))

        response = client.options("/api/incomes")

        self.assertEqual(response.status_code, 204)
        self.assertEqual(response.content, b"")
        self.assertEqual(response.headers["access-control-allow-origin"], "*")
        self.assertIn("DELETE", response.headers["access-control-allow-methods"])
        self.assertIn("Authorization", response.headers["access-control-allow-headers"])
        self.assertEqual(response.headers["access-control-max-age"], "86400")

    def test_browser_preflight_on_any_path_gets_an_empty_204(self) -> None:
        client = TestClient(create_app(settings=Settings(jwt_secret=_SECRET), store=InMemoryStore()))
        preflight = {
            "Origin": "https://app.example.com",
            "Access-Control-Request-Method": "PUT",
            "Access-Control-Request-Headers": "Authorization, Content-Type",
        }

        for path in ("/api/incomes/123", "/api/no-such-route", "/"):
            with self.subTest(path=path):
                response = client.options(path, headers=preflight)
                self.assertEqual(response.status_code, 204)
                self.assertEqual(response.content, b"")
                self.assertEqual(response.headers["access-control-allow-origin"], "*")

    def test_regular_responses_carry_the_configured_origin(self) -> None:
        settings = Settings(jwt_secret=_SECRET, cors_allow_origin="https://app.example.com")
        client = TestClient(create_app(settings=settings, store=InMemoryStore()))

        response = client.get("/api/logout")

        self.assertEqual(response.headers["access-control-allow-origin"], "https://app.example.com")


class ErrorEnvelopeTests(unittest.TestCase):
    def setUp(self) -> None:
        self.app = create_app(settings=Settings(jwt_secret=_SECRET), store=InMemoryStore())

    def test_unknown_route_is_not_found(self) -> None:
        response = TestClient(self.app).get("/api/nothing-here")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "NOT_FOUND")

    def test_wrong_method_is_reported(self) -> None:
        response = TestClient(self.app).patch("/api/logout")

        self.assertEqual(response.status_code, 405)
        self.assertEqual(response.json()["code"], "METHOD_NOT_ALLOWED")

    def test_request_validation_names_the_field(self) -> None:
        response = TestClient(self.app).post("/api/login", json={"username": "ada"})

        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["code"], "VALIDATION_ERROR")
        self.assertTrue(body["details"].startswith("body.password"))

    def test_unhandled_errors_become_internal_error(self) -> None:
        @self.app.get("/api/explode")
        async def explode() -> None:
            raise RuntimeError("kaboom")

        response = TestClient(self.app, raise_server_exceptions=False).get("/api/explode")

        self.assertEqual(response.status_code, 500)
        self.assertEqual(
            response.json(),
            {"code": "INTERNAL_ERROR", "message": "Internal server error", "details": "kaboom"},
        )
        self.assertEqual(response.headers["access-control-allow-origin"], "*")

    def test_store_crash_inside_a_record_route_keeps_cors_headers(self) -> None:
        store = _CrashingStore()
        store.tables["users"] = [{"user_id": "user-1", "username": "ada", "email": "ada@example.com"}]
        app = create_app(settings=Settings(jwt_secret=_SECRET), store=store)
        token = app.state.token_service.issue(TokenClaims(subject_id="user-1"))

        response = TestClient(app, raise_server_exceptions=False).get(
            "/api/incomes", headers={"Authorization": f"Bearer {token}"}
        )

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["code"], "INTERNAL_ERROR")
        self.assertEqual(response.headers["access-control-allow-origin"], "*")
        self.assertIn("Authorization", response.headers["access-control-allow-headers"])


class StoreAvailabilityTests(unittest.TestCase):
    def _assert_unavailable(self, client: TestClient) -> None:
        response = client.post("/api/login", json={"username": "ada", "password": "pw"})
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()["code"], "SERVICE_UNAVAILABLE")

    def test_postgres_without_database_url_is_unavailable(self) -> None:
        app = create_app(settings=Settings(jwt_secret=_SECRET, store_backend="postgres", database_url=None))

        self.assertIsNone(app.state.store)
        self.assertEqual(app.state.store_error, "Database URL is not set.")
        self._assert_unavailable(TestClient(app))

    def test_failed_startup_connection_is_unavailable(self) -> None:
        app = create_app(settings=Settings(jwt_secret=_SECRET), store=_UnreachableStore())

        with TestClient(app) as client:
            self._assert_unavailable(client)
            self.assertEqual(app.state.store_error, "connection refused")

    def test_routes_without_the_store_still_answer(self) -> None:
        app = create_app(settings=Settings(jwt_secret=_SECRET), store=InMemoryStore())
        app.state.store = None

        client = TestClient(app)

        self.assertEqual(client.get("/api/logout").status_code, 200)
        self.assertEqual(client.get("/api/incomes").status_code, 503)


if __name__ == "__main__":
    unittest.main()
