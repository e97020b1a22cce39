"""Registration, login, password changes and user administration."""

from __future__ import annotations

import unittest

from fastapi.testclient import TestClient

from lifelog.adapters.auth import TokenClaims
from lifelog.core.config import Settings
from lifelog.main import create_app
from lifelog.repositories.memory import InMemoryStore

_SECRET = "test-secret-for-the-accounts-suite"


class _AccountsCase(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryStore()
        self.app = create_app(settings=Settings(jwt_secret=_SECRET), store=self.store)
        self.client = TestClient(self.app)

    def _register(self, username: str, email: str | None = None, password: str = "s3cret"):
        return self.client.post(
            "/api/register",
            json={"username": username, "email": email or f"{username}@example.com", "password": password},
        )

    def _login(self, username: str, password: str = "s3cret"):
        return self.client.post("/api/login", json={"username": username, "password": password})

    def _headers(self, username: str, password: str = "s3cret") -> dict[str, str]:
        response = self._login(username, password)
        self.assertEqual(response.status_code, 200, response.text)
        return {"Authorization": f"Bearer {response.json()['token']}"}

    def _user_row(self, username: str) -> dict:
        return next(row for row in self.store.tables["users"] if row["username"] == username)


class AccountFlowTests(_AccountsCase):
    def test_register_login_and_use_the_api(self) -> None:
        registered = self._register("ada")
        self.assertEqual(registered.status_code, 201)
        user = registered.json()["user"]
        self.assertEqual(user["username"], "ada")
        self.assertFalse(user["isAdmin"])
        self.assertNotIn("hashedPassword", user)
        self.assertNotIn("salt", user)

        login = self._login("ada")
        self.assertEqual(login.status_code, 200)
        self.assertEqual(login.json()["userId"], user["userId"])
        self.assertEqual(login.json()["message"], "Login successful")
        headers = {"Authorization": f"Bearer {login.json()['token']}"}

        self.assertEqual(self.client.get("/api/dashboard", headers=headers).json()["userId"], user["userId"])
        self.assertEqual(self.client.get("/api/incomes", headers=headers).json()["totalCount"], 0)
        created = self.client.post(
            "/api/incomes",
            json={"description": "Gift", "amount": 20, "category": "misc", "subcategory": "family",
                  "date": "2024-04-01T00:00:00Z"},
            headers=headers,
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(self.client.get("/api/incomes", headers=headers).json()["totalCount"], 1)

    def test_alice_scenario_over_list_endpoint(self) -> None:
        self.assertEqual(self._register("alice", "alice@x.com", "pw1").status_code, 201)
        headers = self._headers("alice", "pw1")

        empty = self.client.get("/api/expenses", headers=headers).json()
        self.client.post(
            "/api/expenses",
            json={"description": "Tea", "amount": 3, "category": "food", "subcategory": "drinks",
                  "date": "2024-05-05T08:00:00Z"},
            headers=headers,
        )
        one = self.client.get("/api/expenses", headers=headers).json()

        self.assertEqual((empty["items"], empty["totalCount"], empty["totalPages"]), ([], 0, 1))
        self.assertEqual((one["totalCount"], one["totalPages"]), (1, 1))
        self.assertEqual(one["items"][0]["description"], "Tea")
        for token in ("garbage", self.app.state.token_service.issue(TokenClaims(subject_id="x"), ttl_seconds=0)):
            with self.subTest(token=token[:10]):
                response = self.client.get("/api/expenses", headers={"Authorization": f"Bearer {token}"})
                self.assertEqual(response.status_code, 401)

    def test_password_is_stored_hashed(self) -> None:
        self._register("ada", password="plain-text")

        row = self._user_row("ada")

        self.assertNotEqual(row["hashed_password"], "plain-text")
        self.assertTrue(row["salt"])

    def test_login_accepts_email_in_any_case(self) -> None:
        self._register("ada")

        self.assertEqual(self._login("ADA@example.com").status_code, 200)

    def test_login_failures_share_one_error(self) -> None:
        self._register("ada")

        for username, password in (("ada", "wrong"), ("nobody", "s3cret")):
            with self.subTest(username=username):
                response = self._login(username, password)
                self.assertEqual(response.status_code, 401)
                self.assertEqual(response.json()["code"], "INVALID_CREDENTIALS")

    def test_duplicate_registration_is_a_conflict(self) -> None:
        self._register("ada", "ada@example.com")
        cases = (
            ("ada", "other@example.com", "USERNAME_TAKEN"),
            ("bob", "ADA@example.com", "EMAIL_TAKEN"),
            ("ada", "ada@example.com", "USERNAME_AND_EMAIL_TAKEN"),
        )
        for username, email, code in cases:
            with self.subTest(code=code):
                response = self._register(username, email)
                self.assertEqual(response.status_code, 409)
                self.assertEqual(response.json()["code"], code)
        self.assertEqual(len(self.store.tables["users"]), 1)

    def test_registration_validates_email(self) -> None:
        response = self._register("ada", "not-an-email")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "VALIDATION_ERROR")

    def test_change_password(self) -> None:
        self._register("ada")
        headers = self._headers("ada")

        mismatch = self.client.post(
            "/api/change-password",
            json={"oldPassword": "s3cret", "newPassword": "n3w", "confirmPassword": "other"},
            headers=headers,
        )
        wrong_old = self.client.post(
            "/api/change-password",
            json={"oldPassword": "guess", "newPassword": "n3w", "confirmPassword": "n3w"},
            headers=headers,
        )
        changed = self.client.post(
            "/api/change-password",
            json={"oldPassword": "s3cret", "newPassword": "n3w", "confirmPassword": "n3w"},
            headers=headers,
        )

        self.assertEqual(mismatch.json()["code"], "PASSWORD_MISMATCH")
        self.assertEqual(wrong_old.status_code, 400)
        self.assertEqual(wrong_old.json()["code"], "WRONG_PASSWORD")
        self.assertEqual(changed.status_code, 200)
        self.assertEqual(self._login("ada", "s3cret").status_code, 401)
        self.assertEqual(self._login("ada", "n3w").status_code, 200)

    def test_logout_is_stateless(self) -> None:
        response = self.client.get("/api/logout")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"message": "Logged out"})


class AdminUserTests(_AccountsCase):
    def setUp(self) -> None:
        super().setUp()
        self._register("root")
        self._register("ada")
        self._user_row("root")["is_admin"] = True
        self.admin = self._headers("root")
        self.ada_id = self._user_row("ada")["user_id"]

    def test_non_admin_is_forbidden(self) -> None:
        response = self.client.get("/api/admin/users", headers=self._headers("ada"))

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["code"], "NOT_ADMIN")

    def test_list_and_get_users(self) -> None:
        listed = self.client.get("/api/admin/users", headers=self.admin)
        single = self.client.get(f"/api/admin/users/{self.ada_id}", headers=self.admin)
        missing = self.client.get("/api/admin/users/nope", headers=self.admin)

        self.assertEqual(sorted(user["username"] for user in listed.json()), ["ada", "root"])
        self.assertEqual(single.json()["email"], "ada@example.com")
        self.assertEqual(missing.status_code, 404)

    def test_update_user(self) -> None:
        renamed = self.client.put(f"/api/admin/users/{self.ada_id}", json={"username": "ada2"}, headers=self.admin)
        unchanged = self.client.put(f"/api/admin/users/{self.ada_id}", json={"username": "ada2"}, headers=self.admin)
        clash = self.client.put(f"/api/admin/users/{self.ada_id}", json={"username": "root"}, headers=self.admin)
        promoted = self.client.put(f"/api/admin/users/{self.ada_id}", json={"isAdmin": True}, headers=self.admin)

        self.assertEqual(renamed.json()["message"], "User updated")
        self.assertEqual(renamed.json()["user"]["username"], "ada2")
        self.assertEqual(unchanged.json()["message"], "Nothing to update")
        self.assertEqual(clash.status_code, 409)
        self.assertEqual(clash.json()["code"], "USERNAME_TAKEN")
        self.assertTrue(promoted.json()["user"]["isAdmin"])

    def test_reset_password_uses_the_configured_default(self) -> None:
        response = self.client.post(f"/api/admin/users/reset-password/{self.ada_id}", headers=self.admin)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(self._login("ada", "123456").status_code, 200)
        self.assertEqual(self._login("ada", "s3cret").status_code, 401)

    def test_malformed_user_ids_are_not_found(self) -> None:
        calls = (
            ("GET", "/api/admin/users/123", None),
            ("PUT", "/api/admin/users/not-a-uuid", {"username": "ada3"}),
            ("DELETE", "/api/admin/users/not-a-uuid", None),
            ("POST", "/api/admin/users/reset-password/not-a-uuid", None),
        )
        for method, path, body in calls:
            with self.subTest(method=method, path=path):
                response = self.client.request(method, path, json=body, headers=self.admin)
                self.assertEqual(response.status_code, 404)
                self.assertEqual(response.json()["code"], "RESOURCE_NOT_FOUND")
        self.assertEqual(self._user_row("ada")["username"], "ada")

    def test_delete_user_revokes_their_tokens(self) -> None:
        ada_headers = self._headers("ada")

        deleted = self.client.delete(f"/api/admin/users/{self.ada_id}", headers=self.admin)
        again = self.client.delete(f"/api/admin/users/{self.ada_id}", headers=self.admin)
        after = self.client.get("/api/dashboard", headers=ada_headers)

        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(again.status_code, 404)
        self.assertEqual(after.status_code, 401)
        self.assertEqual(after.json()["code"], "SUBJECT_NOT_FOUND")


if __name__ == "__main__":
    unittest.main()
