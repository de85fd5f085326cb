"""HTTP tests for the v1 API with an in-memory database and a fake identity provider."""

import unittest
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

from fastapi.testclient import TestClient
from support import add_company, add_user, add_vendor, add_vulnerability, make_session_factory

from vulnradar.api.v1.auth import get_identity_provider
from vulnradar.api.v1.vulnerabilities import get_feed_client
from vulnradar.core.config import settings
from vulnradar.core.database import get_db
from vulnradar.core.security import hash_password
from vulnradar.main import app
from vulnradar.models import Vulnerability
from vulnradar.services.identity import IdentityClaims, IdentityVerificationError

API = settings.API_V1_PREFIX


class FakeIdentityProvider:
    """Maps known tokens to claims; anything else is rejected."""

    def __init__(self) -> None:
        self.claims: dict[str, IdentityClaims] = {}

    def add(self, token: str, uid: str, email: str, verified: bool = True) -> None:
        self.claims[token] = IdentityClaims(uid=uid, email=email, email_verified=verified)

    def verify(self, id_token: str) -> IdentityClaims:
        claims = self.claims.get(id_token)
        if claims is None:
            raise IdentityVerificationError("Invalid or expired token")
        return claims


class ApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.session_factory = make_session_factory()
        self.db = self.session_factory()

        def override_get_db():
            db = self.session_factory()
            try:
                yield db
            finally:
                db.close()

        self.identity = FakeIdentityProvider()
        self.feed_client = MagicMock()
        self.feed_client.search_by_keyword.return_value = []
        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_identity_provider] = lambda: self.identity
        app.dependency_overrides[get_feed_client] = lambda: self.feed_client
        self.client = TestClient(app)

        self.company = add_company(self.db, "Acme")
        self.vendor = add_vendor(self.db, "Microsoft", company=self.company)
        self.admin = add_user(self.db, "admin@acme.io", "admin", self.company, subject_id="uid-admin")
        self.manager = add_user(self.db, "mgr@acme.io", "manager", self.company, subject_id="uid-mgr")
        self.employee = add_user(self.db, "emp@acme.io", "employee", self.company, subject_id="uid-emp")
        self.identity.add("tok-admin", "uid-admin", "admin@acme.io")
        self.identity.add("tok-mgr", "uid-mgr", "mgr@acme.io")
        self.identity.add("tok-emp", "uid-emp", "emp@acme.io")

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        self.db.close()

    @staticmethod
    def _auth(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}


class TestRootAndHealth(ApiTestCase):
    def test_root_exposes_api_base_url(self) -> None:
        response = self.client.get("/")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["api_base_url"].endswith(API))

    def test_health(self) -> None:
        response = self.client.get(f"{API}/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["database"], "connected")
        self.assertEqual(response.json()["status"], "ok")


class TestAuthentication(ApiTestCase):
    def test_missing_token(self) -> None:
        response = self.client.get(f"{API}/auth/me")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.headers["www-authenticate"], "Bearer")

    def test_unknown_token(self) -> None:
        response = self.client.get(f"{API}/auth/me", headers=self._auth("nope"))
        self.assertEqual(response.status_code, 401)

    def test_identity_token(self) -> None:
        response = self.client.get(f"{API}/auth/me", headers=self._auth("tok-emp"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["email"], "emp@acme.io")
        self.assertEqual(response.json()["role"], "employee")

    def test_verified_but_unregistered_subject(self) -> None:
        self.identity.add("tok-ghost", "uid-ghost", "ghost@acme.io")
        response = self.client.get(f"{API}/auth/me", headers=self._auth("tok-ghost"))
        self.assertEqual(response.status_code, 401)

    def test_local_login(self) -> None:
        add_user(self.db, "svc@acme.io", "admin", password_hash=hash_password("correct-horse"))
        response = self.client.post(
            f"{API}/auth/login", json={"email": "SVC@acme.io", "password": "correct-horse"}
        )
        self.assertEqual(response.status_code, 200)
        token = response.json()["access_token"]
        me = self.client.get(f"{API}/auth/me", headers=self._auth(token))
        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.json()["email"], "svc@acme.io")

    def test_local_login_wrong_password(self) -> None:
        add_user(self.db, "svc@acme.io", "admin", password_hash=hash_password("correct-horse"))
        response = self.client.post(
            f"{API}/auth/login", json={"email": "svc@acme.io", "password": "wrong-password"}
        )
        self.assertEqual(response.status_code, 401)

    def test_identity_user_cannot_use_password_login(self) -> None:
        response = self.client.post(
            f"{API}/auth/login", json={"email": "emp@acme.io", "password": "whatever-123"}
        )
        self.assertEqual(response.status_code, 401)


class TestVerifyToken(ApiTestCase):
    def test_creates_employee_with_company(self) -> None:
        self.identity.add("tok-new", "uid-new", "new@acme.io")
        response = self.client.post(
            f"{API}/auth/verify-token",
            json={"id_token": "tok-new", "role": "Manager", "company_id": self.company.id},
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["message"], "User created")
        self.assertEqual(body["id_token"], "tok-new")
        self.assertEqual(body["user"]["role"], "employee")
        company = self.client.get(f"{API}/users/me/company", headers=self._auth("tok-new"))
        self.assertEqual(company.json()["company"]["name"], "Acme")

    def test_requested_admin_role_not_granted(self) -> None:
        self.identity.add("tok-new", "uid-new", "new@acme.io")
        response = self.client.post(
            f"{API}/auth/verify-token",
            json={"id_token": "tok-new", "role": "admin", "company_id": self.company.id},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["user"]["role"], "employee")
        listing = self.client.get(f"{API}/audit-logs", headers=self._auth("tok-new"))
        self.assertEqual(listing.status_code, 403)

    def test_invalid_role_defaults_to_employee(self) -> None:
        self.identity.add("tok-new", "uid-new", "new@acme.io")
        response = self.client.post(
            f"{API}/auth/verify-token", json={"id_token": "tok-new", "role": "superuser"}
        )
        self.assertEqual(response.json()["user"]["role"], "employee")

    def test_existing_user_is_not_recreated(self) -> None:
        response = self.client.post(f"{API}/auth/verify-token", json={"id_token": "tok-emp", "role": "admin"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["message"], "Token verified")
        self.assertEqual(response.json()["user"]["role"], "employee")

    def test_unverified_email_rejected(self) -> None:
        self.identity.add("tok-unverified", "uid-u", "u@acme.io", verified=False)
        response = self.client.post(f"{API}/auth/verify-token", json={"id_token": "tok-unverified"})
        self.assertEqual(response.status_code, 400)

    def test_invalid_token(self) -> None:
        response = self.client.post(f"{API}/auth/verify-token", json={"id_token": "bogus"})
        self.assertEqual(response.status_code, 401)

    def test_unknown_company(self) -> None:
        self.identity.add("tok-new", "uid-new", "new@acme.io")
        response = self.client.post(
            f"{API}/auth/verify-token", json={"id_token": "tok-new", "company_id": 999}
        )
        self.assertEqual(response.status_code, 404)


class TestVulnerabilityEndpoints(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.green = add_vulnerability(self.db, "GREEN", vendor=self.vendor, cve_id="CVE-G")
        self.amber = add_vulnerability(self.db, "AMBER", vendor=self.vendor, cve_id="CVE-A")
        self.red = add_vulnerability(self.db, "RED", vendor=self.vendor, cve_id="CVE-R")

    def _listed(self, token: str, **params: str) -> set[str]:
        response = self.client.get(
            f"{API}/vulnerabilities/company", headers=self._auth(token), params=params
        )
        self.assertEqual(response.status_code, 200)
        return {v["cve_id"] for v in response.json()["vulnerabilities"]}

    def test_company_listing_by_role(self) -> None:
        self.assertEqual(self._listed("tok-emp"), {"CVE-G"})
        self.assertEqual(self._listed("tok-mgr"), {"CVE-G", "CVE-A"})
        self.assertEqual(self._listed("tok-admin"), {"CVE-G", "CVE-A", "CVE-R"})
        self.assertEqual(self._listed("tok-admin", tlp_rating="RED"), {"CVE-R"})
        self.assertEqual(self._listed("tok-mgr", tlp_rating="RED"), {"CVE-G", "CVE-A"})

    def test_single_lookup(self) -> None:
        ok = self.client.get(f"{API}/vulnerabilities/{self.green.id}", headers=self._auth("tok-emp"))
        self.assertEqual(ok.status_code, 200)
        hidden = self.client.get(f"{API}/vulnerabilities/{self.red.id}", headers=self._auth("tok-emp"))
        self.assertEqual(hidden.status_code, 403)
        missing = self.client.get(f"{API}/vulnerabilities/99999", headers=self._auth("tok-admin"))
        self.assertEqual(missing.status_code, 404)

    def test_completed_requires_admin(self) -> None:
        response = self.client.get(f"{API}/vulnerabilities/completed", headers=self._auth("tok-mgr"))
        self.assertEqual(response.status_code, 403)
        response = self.client.get(f"{API}/vulnerabilities/completed", headers=self._auth("tok-admin"))
        self.assertEqual(response.json()["count"], 0)

    def test_ingest_requires_admin(self) -> None:
        response = self.client.post(
            f"{API}/vulnerabilities/ingest",
            headers=self._auth("tok-mgr"),
            json={"cve_id": "CVE-2024-9999", "title": "x"},
        )
        self.assertEqual(response.status_code, 403)

    def test_fresh_nvd_ingest_visibility(self) -> None:
        published = (datetime.now(UTC).date() - timedelta(days=3)).isoformat()
        response = self.client.post(
            f"{API}/vulnerabilities/ingest",
            headers=self._auth("tok-admin"),
            json={
                "cve_id": "CVE-2024-0001",
                "title": "CVE-2024-0001: Remote code execution",
                "description": "Remote code execution",
                "source": "NVD",
                "published_date": published,
                "severity_score": 9.1,
                "severity_level": "CRITICAL",
                "vendor_id": self.vendor.id,
            },
        )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["inserted"])
        row = self.db.get(Vulnerability, response.json()["vulnerability_id"])
        self.assertIn(row.tlp_rating, ("AMBER", "RED"))

        self.assertNotIn("CVE-2024-0001", self._listed("tok-emp"))
        manager_sees = "CVE-2024-0001" in self._listed("tok-mgr")
        self.assertEqual(manager_sees, row.tlp_rating == "AMBER")

    def test_download_all(self) -> None:
        response = self.client.post(f"{API}/vulnerabilities/download-all", headers=self._auth("tok-admin"))
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["total_downloaded"], 0)
        self.assertEqual(body["vendor_results"][0]["vendor"], "Microsoft")
        self.assertEqual(body["vendor_results"][0]["status"], "no_results")
        self.feed_client.search_by_keyword.assert_called_once_with("Microsoft")

    def test_download_all_requires_admin(self) -> None:
        response = self.client.post(f"{API}/vulnerabilities/download-all", headers=self._auth("tok-emp"))
        self.assertEqual(response.status_code, 403)


class TestTaskEndpoints(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.green = add_vulnerability(self.db, "GREEN", "High", vendor=self.vendor, cve_id="CVE-G")
        self.red = add_vulnerability(self.db, "RED", "Critical", vendor=self.vendor, cve_id="CVE-R")

    def _put(self, task_id: int, token: str, **body: str):
        return self.client.put(f"{API}/tasks/{task_id}", headers=self._auth(token), json=body)

    def test_assign_and_lifecycle(self) -> None:
        created = self.client.post(
            f"{API}/tasks",
            headers=self._auth("tok-admin"),
            json={"vulnerability_id": self.green.id, "assigned_to_user_id": self.employee.id},
        )
        self.assertEqual(created.status_code, 201)
        task = created.json()["task"]
        self.assertEqual(task["status"], "pending")
        self.assertEqual(task["priority"], "High")

        response = self._put(task["id"], "tok-emp", status="in_progress")
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.json()["task"]["resolved_at"])

        response = self._put(task["id"], "tok-emp", status="resolved", notes="Patched")
        self.assertEqual(response.status_code, 200)
        self.assertIsNotNone(response.json()["task"]["resolved_at"])
        self.assertEqual(response.json()["task"]["notes"][0]["author"], "emp@acme.io")

        self.assertEqual(self._put(task["id"], "tok-emp", status="closed").status_code, 403)

        response = self._put(task["id"], "tok-admin", status="closed")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["task"]["status"], "closed")
        self.assertIsNotNone(response.json()["task"]["resolved_at"])

        self.assertEqual(self._put(task["id"], "tok-admin", status="pending").status_code, 409)

    def test_assign_red_rejected(self) -> None:
        response = self.client.post(
            f"{API}/tasks",
            headers=self._auth("tok-admin"),
            json={"vulnerability_id": self.red.id, "assigned_to_user_id": self.manager.id},
        )
        self.assertEqual(response.status_code, 403)

    def test_assign_by_non_admin(self) -> None:
        response = self.client.post(
            f"{API}/tasks",
            headers=self._auth("tok-mgr"),
            json={"vulnerability_id": self.green.id, "assigned_to_user_id": self.employee.id},
        )
        self.assertEqual(response.status_code, 403)

    def test_claim_conflict(self) -> None:
        first = self.client.post(
            f"{API}/tasks/claim", headers=self._auth("tok-emp"), json={"vulnerability_id": self.green.id}
        )
        self.assertEqual(first.status_code, 201)
        second = self.client.post(
            f"{API}/tasks/claim", headers=self._auth("tok-mgr"), json={"vulnerability_id": self.green.id}
        )
        self.assertEqual(second.status_code, 409)

    def test_task_listing_and_audit(self) -> None:
        self.client.post(
            f"{API}/tasks/claim", headers=self._auth("tok-emp"), json={"vulnerability_id": self.green.id}
        )
        mine = self.client.get(f"{API}/tasks", headers=self._auth("tok-emp")).json()
        self.assertEqual(mine["count"], 1)
        self.assertEqual(self.client.get(f"{API}/tasks", headers=self._auth("tok-mgr")).json()["count"], 0)
        self.assertEqual(self.client.get(f"{API}/tasks", headers=self._auth("tok-admin")).json()["count"], 1)

        logs = self.client.get(f"{API}/audit-logs", headers=self._auth("tok-admin"))
        self.assertEqual(logs.status_code, 200)
        self.assertIn("task_claimed", [e["action_type"] for e in logs.json()["audit_logs"]])
        self.assertEqual(self.client.get(f"{API}/audit-logs", headers=self._auth("tok-emp")).status_code, 403)

    def test_missing_task(self) -> None:
        self.assertEqual(self._put(99999, "tok-admin", status="closed").status_code, 404)


class TestCompanyAndUserEndpoints(ApiTestCase):
    def test_list_companies_public(self) -> None:
        response = self.client.get(f"{API}/companies")
        self.assertEqual(response.json()["companies"][0]["name"], "Acme")

    def test_create_returns_existing(self) -> None:
        response = self.client.post(
            f"{API}/companies", headers=self._auth("tok-emp"), json={"name": "ACME"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["company"]["id"], self.company.id)
        self.assertEqual(response.json()["message"], "Company already exists")

    def test_eligible_company_users(self) -> None:
        response = self.client.get(
            f"{API}/companies/{self.company.id}/users",
            headers=self._auth("tok-admin"),
            params={"tlp_rating": "AMBER"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual([u["email"] for u in response.json()["users"]], ["mgr@acme.io"])

    def test_company_users_requires_admin(self) -> None:
        response = self.client.get(f"{API}/companies/{self.company.id}/users", headers=self._auth("tok-mgr"))
        self.assertEqual(response.status_code, 403)

    def test_vendor_selection(self) -> None:
        cisco = add_vendor(self.db, "Cisco")
        response = self.client.put(
            f"{API}/users/me/vendors",
            headers=self._auth("tok-mgr"),
            json={"vendor_ids": [cisco.id], "use_case_descriptions": {str(cisco.id): "Network gear"}},
        )
        self.assertEqual(response.status_code, 200)
        vendors = self.client.get(f"{API}/users/me/vendors", headers=self._auth("tok-emp")).json()["vendors"]
        self.assertEqual([(v["vendor_name"], v["use_case_description"]) for v in vendors], [("Cisco", "Network gear")])

    def test_vendor_catalogue(self) -> None:
        response = self.client.get(f"{API}/vendors")
        self.assertEqual(response.json()["count"], 1)

    def test_update_me_links_company(self) -> None:
        globex = add_company(self.db, "Globex")
        response = self.client.post(
            f"{API}/users/me", headers=self._auth("tok-emp"), json={"company_id": globex.id}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["company_name"], "Globex")

    def test_admin_user_list(self) -> None:
        response = self.client.get(f"{API}/users", headers=self._auth("tok-admin"))
        self.assertEqual(len(response.json()["users"]), 3)


class TestRoleChanges(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        add_vulnerability(self.db, "GREEN", vendor=self.vendor, cve_id="CVE-G")
        add_vulnerability(self.db, "RED", vendor=self.vendor, cve_id="CVE-R")

    def _role_of(self, token: str) -> str:
        return self.client.get(f"{API}/auth/me", headers=self._auth(token)).json()["role"]

    def test_employee_cannot_promote_self(self) -> None:
        response = self.client.post(f"{API}/users/me", headers=self._auth("tok-emp"), json={"role": "admin"})
        self.assertEqual(response.status_code, 403)
        self.assertEqual(self._role_of("tok-emp"), "employee")
        listing = self.client.get(f"{API}/vulnerabilities/company", headers=self._auth("tok-emp"))
        self.assertEqual([v["cve_id"] for v in listing.json()["vulnerabilities"]], ["CVE-G"])

    def test_manager_cannot_promote_self(self) -> None:
        response = self.client.post(f"{API}/users/me", headers=self._auth("tok-mgr"), json={"role": "admin"})
        self.assertEqual(response.status_code, 403)
        self.assertEqual(self._role_of("tok-mgr"), "manager")

    def test_restating_own_role_is_allowed(self) -> None:
        response = self.client.post(f"{API}/users/me", headers=self._auth("tok-emp"), json={"role": "employee"})
        self.assertEqual(response.status_code, 200)

    def test_admin_promotes_member(self) -> None:
        response = self.client.put(
            f"{API}/users/{self.employee.id}/role", headers=self._auth("tok-admin"), json={"role": "manager"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["role"], "manager")
        self.assertEqual(self._role_of("tok-emp"), "manager")

    def test_role_change_requires_admin(self) -> None:
        response = self.client.put(
            f"{API}/users/{self.employee.id}/role", headers=self._auth("tok-mgr"), json={"role": "manager"}
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(self._role_of("tok-emp"), "employee")

    def test_role_change_outside_company(self) -> None:
        outsider = add_user(self.db, "out@globex.io", "employee", add_company(self.db, "Globex"))
        response = self.client.put(
            f"{API}/users/{outsider.id}/role", headers=self._auth("tok-admin"), json={"role": "manager"}
        )
        self.assertEqual(response.status_code, 404)


class TestIngestDuplicatePointer(ApiTestCase):
    def _ingest(self, **extra: object):
        body = {"cve_id": "CVE-2024-0001", "title": "CVE-2024-0001: Overflow", **extra}
        return self.client.post(f"{API}/vulnerabilities/ingest", headers=self._auth("tok-admin"), json=body)

    def test_unknown_duplicate_of_id_is_not_found(self) -> None:
        self.assertTrue(self._ingest().json()["inserted"])
        response = self._ingest(duplicate_of_id=999)
        self.assertEqual(response.status_code, 404)
        stored = self.db.query(Vulnerability).filter(Vulnerability.cve_id == "CVE-2024-0001").one()
        self.assertFalse(stored.is_duplicate)
        self.assertIsNone(stored.duplicate_of_id)
