"""
Tests for view resolution and the one-shot notices
"""

import pytest

from alumni_portal.services.auth_gate import DELETION_APPROVED_NOTICE
from conftest import REGISTRATION_FORM, TEST_PASSWORD


def resolve(client, headers, path="/"):
    response = client.get(f"/api/v1/view?path={path}", headers=headers)
    assert response.status_code == 200
    return response.json["data"]


class TestViewResolution:
    """GET /api/v1/view"""

    def test_anonymous_gets_auth_view(self, client, tab_headers):
        data = resolve(client, tab_headers)

        assert data["view"] == "auth"
        assert data["gate"]["state"] == "anonymous"
        assert data["notices"] == {
            "blocked": None,
            "just_registered": False,
            "show_registration_greeting": True,
        }

    def test_signed_in_gets_dashboard(self, signed_in_client, tab_headers):
        data = resolve(signed_in_client, tab_headers)

        assert data["view"] == "dashboard"
        assert data["redirect_to"] is None
        assert data["notices"] == {}

    def test_fixed_path(self, signed_in_client, tab_headers):
        assert resolve(signed_in_client, tab_headers, "/request-deletion")["view"] == (
            "request_deletion"
        )

    def test_blocked_role_is_sent_to_not_alumni(
        self, client, tab_headers, session_store, profile_store
    ):
        user = session_store.add_account(
            "visitor@example.com", metadata={"first_name": "Vic"}
        )
        profile_store.seed("profiles", id=user.id, first_name="Vic", role="visitor")
        client.post(
            "/api/v1/auth/login",
            json={"email": "visitor@example.com", "password": TEST_PASSWORD},
            headers=tab_headers,
        )

        data = resolve(client, tab_headers)
        assert data["view"] == "not_alumni"
        assert data["redirect_to"] == "/not-alumni"

        data = resolve(client, tab_headers, "/not-alumni")
        assert data["redirect_to"] is None


class TestNotices:
    """One-shot banners on the login screen"""

    def test_registration_greeting_once_per_tab(self, client, tab_headers):
        client.post("/api/v1/view/registration-greeting", headers=tab_headers)

        assert not resolve(client, tab_headers)["notices"]["show_registration_greeting"]
        assert resolve(client, {"X-Tab-Id": "tab-2"})["notices"][
            "show_registration_greeting"
        ]

    def test_just_registered_banner(self, client, tab_headers):
        client.post("/api/v1/auth/register", json=REGISTRATION_FORM, headers=tab_headers)

        assert resolve(client, tab_headers)["notices"]["just_registered"] is True
        assert resolve(client, tab_headers)["notices"]["just_registered"] is False

    def test_approved_deletion_notice(
        self, client, tab_headers, alumni_account, profile_store, session_store
    ):
        profile_store.seed(
            "account_deletion_requests", user_id=alumni_account.id, status="approved"
        )

        response = client.post(
            "/api/v1/auth/login",
            json={"email": "alumnus@example.com", "password": TEST_PASSWORD},
            headers=tab_headers,
        )
        assert response.json["data"]["state"] == "anonymous"
        assert session_store.current is None

        assert resolve(client, tab_headers)["notices"]["blocked"] == (
            DELETION_APPROVED_NOTICE
        )
        assert resolve(client, tab_headers)["notices"]["blocked"] is None


class TestReload:
    """Later requests and page loads of a signed-in tab"""

    def test_approval_between_requests_signs_out(
        self, signed_in_client, tab_headers, alumni_account, profile_store, session_store
    ):
        assert resolve(signed_in_client, tab_headers)["view"] == "dashboard"
        profile_store.seed(
            "account_deletion_requests", user_id=alumni_account.id, status="approved"
        )

        data = resolve(signed_in_client, tab_headers)

        assert data["gate"]["state"] == "anonymous"
        assert data["view"] == "auth"
        assert data["notices"]["blocked"] == DELETION_APPROVED_NOTICE
        assert session_store.current is None
        assert resolve(signed_in_client, tab_headers)["gate"]["state"] == "anonymous"

    def test_page_load_reconciles_again(
        self, signed_in_client, tab_headers, alumni_account, profile_store
    ):
        row = next(
            r for r in profile_store.rows("profiles") if r["id"] == alumni_account.id
        )
        row["role"] = "visitor"

        assert resolve(signed_in_client, tab_headers)["view"] == "dashboard"
        data = resolve(signed_in_client, tab_headers, "/&mount=1")
        assert data["view"] == "not_alumni"
        assert data["gate"]["state"] == "blocked"

    def test_session_route_accepts_page_load(
        self, signed_in_client, tab_headers, alumni_account
    ):
        response = signed_in_client.get(
            "/api/v1/auth/session?mount=1", headers=tab_headers
        )

        assert response.status_code == 200
        assert response.json["data"]["state"] == "authenticated"
        assert response.json["data"]["subject_id"] == alumni_account.id


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
