"""End-to-end tests of the panel API over a temporary database."""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from clinic_admin import AppConfig, configure_fastapi_app, load_config_from_env
from clinic_admin.common import StoreError
from clinic_admin.identity import SecurityManager
from clinic_admin.panel import PatientQueries
from clinic_admin.profiles import ProfileQueries

SECRET_KEY = "f" * 64
PASSWORD = "secret1"  # noqa: S105


def _make_config(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    default_role: str,
) -> AppConfig:
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "data" / "clinic.db"))
    monkeypatch.setenv("SESSION_FILE", str(tmp_path / "session"))
    monkeypatch.setenv("SECRET_KEY", SECRET_KEY)
    monkeypatch.setenv("DEFAULT_ROLE", default_role)
    monkeypatch.delenv("ROOT_PATH", raising=False)
    return load_config_from_env(None)


@pytest.fixture
def app_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AppConfig:
    """Create a configuration whose self-registered staff are assistants."""
    return _make_config(tmp_path, monkeypatch, "assistant")


@pytest.fixture
def admin_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AppConfig:
    """Create a configuration whose self-registered staff are admins."""
    return _make_config(tmp_path, monkeypatch, "admin")


@contextmanager
def running_panel(config: AppConfig) -> Iterator[TestClient]:
    """Start the panel and wait for its first session resolution."""
    app = configure_fastapi_app(config)
    with TestClient(app, follow_redirects=False) as client:
        client.portal.call(app.state.synchronizer.wait_until_ready)
        yield client


@pytest.fixture
def client(app_config: AppConfig) -> Iterator[TestClient]:
    with running_panel(app_config) as test_client:
        yield test_client


def register(client: TestClient, name: str, email: str) -> dict:
    response = client.post(
        "/auth/register",
        data={"name": name, "email": email, "password": PASSWORD},
    )
    assert response.status_code == 201, response.text  # noqa: PLR2004
    return response.json()


def login(client: TestClient, email: str, **extra: str) -> dict:
    """Sign in and send the session token with every later request."""
    response = client.post(
        "/auth/login",
        data={"email": email, "password": PASSWORD, **extra},
    )
    assert response.status_code == 200, response.text  # noqa: PLR2004
    body = response.json()
    client.headers["Authorization"] = f"Bearer {body['access_token']}"
    return body


class TestAuthRoutes:
    """Test suite for the /auth routes."""

    def test_fresh_start_is_anonymous(self, client: TestClient) -> None:
        response = client.get("/auth/state")

        assert response.json() == {"loading": False, "user": None}

    def test_register_then_login(self, client: TestClient) -> None:
        registered = register(client, "Ana", "Ana@Clinic.com")
        assert registered["role"] == "assistant"
        assert registered["email"] == "ana@clinic.com"

        # registering does not sign anyone in
        assert client.get("/auth/state").json()["user"] is None

        body = login(client, "ana@clinic.com")

        assert body["token_type"] == "bearer"
        assert body["redirect_to"] == "/panel/dashboard"
        assert body["user"] == {
            "identity_id": registered["identity_id"],
            "email": "ana@clinic.com",
            "name": "Ana",
            "role": "assistant",
        }
        assert client.get("/auth/state").json()["user"]["name"] == "Ana"

    def test_login_follows_local_next(self, client: TestClient) -> None:
        register(client, "Ana", "ana@clinic.com")

        body = login(client, "ana@clinic.com", next="/panel/patients")

        assert body["redirect_to"] == "/panel/patients"

    def test_login_ignores_external_next(self, client: TestClient) -> None:
        register(client, "Ana", "ana@clinic.com")

        body = login(client, "ana@clinic.com", next="//evil.example/")

        assert body["redirect_to"] == "/panel/dashboard"

    def test_login_with_wrong_password(self, client: TestClient) -> None:
        register(client, "Ana", "ana@clinic.com")

        response = client.post(
            "/auth/login",
            data={"email": "ana@clinic.com", "password": "wrong-password"},
        )

        assert response.status_code == 401  # noqa: PLR2004
        assert "check your credentials" in response.json()["detail"]

    def test_logout(self, client: TestClient) -> None:
        register(client, "Ana", "ana@clinic.com")
        login(client, "ana@clinic.com")

        response = client.post("/auth/logout")

        assert response.json() == {"redirect_to": "/auth/login"}
        assert client.get("/auth/state").json() == {"loading": False, "user": None}

    def test_register_rejects_short_password(self, client: TestClient) -> None:
        response = client.post(
            "/auth/register",
            data={"name": "Ana", "email": "ana@clinic.com", "password": "123"},
        )

        assert response.status_code == 400  # noqa: PLR2004
        assert response.json()["detail"] == (
            "Password should be at least 6 characters long."
        )

    def test_register_rejects_duplicate_email(self, client: TestClient) -> None:
        register(client, "Ana", "ana@clinic.com")

        response = client.post(
            "/auth/register",
            data={"name": "Ana", "email": "ANA@clinic.com", "password": PASSWORD},
        )

        assert response.status_code == 400  # noqa: PLR2004
        assert "already exists" in response.json()["detail"]

    def test_register_while_signed_in(self, client: TestClient) -> None:
        register(client, "Ana", "ana@clinic.com")
        login(client, "ana@clinic.com")

        response = client.post(
            "/auth/register",
            data={"name": "Ben", "email": "ben@clinic.com", "password": PASSWORD},
        )

        assert response.status_code == 409  # noqa: PLR2004

    def test_partial_registration_cannot_sign_in(
        self,
        client: TestClient,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test that an account without a profile is reported and locked out."""

        async def failing_insert(*_args: object, **_kwargs: object) -> None:
            msg = "disk I/O error"
            raise StoreError(msg)

        with monkeypatch.context() as patch:
            patch.setattr(ProfileQueries, "insert", failing_insert)
            response = client.post(
                "/auth/register",
                data={"name": "Ben", "email": "ben@clinic.com", "password": PASSWORD},
            )

        assert response.status_code == 500  # noqa: PLR2004
        detail = response.json()["detail"]
        assert detail["code"] == "partial_registration"
        assert detail["identity_id"]

        response = client.post(
            "/auth/login",
            data={"email": "ben@clinic.com", "password": PASSWORD},
        )

        assert response.status_code == 401  # noqa: PLR2004
        assert "no usable staff profile" in response.json()["detail"]
        assert client.get("/auth/state").json()["user"] is None

    def test_session_survives_restart(self, app_config: AppConfig) -> None:
        with running_panel(app_config) as first:
            register(first, "Ana", "ana@clinic.com")
            token = login(first, "ana@clinic.com")["access_token"]

        with running_panel(app_config) as second:
            state = second.get(
                "/auth/state",
                headers={"Authorization": f"Bearer {token}"},
            ).json()

        assert state["loading"] is False
        assert state["user"]["email"] == "ana@clinic.com"


class TestPanelRoutes:
    """Test suite for the gated /panel routes."""

    def test_anonymous_is_redirected_to_login(self, client: TestClient) -> None:
        response = client.get("/panel/patients")

        assert response.status_code == 307  # noqa: PLR2004
        assert response.headers["location"] == (
            "/auth/login?next=%2Fpanel%2Fpatients"
        )

    def test_root_redirects_to_dashboard(self, client: TestClient) -> None:
        response = client.get("/")

        assert response.status_code == 307  # noqa: PLR2004
        assert response.headers["location"] == "/panel/dashboard"

    def test_dashboard_and_navigation_for_assistant(self, client: TestClient) -> None:
        register(client, "Ana", "ana@clinic.com")
        login(client, "ana@clinic.com")

        dashboard = client.get("/panel/dashboard").json()
        navigation = client.get("/panel/navigation").json()

        assert dashboard["staff_count"] == 1
        assert dashboard["patient_count"] == 0
        assert dashboard["user"]["role"] == "assistant"
        assert [entry["label"] for entry in navigation] == [
            "Dashboard",
            "Patients",
            "Settings",
        ]

    def test_staff_page_denied_for_assistant(self, client: TestClient) -> None:
        register(client, "Ana", "ana@clinic.com")
        login(client, "ana@clinic.com")

        response = client.get("/panel/staff")

        assert response.status_code == 403  # noqa: PLR2004
        assert response.json()["detail"] == (
            "You must be an administrator to manage staff."
        )

    def test_settings(self, client: TestClient) -> None:
        register(client, "Ana", "ana@clinic.com")
        login(client, "ana@clinic.com")

        assert client.get("/panel/settings").status_code == 200  # noqa: PLR2004

    def test_patient_records(self, client: TestClient) -> None:
        register(client, "Ana", "ana@clinic.com")
        login(client, "ana@clinic.com")

        created = client.post(
            "/panel/patients",
            data={"first_name": " Jane ", "last_name": "Doe", "phone": "555-0100"},
        )
        assert created.status_code == 201, created.text  # noqa: PLR2004
        patient = created.json()
        assert patient["first_name"] == "Jane"
        assert patient["email"] is None

        edited = client.put(
            f"/panel/patients/{patient['patient_id']}",
            data={"first_name": "Jane", "last_name": "Smith", "email": ""},
        )
        assert edited.status_code == 200  # noqa: PLR2004
        assert edited.json()["last_name"] == "Smith"
        assert edited.json()["phone"] is None

        listed = client.get("/panel/patients").json()
        assert [row["last_name"] for row in listed] == ["Smith"]

        deleted = client.delete(f"/panel/patients/{patient['patient_id']}")
        assert deleted.json() == {"message": "Patient deleted"}
        assert client.get("/panel/patients").json() == []

    def test_missing_patient(self, client: TestClient) -> None:
        register(client, "Ana", "ana@clinic.com")
        login(client, "ana@clinic.com")

        edited = client.put(
            "/panel/patients/404",
            data={"first_name": "Jane", "last_name": "Doe"},
        )
        deleted = client.delete("/panel/patients/404")

        assert edited.status_code == 404  # noqa: PLR2004
        assert deleted.status_code == 404  # noqa: PLR2004

    def test_patient_without_name_is_rejected(self, client: TestClient) -> None:
        register(client, "Ana", "ana@clinic.com")
        login(client, "ana@clinic.com")

        response = client.post(
            "/panel/patients",
            data={"first_name": "  ", "last_name": "Doe"},
        )

        assert response.status_code == 422  # noqa: PLR2004

    def test_store_fault_is_service_unavailable(
        self,
        client: TestClient,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        register(client, "Ana", "ana@clinic.com")
        login(client, "ana@clinic.com")

        async def failing_list(*_args: object) -> None:
            msg = "database is locked"
            raise StoreError(msg)

        monkeypatch.setattr(PatientQueries, "list_patients", failing_list)

        response = client.get("/panel/patients")

        assert response.status_code == 503  # noqa: PLR2004


class TestStaffManagement:
    """Test suite for administrators editing roles."""

    def test_admin_edits_role(self, admin_config: AppConfig) -> None:
        with running_panel(admin_config) as client:
            register(client, "Root", "root@clinic.com")
            ana = register(client, "Ana", "ana@clinic.com")
            login(client, "root@clinic.com")

            staff = client.get("/panel/staff")
            assert staff.status_code == 200  # noqa: PLR2004
            assert [member["name"] for member in staff.json()] == ["Ana", "Root"]

            response = client.patch(
                f"/panel/staff/{ana['identity_id']}/role",
                data={"role": "receptionist"},
            )
            assert response.json() == {"message": "Role updated to receptionist"}

            client.post("/auth/logout")
            body = login(client, "ana@clinic.com")

        assert body["user"]["role"] == "receptionist"

    def test_admin_cannot_change_own_role(self, admin_config: AppConfig) -> None:
        with running_panel(admin_config) as client:
            root = register(client, "Root", "root@clinic.com")
            login(client, "root@clinic.com")

            response = client.patch(
                f"/panel/staff/{root['identity_id']}/role",
                data={"role": "assistant"},
            )

        assert response.status_code == 400  # noqa: PLR2004

    def test_role_edit_rejects_unknown_role_and_member(
        self,
        admin_config: AppConfig,
    ) -> None:
        with running_panel(admin_config) as client:
            register(client, "Root", "root@clinic.com")
            ana = register(client, "Ana", "ana@clinic.com")
            login(client, "root@clinic.com")

            unknown_role = client.patch(
                f"/panel/staff/{ana['identity_id']}/role",
                data={"role": "owner"},
            )
            unknown_member = client.patch(
                "/panel/staff/nobody/role",
                data={"role": "dentist"},
            )

        assert unknown_role.status_code == 400  # noqa: PLR2004
        assert unknown_member.status_code == 404  # noqa: PLR2004


class TestRequestCredentials:
    """Test suite for callers that do not hold the signed-in session."""

    def test_caller_without_token_is_anonymous(self, admin_config: AppConfig) -> None:
        """Test that a signed-in admin does not authorize other callers."""
        with running_panel(admin_config) as client:
            register(client, "Root", "root@clinic.com")
            ana = register(client, "Ana", "ana@clinic.com")
            login(client, "root@clinic.com")
            token = client.headers.pop("Authorization")

            staff = client.get("/panel/staff")
            role_edit = client.patch(
                f"/panel/staff/{ana['identity_id']}/role",
                data={"role": "receptionist"},
            )
            state = client.get("/auth/state").json()
            logout = client.post("/auth/logout")

            client.headers["Authorization"] = token
            members = client.get("/panel/staff").json()

        assert staff.status_code == 307  # noqa: PLR2004
        assert staff.headers["location"] == "/auth/login?next=%2Fpanel%2Fstaff"
        assert role_edit.status_code == 307  # noqa: PLR2004
        assert state == {"loading": False, "user": None}
        assert logout.status_code == 307  # noqa: PLR2004
        assert {member["name"]: member["role"] for member in members} == {
            "Root": "admin",
            "Ana": "admin",
        }

    def test_token_not_issued_by_panel_is_unauthorized(
        self,
        client: TestClient,
    ) -> None:
        registered = register(client, "Ana", "ana@clinic.com")
        login(client, "ana@clinic.com")
        forged = SecurityManager(secret_key="0" * 64).create_session_token(
            registered["identity_id"],
            "ana@clinic.com",
        )

        response = client.get(
            "/panel/patients",
            headers={"Authorization": f"Bearer {forged}"},
        )

        assert response.status_code == 401  # noqa: PLR2004

    def test_token_of_signed_out_user_is_unauthorized(
        self,
        client: TestClient,
    ) -> None:
        register(client, "Ana", "ana@clinic.com")
        register(client, "Ben", "ben@clinic.com")
        login(client, "ana@clinic.com")
        ana_token = client.headers["Authorization"]
        client.post("/auth/logout")
        login(client, "ben@clinic.com")

        response = client.get(
            "/panel/dashboard",
            headers={"Authorization": ana_token},
        )

        assert response.status_code == 401  # noqa: PLR2004
