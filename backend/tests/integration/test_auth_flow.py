"""Integration tests for authentication flow

Tests cover:
- Login with username or email, optionally scoped by tenant code
- JWT token issuance and GET /auth/me, GET /auth/verify
- Inactive users and tenants
- Account lockout after repeated failures
- Login events written to the audit log
- Refresh tokens: exchange, revocation on logout and password reset
- Staff registration by admins
- Password reset request and completion
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from pharmaflow.auth.jwt import create_access_token, create_refresh_token, decode_token
from pharmaflow.auth.password import verify_password
from pharmaflow.auth.tokens import hash_token, issue_password_reset_token
from pharmaflow.config import settings
from pharmaflow.models.audit_log import AuditLog
from pharmaflow.models.auth_token import PasswordResetToken, RefreshToken
from pharmaflow.models.user import User


pytestmark = pytest.mark.integration

LOGIN = "/api/v1/auth/login"
ME = "/api/v1/auth/me"
REFRESH = "/api/v1/auth/refresh"
LOGOUT = "/api/v1/auth/logout"
REGISTER = "/api/v1/auth/register"
RESET_REQUEST = "/api/v1/auth/password-reset-request"
RESET = "/api/v1/auth/password-reset"
VERIFY = "/api/v1/auth/verify"
PASSWORD = "PharmPass123"


def login(client, identifier, password=PASSWORD, tenant_code=None):
    payload = {"username_or_email": identifier, "password": password}
    if tenant_code:
        payload["tenant_code"] = tenant_code
    return client.post(LOGIN, json=payload)


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def audit_actions(db_session):
    return db_session.execute(
        select(AuditLog.action).order_by(AuditLog.created_at)
    ).scalars().all()


class TestLoginEndpoint:
    """Test POST /auth/login endpoint"""

    def test_login_with_username(self, client, pharmacist_user, test_tenant):
        response = login(client, "pharmacist")

        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["expires_in"] == 3600
        assert body["user"]["username"] == "pharmacist"
        assert "password_hash" not in body["user"]

        payload = decode_token(body["access_token"])
        assert payload["sub"] == str(pharmacist_user.id)
        assert payload["tenant_id"] == str(test_tenant.id)
        assert payload["role"] == "PHARMACIST"

    def test_login_with_email_is_case_insensitive(self, client, pharmacist_user):
        response = login(client, "Pharmacist@Pharmacy.TEST")

        assert response.status_code == 200

    def test_login_scoped_by_tenant_code(self, client, pharmacist_user, make_user, other_tenant):
        other = make_user("pharmacist", tenant=other_tenant, password="OtherPass123")

        response = login(client, "pharmacist", "OtherPass123", tenant_code="pharm000002")

        assert response.status_code == 200
        assert response.json()["user"]["id"] == str(other.id)

    def test_unknown_tenant_code(self, client, pharmacist_user):
        response = login(client, "pharmacist", tenant_code="NOPE01")

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid tenant"

    def test_wrong_password(self, client, pharmacist_user):
        response = login(client, "pharmacist", "WrongPass123")

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    def test_unknown_user_has_same_message(self, client, test_tenant):
        response = login(client, "nobody")

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    def test_inactive_user(self, client, make_user):
        make_user("retired", is_active=False)

        response = login(client, "retired")

        assert response.status_code == 401

    def test_inactive_tenant(self, client, db_session, pharmacist_user, test_tenant):
        test_tenant.is_active = False
        db_session.commit()

        response = login(client, "pharmacist")

        assert response.status_code == 401
        assert response.json()["detail"] == "Tenant is inactive"

    def test_success_resets_failure_counter(self, client, db_session, pharmacist_user):
        login(client, "pharmacist", "WrongPass123")
        login(client, "pharmacist", "WrongPass123")

        login(client, "pharmacist")

        db_session.refresh(pharmacist_user)
        assert pharmacist_user.failed_login_attempts == 0
        assert pharmacist_user.last_login_at is not None

    def test_login_events_audited(self, client, db_session, pharmacist_user):
        login(client, "pharmacist", "WrongPass123")
        login(client, "pharmacist")

        assert audit_actions(db_session) == ["LOGIN_FAILED", "LOGIN_SUCCESS"]


class TestAccountLockout:
    """Test lockout after repeated failures"""

    def test_locks_after_max_attempts(self, client, db_session, pharmacist_user):
        for _ in range(settings.ACCOUNT_LOCKOUT_ATTEMPTS):
            assert login(client, "pharmacist", "WrongPass123").status_code == 401

        response = login(client, "pharmacist")

        assert response.status_code == 401
        assert response.json()["detail"].startswith("Account is locked until")
        assert "ACCOUNT_LOCKED" in audit_actions(db_session)

    def test_expired_lock_allows_login(self, client, db_session, pharmacist_user):
        pharmacist_user.failed_login_attempts = settings.ACCOUNT_LOCKOUT_ATTEMPTS
        pharmacist_user.locked_until = datetime.now(timezone.utc) - timedelta(minutes=1)
        db_session.commit()

        response = login(client, "pharmacist")

        assert response.status_code == 200


class TestMeEndpoint:
    """Test GET /auth/me"""

    def test_returns_current_user(self, pharmacist_client, pharmacist_user):
        response = pharmacist_client.get(ME)

        assert response.status_code == 200
        assert response.json()["user"]["id"] == str(pharmacist_user.id)

    def test_requires_token(self, client):
        assert client.get(ME).status_code in (401, 403)

    def test_invalid_token(self, client):
        response = client.get(ME, headers={"Authorization": "Bearer not.a.token"})

        assert response.status_code == 401

    def test_token_for_other_tenant_rejected(self, client, pharmacist_user, other_tenant):
        token = create_access_token(
            user_id=pharmacist_user.id,
            tenant_id=other_tenant.id,
            role=pharmacist_user.role,
            username=pharmacist_user.username,
        )

        response = client.get(ME, headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_deactivated_user_forbidden(self, pharmacist_client, db_session, pharmacist_user):
        pharmacist_user.is_active = False
        db_session.commit()

        assert pharmacist_client.get(ME).status_code == 403


class TestVerifyEndpoint:
    """Test GET /auth/verify"""

    def test_valid_access_token(self, pharmacist_client, pharmacist_user):
        response = pharmacist_client.get(VERIFY)

        assert response.status_code == 200
        assert response.json() == {"valid": True, "user_id": str(pharmacist_user.id)}

    def test_refresh_token_is_not_an_access_token(self, client, pharmacist_user):
        refresh_token = login(client, "pharmacist").json()["refresh_token"]

        assert client.get(VERIFY, headers=bearer(refresh_token)).status_code == 401


class TestRefreshToken:
    """Test POST /auth/refresh"""

    def test_login_stores_only_token_digest(self, client, db_session, pharmacist_user):
        refresh_token = login(client, "pharmacist").json()["refresh_token"]

        stored = db_session.execute(select(RefreshToken)).scalar_one()
        assert stored.user_id == pharmacist_user.id
        assert stored.token_hash == hash_token(refresh_token)
        assert stored.revoked is False

    def test_refresh_issues_working_access_token(self, client, pharmacist_user, test_tenant):
        refresh_token = login(client, "pharmacist").json()["refresh_token"]

        response = client.post(REFRESH, json={"refresh_token": refresh_token})

        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["expires_in"] == 3600
        payload = decode_token(body["access_token"])
        assert payload["sub"] == str(pharmacist_user.id)
        assert payload["tenant_id"] == str(test_tenant.id)
        assert client.get(ME, headers=bearer(body["access_token"])).status_code == 200

    def test_garbage_token_rejected(self, client, pharmacist_user):
        response = client.post(REFRESH, json={"refresh_token": "not.a.token"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired refresh token"

    def test_access_token_rejected(self, client, pharmacist_user):
        access_token = login(client, "pharmacist").json()["access_token"]

        response = client.post(REFRESH, json={"refresh_token": access_token})

        assert response.status_code == 401

    def test_unrecorded_token_rejected(self, client, pharmacist_user):
        token, _ = create_refresh_token(pharmacist_user.id)

        response = client.post(REFRESH, json={"refresh_token": token})

        assert response.status_code == 401

    def test_expired_record_rejected(self, client, db_session, pharmacist_user):
        refresh_token = login(client, "pharmacist").json()["refresh_token"]
        stored = db_session.execute(select(RefreshToken)).scalar_one()
        stored.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        db_session.commit()

        assert client.post(REFRESH, json={"refresh_token": refresh_token}).status_code == 401

    def test_deactivated_user_rejected(self, client, db_session, pharmacist_user):
        refresh_token = login(client, "pharmacist").json()["refresh_token"]
        pharmacist_user.is_active = False
        db_session.commit()

        response = client.post(REFRESH, json={"refresh_token": refresh_token})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired refresh token"

    def test_inactive_tenant_rejected(self, client, db_session, pharmacist_user, test_tenant):
        refresh_token = login(client, "pharmacist").json()["refresh_token"]
        test_tenant.is_active = False
        db_session.commit()

        assert client.post(REFRESH, json={"refresh_token": refresh_token}).status_code == 401


class TestLogout:
    """Test POST /auth/logout"""

    def test_logout_revokes_refresh_token(self, client, db_session, pharmacist_user):
        tokens = login(client, "pharmacist").json()

        response = client.post(
            LOGOUT,
            json={"refresh_token": tokens["refresh_token"]},
            headers=bearer(tokens["access_token"]),
        )

        assert response.status_code == 200
        assert response.json() == {"message": "Logout successful"}
        assert client.post(REFRESH, json={"refresh_token": tokens["refresh_token"]}).status_code == 401
        assert "LOGOUT" in audit_actions(db_session)

    def test_invalid_refresh_token_still_succeeds(self, pharmacist_client, db_session, pharmacist_user):
        response = pharmacist_client.post(LOGOUT, json={"refresh_token": "garbage"})

        assert response.status_code == 200
        assert "LOGOUT" not in audit_actions(db_session)

    def test_cannot_revoke_another_users_token(self, client, pharmacist_client, make_user):
        make_user("colleague", password="ColleaguePass123")
        other_refresh = login(client, "colleague", "ColleaguePass123").json()["refresh_token"]

        assert pharmacist_client.post(LOGOUT, json={"refresh_token": other_refresh}).status_code == 200

        assert client.post(REFRESH, json={"refresh_token": other_refresh}).status_code == 200

    def test_requires_authentication(self, client):
        response = client.post(LOGOUT, json={"refresh_token": "anything"})

        assert response.status_code in (401, 403)


def registration(**overrides):
    payload = {
        "username": "jdoe",
        "email": "jdoe@citypharmacy.com",
        "password": "NewStaff123",
        "full_name": "John Doe",
    }
    payload.update(overrides)
    return payload


class TestRegister:
    """Test POST /auth/register"""

    def test_admin_registers_staff(self, admin_client, client, db_session, test_tenant):
        response = admin_client.post(REGISTER, json=registration())

        assert response.status_code == 201
        user = response.json()["user"]
        assert user["username"] == "jdoe"
        assert user["role"] == "CASHIER"
        assert user["tenant_id"] == str(test_tenant.id)
        assert "password" not in user

        entry = db_session.execute(
            select(AuditLog).where(AuditLog.entity_type == "User", AuditLog.action == "CREATE")
        ).scalar_one()
        assert entry.entity_id == user["id"]

        assert login(client, "jdoe", "NewStaff123").status_code == 200

    def test_explicit_role_and_phone(self, admin_client):
        response = admin_client.post(REGISTER, json=registration(role="PHARMACIST", phone="+4915112345678"))

        assert response.status_code == 201
        assert response.json()["user"]["role"] == "PHARMACIST"

    def test_manager_forbidden(self, manager_client):
        assert manager_client.post(REGISTER, json=registration()).status_code == 403

    def test_anonymous_rejected(self, client):
        assert client.post(REGISTER, json=registration()).status_code in (401, 403)

    def test_duplicate_username_case_insensitive(self, admin_client, pharmacist_user):
        response = admin_client.post(REGISTER, json=registration(username="Pharmacist"))

        assert response.status_code == 409
        assert response.json()["detail"] == "Username already exists in this tenant"

    def test_duplicate_email(self, admin_client, db_session, test_tenant, pharmacist_user):
        pharmacist_user.email = "jdoe@citypharmacy.com"
        db_session.commit()

        response = admin_client.post(REGISTER, json=registration(username="johnd"))

        assert response.status_code == 409
        assert response.json()["detail"] == "Email already exists in this tenant"

    def test_same_username_in_other_tenant_allowed(self, admin_client, make_user, other_tenant):
        make_user("jdoe", tenant=other_tenant)

        assert admin_client.post(REGISTER, json=registration()).status_code == 201

    def test_weak_password(self, admin_client):
        response = admin_client.post(REGISTER, json=registration(password="alllowercase1"))

        assert response.status_code == 400
        assert response.json()["detail"] == "Password must contain at least one uppercase letter"

    def test_invalid_username(self, admin_client):
        assert admin_client.post(REGISTER, json=registration(username="j doe!")).status_code == 422

    def test_invalid_role(self, admin_client):
        assert admin_client.post(REGISTER, json=registration(role="OWNER")).status_code == 422


class TestPasswordResetRequest:
    """Test POST /auth/password-reset-request"""

    GENERIC = "If your email exists in our system, you will receive a password reset link"

    def test_known_email_gets_token(self, client, db_session, pharmacist_user):
        response = client.post(RESET_REQUEST, json={"email": "Pharmacist@pharmacy.test"})

        assert response.status_code == 200
        assert response.json()["message"] == self.GENERIC
        stored = db_session.execute(select(PasswordResetToken)).scalar_one()
        assert stored.user_id == pharmacist_user.id
        assert stored.used is False
        assert "PASSWORD_RESET_REQUESTED" in audit_actions(db_session)

    def test_unknown_email_same_response(self, client, db_session, test_tenant):
        response = client.post(RESET_REQUEST, json={"email": "nobody@pharmacy.test"})

        assert response.status_code == 200
        assert response.json()["message"] == self.GENERIC
        assert db_session.execute(select(PasswordResetToken)).scalars().all() == []

    def test_inactive_user_gets_no_token(self, client, db_session, make_user):
        make_user("retired", is_active=False)

        client.post(RESET_REQUEST, json={"email": "retired@pharmacy.test"})

        assert db_session.execute(select(PasswordResetToken)).scalars().all() == []

    def test_tenant_code_selects_account(self, client, db_session, pharmacist_user, make_user, other_tenant):
        other = make_user("pharmacist", tenant=other_tenant)

        client.post(RESET_REQUEST, json={"email": "pharmacist@pharmacy.test", "tenant_code": "PHARM000002"})

        stored = db_session.execute(select(PasswordResetToken)).scalar_one()
        assert stored.user_id == other.id


class TestPasswordReset:
    """Test POST /auth/password-reset"""

    def _reset_token(self, db_session, user):
        token = issue_password_reset_token(db_session, user)
        db_session.commit()
        return token

    def test_reset_changes_password(self, client, db_session, pharmacist_user):
        token = self._reset_token(db_session, pharmacist_user)

        response = client.post(RESET, json={"token": token, "new_password": "BrandNew123"})

        assert response.status_code == 200
        assert login(client, "pharmacist", "BrandNew123").status_code == 200
        assert login(client, "pharmacist").status_code == 401
        assert "PASSWORD_RESET" in audit_actions(db_session)

    def test_token_is_single_use(self, client, db_session, pharmacist_user):
        token = self._reset_token(db_session, pharmacist_user)
        client.post(RESET, json={"token": token, "new_password": "BrandNew123"})

        response = client.post(RESET, json={"token": token, "new_password": "Another123"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid or expired reset token"

    def test_expired_token_rejected(self, client, db_session, pharmacist_user):
        db_session.add(PasswordResetToken(
            user_id=pharmacist_user.id,
            token_hash=hash_token("expired-token"),
            expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
        ))
        db_session.commit()

        response = client.post(RESET, json={"token": "expired-token", "new_password": "BrandNew123"})

        assert response.status_code == 400

    def test_unknown_token_rejected(self, client, pharmacist_user):
        response = client.post(RESET, json={"token": "never-issued", "new_password": "BrandNew123"})

        assert response.status_code == 400

    def test_weak_password_rejected_and_token_kept(self, client, db_session, pharmacist_user):
        token = self._reset_token(db_session, pharmacist_user)

        response = client.post(RESET, json={"token": token, "new_password": "NODIGITSHERE"})

        assert response.status_code == 400
        assert db_session.execute(select(PasswordResetToken)).scalar_one().used is False

    def test_reset_clears_lockout(self, client, db_session, pharmacist_user):
        pharmacist_user.failed_login_attempts = settings.ACCOUNT_LOCKOUT_ATTEMPTS
        pharmacist_user.locked_until = datetime.now(timezone.utc) + timedelta(minutes=30)
        db_session.commit()
        token = self._reset_token(db_session, pharmacist_user)

        client.post(RESET, json={"token": token, "new_password": "BrandNew123"})

        assert login(client, "pharmacist", "BrandNew123").status_code == 200

    def test_reset_revokes_refresh_tokens(self, client, db_session, pharmacist_user):
        refresh_token = login(client, "pharmacist").json()["refresh_token"]
        token = self._reset_token(db_session, pharmacist_user)

        client.post(RESET, json={"token": token, "new_password": "BrandNew123"})

        assert client.post(REFRESH, json={"refresh_token": refresh_token}).status_code == 401
        user = db_session.get(User, pharmacist_user.id)
        assert verify_password("BrandNew123", user.password_hash)
