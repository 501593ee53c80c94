# tests/test_authenticator.py
import pytest

from stale_account_report.auth import authenticator as auth_module
from stale_account_report.auth.authenticator import (
    AuthenticationError,
    Authenticator,
    delegated_scopes,
)
from stale_account_report.config import AuthConfig, CertificateAuth, DelegatedAuth


class _FakePublicClient:
    last_scopes = None

    def __init__(self, client_id, authority):
        self.client_id = client_id
        self.authority = authority

    def initiate_device_flow(self, scopes):
        _FakePublicClient.last_scopes = scopes
        return {"user_code": "ABC123", "verification_uri": "https://microsoft.com/devicelogin"}

    def acquire_token_by_device_flow(self, flow):
        return {"access_token": "delegated-token"}


def _delegated_config():
    return AuthConfig(mode="delegated", delegated=DelegatedAuth(tenant_id="t", client_id="c"))


def test_delegated_scopes_expand_to_graph_resource():
    assert delegated_scopes(["User.Read.All"]) == ["https://graph.microsoft.com/User.Read.All"]


def test_delegated_flow_requests_base_scopes(monkeypatch, capsys):
    monkeypatch.setattr(auth_module.msal, "PublicClientApplication", _FakePublicClient)

    token = Authenticator(_delegated_config()).acquire_token()

    assert token == "delegated-token"
    assert _FakePublicClient.last_scopes == [
        "https://graph.microsoft.com/User.Read.All",
        "https://graph.microsoft.com/AuditLog.Read.All",
    ]
    assert "ABC123" in capsys.readouterr().out


def test_license_mode_adds_one_scope(monkeypatch, capsys):
    monkeypatch.setattr(auth_module.msal, "PublicClientApplication", _FakePublicClient)

    Authenticator(_delegated_config(), include_licenses=True).acquire_token()

    assert len(_FakePublicClient.last_scopes) == 3
    assert _FakePublicClient.last_scopes[-1].endswith("/Organization.Read.All")


def test_delegated_failure_raises(monkeypatch, capsys):
    class _Denied(_FakePublicClient):
        def acquire_token_by_device_flow(self, flow):
            return {"error": "access_denied", "error_description": "User declined"}

    monkeypatch.setattr(auth_module.msal, "PublicClientApplication", _Denied)

    with pytest.raises(AuthenticationError, match="User declined"):
        Authenticator(_delegated_config()).acquire_token()


def test_missing_certificate_file(tmp_path):
    config = AuthConfig(certificate=CertificateAuth(
        tenant_id="t",
        client_id="c",
        certificate_path=str(tmp_path / "missing.txt"),
        certificate_password="secret",
    ))
    with pytest.raises(AuthenticationError, match="not found"):
        Authenticator(config).acquire_token()


def test_certificate_password_from_environment(tmp_path, monkeypatch):
    cert = tmp_path / "base64.txt"
    cert.write_text("bm90LWEtcGZ4")  # base64 of "not-a-pfx"
    monkeypatch.setenv("M365_CERT_PASSWORD", "from-env")
    config = AuthConfig(certificate=CertificateAuth(
        tenant_id="t", client_id="c", certificate_path=str(cert),
    ))
    with pytest.raises(AuthenticationError, match="Failed to load certificate"):
        Authenticator(config).acquire_token()


def test_unknown_mode():
    with pytest.raises(AuthenticationError):
        Authenticator(AuthConfig(mode="kerberos")).acquire_token()
