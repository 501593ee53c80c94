"""
Authentication module — Supports certificate-based and delegated device-code auth.
Uses MSAL for token acquisition against Microsoft Identity Platform.
"""

from __future__ import annotations

import base64
import getpass
import logging
import os
from typing import Optional, Sequence

from cryptography.hazmat.primitives.serialization import pkcs12, Encoding, PrivateFormat, NoEncryption
from cryptography.hazmat.primitives.hashes import SHA1
import msal

from ..config import AuthConfig, GRAPH_BASE_URL, required_scopes

logger = logging.getLogger("stale_account_report.auth")

# App-only tokens carry whatever application permissions were consented
APP_SCOPES = [f"{GRAPH_BASE_URL}/.default"]

CERT_PASSWORD_ENV = "M365_CERT_PASSWORD"


class AuthenticationError(Exception):
    """Raised when authentication fails."""
    pass


def delegated_scopes(permissions: Sequence[str]) -> list[str]:
    """Expand bare permission names into Graph resource scopes."""
    return [f"{GRAPH_BASE_URL}/{p}" for p in permissions]


class Authenticator:
    """
    Handles MSAL-based authentication for Microsoft Graph.
    Supports:
      - Certificate-based app-only authentication
      - Delegated authentication (device code flow)
    """

    def __init__(self, config: AuthConfig, include_licenses: bool = False):
        self.config = config
        self.permissions = required_scopes(include_licenses)
        self._access_token: Optional[str] = None

    def acquire_token(self) -> str:
        """Acquire an access token based on configured auth mode."""
        if self.config.mode == "certificate":
            return self._acquire_certificate_token()
        elif self.config.mode == "delegated":
            return self._acquire_delegated_token()
        else:
            raise AuthenticationError(f"Unknown auth mode: {self.config.mode}")

    def _load_certificate(self, cert_path: str, password: str) -> tuple[str, str]:
        """Return (private key PEM, SHA1 thumbprint) from a base64 PFX file."""
        try:
            with open(cert_path, "r") as f:
                cert_bytes = base64.b64decode(f.read().strip())

            private_key, certificate, _ = pkcs12.load_key_and_certificates(
                cert_bytes, password.encode("utf-8") if password else None
            )
        except FileNotFoundError:
            raise AuthenticationError(f"Certificate file not found: {cert_path}")
        except ValueError as e:
            raise AuthenticationError(f"Failed to load certificate: {e}")

        if private_key is None or certificate is None:
            raise AuthenticationError("Certificate file holds no key/certificate pair")

        private_key_pem = private_key.private_bytes(
            Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()
        ).decode("utf-8")
        thumbprint = certificate.fingerprint(SHA1()).hex()
        logger.info(f"Certificate loaded. Thumbprint: {thumbprint}")
        return private_key_pem, thumbprint

    def _acquire_certificate_token(self) -> str:
        """Acquire token using certificate-based client credentials."""
        cert_config = self.config.certificate
        if not cert_config:
            raise AuthenticationError("Certificate auth config not provided.")

        logger.info("Authenticating with certificate-based app credentials...")

        password = cert_config.certificate_password or os.environ.get(CERT_PASSWORD_ENV, "")
        if not password:
            password = getpass.getpass("Enter the certificate password: ")

        private_key_pem, thumbprint = self._load_certificate(
            cert_config.certificate_path, password
        )

        app = msal.ConfidentialClientApplication(
            client_id=cert_config.client_id,
            authority=f"https://login.microsoftonline.com/{cert_config.tenant_id}",
            client_credential={
                "thumbprint": thumbprint,
                "private_key": private_key_pem,
            },
        )

        result = app.acquire_token_for_client(scopes=APP_SCOPES)
        return self._token_from_result(result, "Certificate")

    def _acquire_delegated_token(self) -> str:
        """Acquire token using delegated (device code) flow."""
        deleg_config = self.config.delegated
        if not deleg_config:
            raise AuthenticationError("Delegated auth config not provided.")

        logger.info(f"Initiating device code flow for scopes: {', '.join(self.permissions)}")

        app = msal.PublicClientApplication(
            client_id=deleg_config.client_id,
            authority=f"https://login.microsoftonline.com/{deleg_config.tenant_id}",
        )

        flow = app.initiate_device_flow(scopes=delegated_scopes(self.permissions))
        if "user_code" not in flow:
            raise AuthenticationError(
                f"Device code flow failed: {flow.get('error_description', 'Unknown')}"
            )

        print(f"\n{'='*60}")
        print(f"  To sign in, open: {flow['verification_uri']}")
        print(f"  Enter code: {flow['user_code']}")
        print(f"{'='*60}\n")

        result = app.acquire_token_by_device_flow(flow)
        return self._token_from_result(result, "Delegated")

    def _token_from_result(self, result: dict, label: str) -> str:
        if "access_token" in result:
            self._access_token = result["access_token"]
            logger.info(f"{label} authentication successful.")
            return self._access_token
        error = result.get("error_description", result.get("error", "Unknown"))
        raise AuthenticationError(f"{label} auth failed: {error}")

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token
