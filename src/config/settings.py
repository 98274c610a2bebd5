"""
Configuration management for LinguaVerse

Loads environment variables and provides application settings.
"""

from pydantic_settings import BaseSettings
from typing import Optional, Dict
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    app_name: str = "LinguaVerse"
    port: int = 3000
    log_level: str = "INFO"

    # CORS Configuration
    # Default "*" allows all origins (suitable for development)
    # For production set a comma-separated list:
    #   CORS_ALLOWED_ORIGINS=https://linguaverse.app,https://www.linguaverse.app
    cors_allowed_origins: str = "*"

    # =========================================================================
    # Firebase Web Configuration
    # The web API key is what the Identity Toolkit REST API authenticates with
    # =========================================================================
    firebase_api_key: str = ""
    firebase_project_id: Optional[str] = None

    # Identity Toolkit endpoint (override to point at the Auth emulator)
    identity_base_url: str = "https://identitytoolkit.googleapis.com/v1"
    # requestUri sent with signInWithIdp; must be an authorized domain
    oauth_request_uri: str = "http://localhost"
    identity_timeout_seconds: int = 30

    # =========================================================================
    # Firebase Admin (Firestore) Credentials
    # Either a full service-account JSON blob, discrete fields, or a file path.
    # Falls back to Application Default Credentials when none are set.
    # =========================================================================
    firebase_admin_sdk_config: Optional[str] = None
    firebase_client_email: Optional[str] = None
    firebase_private_key: Optional[str] = None
    firebase_private_key_id: Optional[str] = None
    google_application_credentials: Optional[str] = None

    # Seconds between checks that each Firestore listener stream is still alive
    firestore_watch_check_seconds: float = 5.0

    # =========================================================================
    # Learner Profile
    # =========================================================================
    default_native_language: str = "en"

    # Remote profile updates overwrite unsaved local edits unless this is set
    profile_guard_local_edits: bool = False

    # Debug Configuration
    debug_storage: bool = False  # Log Firestore reads/writes as JSONL
    debug_auth: bool = False     # Log identity API calls as JSONL
    debug_log_dir: str = "logs/debug"

    class Config:
        env_file = ".env"
        case_sensitive = False

    def get_firebase_credentials_dict(self) -> Optional[Dict]:
        """
        Get Firebase service-account credentials as a dict.

        FIREBASE_ADMIN_SDK_CONFIG wins when set; both snake_case and camelCase
        keys are accepted. Otherwise the discrete FIREBASE_* fields are used.

        Returns None if credentials are not available.

        Raises:
            ValueError: If FIREBASE_ADMIN_SDK_CONFIG is not valid JSON or is
                missing the project id, client email or private key.
        """
        if self.firebase_admin_sdk_config:
            try:
                parsed = json.loads(self.firebase_admin_sdk_config)
            except json.JSONDecodeError as e:
                raise ValueError("Invalid JSON format in FIREBASE_ADMIN_SDK_CONFIG") from e

            project_id = parsed.get("project_id") or parsed.get("projectId")
            client_email = parsed.get("client_email") or parsed.get("clientEmail")
            private_key = parsed.get("private_key") or parsed.get("privateKey")
            if not (project_id and client_email and private_key):
                raise ValueError(
                    "FIREBASE_ADMIN_SDK_CONFIG is missing required fields "
                    "(project_id, client_email, private_key)"
                )
            return self._service_account(
                project_id,
                client_email,
                private_key,
                parsed.get("private_key_id") or parsed.get("privateKeyId") or "",
            )

        if self.firebase_client_email and self.firebase_private_key:
            return self._service_account(
                self.firebase_project_id,
                self.firebase_client_email,
                self.firebase_private_key,
                self.firebase_private_key_id or "",
            )
        return None

    @staticmethod
    def _service_account(project_id, client_email, private_key, private_key_id) -> Dict:
        return {
            "type": "service_account",
            "project_id": project_id,
            "private_key_id": private_key_id,
            "private_key": private_key.replace("\\n", "\n"),  # Handle escaped newlines
            "client_email": client_email,
            "client_id": "",
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "auth_provider_x509_cert_url": "https://www.googleapis.com/oauth2/v1/certs",
        }


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures we only load settings once.
    """
    return Settings()
