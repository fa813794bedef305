"""
app/config.py - Application configuration and Firebase initialization.

This module defines a Pydantic BaseSettings class to load configuration from environment,
and initializes the Firebase Admin SDK (Firestore, Authentication) on first use.
Handlers never touch the Firebase clients directly: they receive a document store and an
identity provider through the ``get_store`` / ``get_identity`` dependencies below, which
tests override.
"""
from functools import lru_cache
from typing import List, Optional

import firebase_admin
from firebase_admin import credentials, firestore
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from backend.app.repositories.documents import DocumentStore, FirestoreDocumentStore
from backend.app.repositories.identity import FirebaseIdentityProvider, IdentityProvider


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    firebase_cred_file: Optional[str] = Field(None, description="Service account JSON path")
    firebase_project_id: Optional[str] = None

    # Firebase credentials from environment variables (for Cloud Run)
    firebase_private_key_id: Optional[str] = None
    firebase_private_key: Optional[str] = None
    firebase_client_email: Optional[str] = None
    firebase_client_id: Optional[str] = None
    firebase_auth_uri: Optional[str] = None
    firebase_token_uri: Optional[str] = None
    firebase_auth_provider_x509_cert_url: Optional[str] = None
    firebase_client_x509_cert_url: Optional[str] = None

    debug: bool = False
    log_level: str = "INFO"
    allowed_origins: str = "*"  # Comma-separated list or '*' for all
    app_name: str = "Activity Planner"
    app_base_url: str = "http://localhost:3000"

    # Activity handlers reject callers whose email is not verified
    require_verified_email: bool = True
    # Shared secret for the account lifecycle hooks (/hooks/*)
    hook_secret: Optional[str] = None

    # Reminder sweep
    reminders_enabled: bool = True
    reminder_days: List[int] = Field(default_factory=lambda: [7, 14, 21, 28])
    reminder_hour: int = 8
    timezone: str = "Australia/Sydney"

    smtp_host: str = "localhost"
    smtp_port: int = 465
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_from: Optional[str] = None
    smtp_use_starttls: bool = False  # True for 587

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_port and self.smtp_user and self.smtp_password
                    and (self.smtp_from or self.smtp_user))


# Load settings from environment (.env file, etc.)
settings = Settings()


def _credential():
    if all([
        settings.firebase_private_key_id,
        settings.firebase_private_key,
        settings.firebase_client_email,
        settings.firebase_client_id,
        settings.firebase_auth_uri,
        settings.firebase_token_uri,
        settings.firebase_auth_provider_x509_cert_url,
        settings.firebase_client_x509_cert_url,
    ]):
        # Use environment variables for Firebase credentials (Cloud Run)
        return credentials.Certificate({
            "type": "service_account",
            "project_id": settings.firebase_project_id,
            "private_key_id": settings.firebase_private_key_id,
            "private_key": settings.firebase_private_key.replace("\\n", "\n"),
            "client_email": settings.firebase_client_email,
            "client_id": settings.firebase_client_id,
            "auth_uri": settings.firebase_auth_uri,
            "token_uri": settings.firebase_token_uri,
            "auth_provider_x509_cert_url": settings.firebase_auth_provider_x509_cert_url,
            "client_x509_cert_url": settings.firebase_client_x509_cert_url,
        })
    if settings.firebase_cred_file:
        # Use service account file (local development)
        return credentials.Certificate(settings.firebase_cred_file)
    # Application Default Credentials (GCP runtime)
    return credentials.ApplicationDefault()


@lru_cache(maxsize=1)
def get_firebase_app() -> firebase_admin.App:
    try:
        return firebase_admin.get_app()
    except ValueError:
        options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
        return firebase_admin.initialize_app(_credential(), options)


@lru_cache(maxsize=1)
def get_db():
    """Firestore client for the default app."""
    return firestore.client(app=get_firebase_app())


# --------- FastAPI dependencies --------- #

def get_store() -> DocumentStore:
    return FirestoreDocumentStore(get_db())


def get_identity() -> IdentityProvider:
    return FirebaseIdentityProvider(get_firebase_app())


def get_settings() -> Settings:
    return settings
