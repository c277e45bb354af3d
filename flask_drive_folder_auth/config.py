"""Configuration management for flask_drive_folder_auth module.

Handles service account key file and Secret Manager integration.
If a secret-bearing environment variable is not set, the library will
automatically attempt to fetch it from Secret Manager using the same name as
the environment variable.
"""

import json
import os
import threading
from typing import Optional

import google.auth
from google.cloud import secretmanager
from google.oauth2 import service_account

# Consumer googlegroups.com groups are not served by the Directory API;
# Workspace deployments set GROUP_DOMAIN to their own group domain.
DEFAULT_GROUP_DOMAIN = 'googlegroups.com'
DEFAULT_DOT_INSENSITIVE_DOMAIN = 'gmail.com'
DEFAULT_PROVIDER_TIMEOUT = 30
DEFAULT_GROUP_FETCH_WORKERS = 1
DEFAULT_AUTHORIZATION_URL_RULE = '/authorize'

DRIVE_SCOPES = ['https://www.googleapis.com/auth/drive.metadata.readonly']
DIRECTORY_SCOPES = ['https://www.googleapis.com/auth/admin.directory.group.member.readonly']

# Values that may live in Secret Manager when the env var is missing
SECRET_SETTINGS = (
    'SERVICE_ACCOUNT_KEY_FILE',
    'DELEGATED_ADMIN_EMAIL',
    'DRIVE_FOLDER_ID',
    'AUTHORIZATION_SERVICE_URL',
)

# Plain tuning values, read from the environment only
TUNING_SETTINGS = {
    'GROUP_DOMAIN': DEFAULT_GROUP_DOMAIN,
    'DOT_INSENSITIVE_DOMAIN': DEFAULT_DOT_INSENSITIVE_DOMAIN,
    'PROVIDER_TIMEOUT': DEFAULT_PROVIDER_TIMEOUT,
    'GROUP_FETCH_WORKERS': DEFAULT_GROUP_FETCH_WORKERS,
    'AUTHORIZATION_URL_RULE': DEFAULT_AUTHORIZATION_URL_RULE,
}


class Config:
    """Configuration manager for the flask_drive_folder_auth module."""

    def __init__(self, app=None):
        """
        Initialize configuration.

        Args:
            app: Flask application instance (optional)
        """
        self.app = app
        self._service_account_info: Optional[dict] = None
        self._credentials = {}
        self._credentials_lock = threading.Lock()

        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        """
        Initialize the Flask application with this config.

        Resolves all configuration values up front from:
        1. Values already present in app.config
        2. Environment variables
        3. Google Cloud Secret Manager (secret-bearing values only, if
           SECRET_MANAGER_ENABLED is true)
        4. Built-in defaults for tuning values, None otherwise

        Args:
            app: Flask application instance
        """
        self.app = app

        if not hasattr(app, 'extensions'):
            app.extensions = {}
        app.extensions['flask_drive_folder_auth'] = self

        app.config.setdefault('SECRET_MANAGER_ENABLED', True)

        for name in SECRET_SETTINGS:
            if app.config.get(name) is None:
                app.config[name] = self._resolve_config(name)

        for name, default in TUNING_SETTINGS.items():
            if app.config.get(name) is None:
                app.config[name] = os.getenv(name) or default

        from .cli import drive_auth_cli
        app.cli.add_command(drive_auth_cli)

        app.logger.info("Configuration initialized for flask_drive_folder_auth")

    def _resolve_config(self, name: str) -> Optional[str]:
        """
        Resolve configuration value from environment variable or Secret Manager.

        Tries in order:
        1. Environment variable
        2. Secret Manager (using same name)
        3. Returns None if neither available

        Args:
            name: The name to use for both env var and Secret Manager secret

        Returns:
            The configuration value or None if not found
        """
        value = os.getenv(name)
        if value:
            self.app.logger.info(f"Loaded {name} from environment variable")
            return value

        if not self.app.config.get('SECRET_MANAGER_ENABLED'):
            self.app.logger.debug(f"Environment variable {name} not set and Secret Manager disabled")
            return None

        self.app.logger.info(f"Environment variable {name} not set, trying Secret Manager")
        try:
            value = self.get_secret(name)
            self.app.logger.info(f"Successfully loaded {name} from Secret Manager (length: {len(value)})")
            return value
        except Exception as e:
            self.app.logger.debug(f"Could not load {name} from Secret Manager: {type(e).__name__}: {e}")
            return None

    def get_secret(self, secret_id: str, project_id: Optional[str] = None) -> str:
        """
        Retrieve a secret from Google Cloud Secret Manager.

        Uses Application Default Credentials (ADC) to automatically determine
        the project if not explicitly provided.

        Args:
            secret_id: The ID of the secret to retrieve
            project_id: GCP project ID (optional, uses ADC if not provided)

        Returns:
            The secret value as a string
        """
        if not project_id:
            try:
                credentials, project_id = google.auth.default()
            except Exception as e:
                self.app.logger.error(f"Failed to get default credentials: {type(e).__name__}: {e}")
                raise

            if not project_id and hasattr(credentials, 'quota_project_id'):
                project_id = credentials.quota_project_id

            if not project_id:
                project_id = os.getenv('GOOGLE_CLOUD_PROJECT') or os.getenv('GCP_PROJECT') or os.getenv('GCLOUD_PROJECT')

            if not project_id:
                raise ValueError(
                    "Cannot determine GCP project ID. Either:\n"
                    "  - Run 'gcloud config set project YOUR_PROJECT_ID'\n"
                    "  - Set GOOGLE_CLOUD_PROJECT environment variable\n"
                    "  - Provide project_id parameter"
                )

        try:
            with secretmanager.SecretManagerServiceClient() as client:
                name = f"projects/{project_id}/secrets/{secret_id}/versions/latest"
                self.app.logger.info(f"Accessing secret: {name}")
                response = client.access_secret_version(request={"name": name})
                return response.payload.data.decode('UTF-8')
        except Exception as e:
            self.app.logger.error(f"Error accessing secret {secret_id}: {type(e).__name__}: {e}")
            raise

    def get_service_account_info(self) -> dict:
        """
        Get service account credentials from key file or Secret Manager.

        The SERVICE_ACCOUNT_KEY_FILE config value can be:
        1. A file path to a local JSON key file
        2. JSON content directly (env var or Secret Manager)

        Returns:
            Dictionary with service account credentials (parsed JSON)

        Raises:
            ValueError: If service account key is not configured or unreadable
        """
        if self._service_account_info is None:
            key_file = self.app.config.get('SERVICE_ACCOUNT_KEY_FILE')

            if not key_file:
                raise ValueError(
                    "Service account key not configured. Set either:\n"
                    "  - SERVICE_ACCOUNT_KEY_FILE environment variable (path to JSON file or JSON content), or\n"
                    "  - Store service account JSON in Secret Manager as 'SERVICE_ACCOUNT_KEY_FILE'"
                )

            if os.path.exists(key_file):
                self.app.logger.info(f"Loading service account key from file: {key_file}")
                with open(key_file, 'r') as f:
                    info = json.load(f)
            else:
                self.app.logger.info("Parsing service account key as inline JSON")
                try:
                    info = json.loads(key_file)
                except json.JSONDecodeError as e:
                    raise ValueError(
                        f"SERVICE_ACCOUNT_KEY_FILE is neither a valid file path nor valid JSON: {e}"
                    )

            if not isinstance(info, dict):
                raise ValueError("SERVICE_ACCOUNT_KEY_FILE must contain a JSON object")
            self._service_account_info = info

        return self._service_account_info

    def get_drive_credentials(self):
        """
        Get the credentials used to read the folder's sharing list.

        These act as the service account itself (no impersonation), so the
        folder must be shared with the service account's email with at least
        viewer access. Without SERVICE_ACCOUNT_KEY_FILE, Application Default
        Credentials are used.

        Returns:
            google.auth.credentials.Credentials scoped to drive.metadata.readonly
        """
        return self._get_credentials('drive', DRIVE_SCOPES, subject=None)

    def get_directory_credentials(self):
        """
        Get the credentials used to list group members.

        The Directory API requires domain-wide delegation: the service account
        impersonates DELEGATED_ADMIN_EMAIL, and its delegation grant must cover
        admin.directory.group.member.readonly.

        Returns:
            google.auth.credentials.Credentials scoped to the Directory API
        """
        subject = self.app.config.get('DELEGATED_ADMIN_EMAIL') or None
        return self._get_credentials('directory', DIRECTORY_SCOPES, subject=subject)

    def _get_credentials(self, kind, scopes, subject):
        # Concurrent first callers block on the lock so each kind is built once
        credentials = self._credentials.get(kind)
        if credentials is None:
            with self._credentials_lock:
                credentials = self._credentials.get(kind)
                if credentials is None:
                    credentials = self._load_credentials(scopes, subject)
                    self._credentials[kind] = credentials
        return credentials

    def _load_credentials(self, scopes, subject):
        if self.app.config.get('SERVICE_ACCOUNT_KEY_FILE'):
            info = self.get_service_account_info()
            self.app.logger.debug(f"Creating service account credentials for {scopes} with delegated admin: {subject}")
            credentials = service_account.Credentials.from_service_account_info(
                info,
                scopes=scopes,
                subject=subject
            )
        else:
            self.app.logger.warning(
                "SERVICE_ACCOUNT_KEY_FILE was not configured, using Application Default Credentials"
            )
            credentials, _ = google.auth.default(scopes=scopes)

        self.app.logger.info(f"Google API credentials successfully loaded for {scopes}")
        return credentials

    def get_folder_id(self) -> str:
        """
        Get the Drive folder ID whose sharing list is the allow-list.

        Raises:
            ValueError: If not configured
        """
        folder_id = self.app.config.get('DRIVE_FOLDER_ID')

        if not folder_id:
            raise ValueError(
                "Drive folder ID not configured. Set either:\n"
                "  - DRIVE_FOLDER_ID environment variable, or\n"
                "  - Store folder ID in Secret Manager as 'DRIVE_FOLDER_ID'"
            )

        return folder_id

    def get_group_domain(self) -> str:
        """Domain whose addresses are group references."""
        return str(self.app.config.get('GROUP_DOMAIN') or DEFAULT_GROUP_DOMAIN).lower()

    def get_dot_insensitive_domain(self) -> str:
        """Mail domain that ignores dots in the local part."""
        return str(self.app.config.get('DOT_INSENSITIVE_DOMAIN') or DEFAULT_DOT_INSENSITIVE_DOMAIN).lower()

    def get_provider_timeout(self) -> float:
        """
        Timeout in seconds for each Google API request.

        Raises:
            ValueError: If the configured value is not a positive number
        """
        timeout = float(self.app.config.get('PROVIDER_TIMEOUT') or DEFAULT_PROVIDER_TIMEOUT)
        if timeout <= 0:
            raise ValueError(f"PROVIDER_TIMEOUT must be positive, got {timeout}")
        return timeout

    def get_group_fetch_workers(self) -> int:
        """
        Number of threads used to fetch group members in one check.

        Raises:
            ValueError: If the configured value is less than 1
        """
        workers = int(self.app.config.get('GROUP_FETCH_WORKERS') or DEFAULT_GROUP_FETCH_WORKERS)
        if workers < 1:
            raise ValueError(f"GROUP_FETCH_WORKERS must be at least 1, got {workers}")
        return workers

    def get_authorization_service_url(self) -> str:
        """
        Get the URL of a remote authorization endpoint (used by AuthorizationClient).

        Raises:
            ValueError: If not configured
        """
        url = self.app.config.get('AUTHORIZATION_SERVICE_URL')

        if not url:
            raise ValueError(
                "Authorization service URL not configured. Set either:\n"
                "  - AUTHORIZATION_SERVICE_URL environment variable, or\n"
                "  - Store the URL in Secret Manager as 'AUTHORIZATION_SERVICE_URL'"
            )

        return url
