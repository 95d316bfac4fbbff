import os
from dotenv import load_dotenv
from fastapi.security import OAuth2PasswordBearer
from typing import Any, Dict, Tuple, Type

# Load environment variables
load_dotenv()

class ConfigError(Exception):
    """Exception raised for missing configuration values"""
    pass

class Settings:
    # Format: (default_value, type); a None default marks the key as required
    CONFIG_DEFAULTS: Dict[str, Tuple[Any, Type]] = {
        # Database
        "DATABASE_URL": (None, str),
        "DATABASE_NAME": (None, str),
        "DB_MAX_POOL_SIZE": (10, int),
        "DB_MAX_RECONNECT_ATTEMPTS": (5, int),
        "DB_RECONNECT_DELAY": (5, int),  # seconds
        "DB_SERVER_SELECTION_TIMEOUT_MS": (5000, int),
        "DB_CONNECT_TIMEOUT_MS": (5000, int),
        # Access tokens are issued by the auth service and only verified here
        "JWT_SECRET_KEY": (None, str),
        "JWT_ALGORITHM": ("HS256", str),
        # Attachment storage
        "MINIO_USERNAME": (None, str),
        "MINIO_PASSWORD": (None, str),
        "MINIO_SERVER": (None, str),
        "MINIO_BUCKET": (None, str),
        "MINIO_PUBLIC_URL": ("", str),
        "ATTACHMENT_MAX_BYTES": (50 * 1024 * 1024, int),
        # Realtime and paging
        "TYPING_TIMEOUT_SECONDS": (3.0, float),
        "MESSAGES_PAGE_SIZE": (50, int),
        "CONVERSATIONS_PAGE_SIZE": (20, int),
        "SEARCH_RESULT_LIMIT": (20, int),
    }

    def __init__(self):
        self.values = {}
        self._load_config()
        self._derive()

    @property
    def required(self):
        return [key for key, (default, _) in self.CONFIG_DEFAULTS.items() if default is None]

    def _load_config(self):
        missing_vars = [key for key in self.required if not os.getenv(key)]
        if missing_vars:
            raise ConfigError(f"Missing required environment variables: {', '.join(missing_vars)}")

        for key, (default_value, type_) in self.CONFIG_DEFAULTS.items():
            raw = os.getenv(key)
            self.values[key] = default_value if raw is None else self._convert(key, raw, type_)

    @staticmethod
    def _convert(key: str, raw: str, type_: Type) -> Any:
        if type_ == bool:
            return raw.lower() in ('true', '1', 'yes')
        try:
            return type_(raw)
        except ValueError as e:
            raise ConfigError(f"Invalid value for {key}: {str(e)}")

    def _derive(self):
        # Attachment URLs point at the storage server unless a public URL is set
        public_url = self.values["MINIO_PUBLIC_URL"] or self.values["MINIO_SERVER"]
        if not public_url.startswith(("http://", "https://")):
            public_url = f"http://{public_url}"
        self.values["MINIO_PUBLIC_URL"] = public_url.rstrip('/')

    def __getattr__(self, name):
        if name in self.values:
            return self.values[name]
        raise AttributeError(f"'{self.__class__.__name__}' object has no attribute '{name}'")

# Initialize settings
try:
    settings = Settings()

    # Bearer token scheme for the HTTP surface
    oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token")

    DATABASE_URL = settings.DATABASE_URL
    DATABASE_NAME = settings.DATABASE_NAME
    DB_MAX_POOL_SIZE = settings.DB_MAX_POOL_SIZE
    DB_MAX_RECONNECT_ATTEMPTS = settings.DB_MAX_RECONNECT_ATTEMPTS
    DB_RECONNECT_DELAY = settings.DB_RECONNECT_DELAY
    DB_SERVER_SELECTION_TIMEOUT_MS = settings.DB_SERVER_SELECTION_TIMEOUT_MS
    DB_CONNECT_TIMEOUT_MS = settings.DB_CONNECT_TIMEOUT_MS

    JWT_SECRET_KEY = settings.JWT_SECRET_KEY
    JWT_ALGORITHM = settings.JWT_ALGORITHM

    MINIO_USERNAME = settings.MINIO_USERNAME
    MINIO_PASSWORD = settings.MINIO_PASSWORD
    MINIO_SERVER = settings.MINIO_SERVER
    MINIO_BUCKET = settings.MINIO_BUCKET
    MINIO_PUBLIC_URL = settings.MINIO_PUBLIC_URL
    ATTACHMENT_MAX_BYTES = settings.ATTACHMENT_MAX_BYTES

    TYPING_TIMEOUT_SECONDS = settings.TYPING_TIMEOUT_SECONDS
    MESSAGES_PAGE_SIZE = settings.MESSAGES_PAGE_SIZE
    CONVERSATIONS_PAGE_SIZE = settings.CONVERSATIONS_PAGE_SIZE
    SEARCH_RESULT_LIMIT = settings.SEARCH_RESULT_LIMIT

except ConfigError as e:
    # Print error and exit
    print(f"Configuration Error: {e}")
    import sys
    sys.exit(1)
