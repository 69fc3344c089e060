import os
import logging
from typing import Optional
import threading # For singleton lock

from .config import APP_VERSION, GRAPH_API_BASE_URL, HTTP_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

# Singleton instance and lock
_config_instance = None
_config_lock = threading.Lock()


class AppConfig:
    """Holds the runtime configuration, loaded once as a singleton."""
    def __init__(self):
        logger.debug("Initializing AppConfig instance...")

        self.app_version: str = APP_VERSION
        self.graph_api_base_url: str = GRAPH_API_BASE_URL
        self.http_timeout: float = float(HTTP_TIMEOUT_SECONDS)
        # Only needed when no per-user access token is supplied for Google
        self.service_account_json_string: Optional[str] = None

    def _load_provider_config(self):
        """Loads the provider endpoints and request timeout."""
        self.app_version = os.environ.get("TUTASKS_APP_VERSION", APP_VERSION).strip() or APP_VERSION
        self.graph_api_base_url = os.environ.get("GRAPH_API_BASE_URL", GRAPH_API_BASE_URL).rstrip('/')

        raw_timeout = os.environ.get("TUTASKS_HTTP_TIMEOUT")
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
                if timeout <= 0:
                    raise ValueError("timeout must be positive")
                self.http_timeout = timeout
            except ValueError:
                logger.warning(f"Invalid TUTASKS_HTTP_TIMEOUT '{raw_timeout}'. Using default of {HTTP_TIMEOUT_SECONDS}s.")
                self.http_timeout = float(HTTP_TIMEOUT_SECONDS)

        logger.info(f"Provider configuration loaded (version {self.app_version}, Graph {self.graph_api_base_url}, timeout {self.http_timeout}s)")

    def _load_service_account(self):
        """Loads the optional service account key.

        Priority: GOOGLE_APPLICATION_CREDENTIALS file path, then SERVICE_ACCOUNT_JSON env var.
        A missing key is not an error here; it only matters once a service account client is requested.
        """
        gac_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
        sa_json_env = os.environ.get("SERVICE_ACCOUNT_JSON")

        if gac_path:
            logger.info(f"GOOGLE_APPLICATION_CREDENTIALS path found: {gac_path}")
            try:
                with open(gac_path, 'r') as f:
                    self.service_account_json_string = f.read()
                logger.info(f"Successfully loaded service account JSON from file: {gac_path}")
            except FileNotFoundError:
                logger.error(f"Service account file specified by GOOGLE_APPLICATION_CREDENTIALS not found: {gac_path}")
                raise ValueError(f"Service account file not found: {gac_path}")
            except OSError as e:
                logger.error(f"Error reading service account file {gac_path}: {e}", exc_info=True)
                raise ValueError(f"Error reading service account file: {gac_path}") from e
        elif sa_json_env:
            logger.info("Using SERVICE_ACCOUNT_JSON environment variable for service account key.")
            self.service_account_json_string = sa_json_env
        else:
            logger.debug("No service account configured; Google clients must be built from access tokens.")

    def load(self):
        """Load all configuration sections."""
        logger.info("Loading tutasks configuration...")
        self._load_provider_config()
        self._load_service_account()
        logger.info("Configuration loading complete.")


def get_config() -> AppConfig:
    """Gets the singleton AppConfig instance, loading it on first call."""
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            # Double-check locking
            if _config_instance is None:
                logger.info("Creating and loading singleton AppConfig instance.")
                temp_instance = AppConfig()
                try:
                    temp_instance.load()
                    _config_instance = temp_instance
                except Exception as e:
                    logger.critical(f"Failed to load configuration during singleton creation: {e}", exc_info=True)
                    raise

    if _config_instance is None:
        logger.critical("Configuration instance is None after attempting initialization.")
        raise RuntimeError("Application configuration could not be initialized.")

    return _config_instance


def reset_config() -> None:
    """Drops the cached singleton so the next get_config() reloads from the environment."""
    global _config_instance
    with _config_lock:
        _config_instance = None
