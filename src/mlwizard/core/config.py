"""Configuration management for mlwizard."""

import json
import logging
import os
from pathlib import Path
from typing import Any

from mlwizard.utils.validation import (
    ValidationError,
    validate_api_token,
    validate_positive_int,
    validate_positive_number,
    validate_url,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8000/api"
DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_SOFT_TIMEOUT = 60.0


class SettingsManager:
    """Manages user settings and configuration.

    Every getter resolves environment variable first, then the settings file,
    then a built-in default.
    """

    def __init__(self, settings_dir: str | None = None):
        self.settings_dir = Path(settings_dir or Path.home() / ".mlwizard")
        self.settings_file = self.settings_dir / "user-settings.json"
        self.session_file = self.settings_dir / "session.json"
        self.settings_dir.mkdir(parents=True, exist_ok=True)

    def load_user_settings(self) -> dict[str, Any]:
        """Load user settings from file."""
        if not self.settings_file.exists():
            return {}

        try:
            with open(self.settings_file, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable settings file: {e}")
            return {}

    def save_user_settings(self, settings: dict[str, Any]) -> None:
        """Save user settings to file."""
        try:
            with open(self.settings_file, "w", encoding="utf-8") as f:
                json.dump(settings, f, indent=2)
        except OSError as e:
            logger.warning(f"Could not save settings: {e}")

    def update_user_setting(self, key: str, value: Any) -> None:
        """Update a single user setting with validation.

        Raises:
            ValidationError: If the value is invalid for the given key
        """
        if key == "apiToken":
            value = validate_api_token(value)
        elif key == "baseURL":
            value = validate_url(value)
        elif key in ("pollInterval", "softTimeout"):
            value = validate_positive_number(value, key)
        elif key in ("maxPollErrors", "maxPollAttempts"):
            value = validate_positive_int(value, key)
        elif key == "verbose":
            value = bool(value)
        else:
            raise ValidationError(f"Unknown setting: {key}")

        settings = self.load_user_settings()
        settings[key] = value
        self.save_user_settings(settings)

    def get_api_token(self) -> str | None:
        """Get the bearer token from environment or settings."""
        token = os.getenv("MLWIZARD_API_TOKEN")
        if token and token.strip():
            return token.strip()

        settings = self.load_user_settings()
        return settings.get("apiToken")

    def get_base_url(self) -> str:
        """Get base URL from environment or settings.

        Returns:
            Base URL without trailing slash, defaults to DEFAULT_BASE_URL

        Note:
            Empty strings from environment variables are treated as not configured.
        """
        base_url = os.getenv("MLWIZARD_API_URL")
        if base_url and base_url.strip():
            return base_url.strip().rstrip("/")

        settings = self.load_user_settings()
        base_url = settings.get("baseURL")
        if base_url and base_url.strip():
            return base_url.strip().rstrip("/")

        return DEFAULT_BASE_URL

    def _get_number(self, env_var: str, key: str, default: float) -> float:
        raw = os.getenv(env_var)
        if raw:
            try:
                return validate_positive_number(raw, env_var)
            except ValidationError as e:
                logger.warning(f"{e}; falling back to settings")

        value = self.load_user_settings().get(key)
        if value is not None:
            try:
                return validate_positive_number(value, key)
            except ValidationError as e:
                logger.warning(f"{e}; using default {default}")

        return default

    def get_poll_interval(self) -> float:
        """Seconds between experiment status checks."""
        return self._get_number(
            "MLWIZARD_POLL_INTERVAL", "pollInterval", DEFAULT_POLL_INTERVAL
        )

    def get_soft_timeout(self) -> float:
        """Seconds of polling before the "taking longer than expected" notice."""
        return self._get_number(
            "MLWIZARD_SOFT_TIMEOUT", "softTimeout", DEFAULT_SOFT_TIMEOUT
        )

    def _get_limit(self, env_var: str, key: str) -> int | None:
        raw = os.getenv(env_var)
        if raw:
            try:
                return validate_positive_int(raw, env_var)
            except ValidationError as e:
                logger.warning(f"{e}; falling back to settings")

        value = self.load_user_settings().get(key)
        if value is not None:
            try:
                return validate_positive_int(value, key)
            except ValidationError as e:
                logger.warning(f"{e}; polling without a limit")

        return None

    def get_max_poll_errors(self) -> int | None:
        """Consecutive failed status checks before a run is marked failed.

        None (the default) keeps retrying until the run finishes.
        """
        return self._get_limit("MLWIZARD_MAX_POLL_ERRORS", "maxPollErrors")

    def get_max_poll_attempts(self) -> int | None:
        """Total status checks before giving up; None means unlimited."""
        return self._get_limit("MLWIZARD_MAX_POLL_ATTEMPTS", "maxPollAttempts")

    def get_verbose_mode(self) -> bool:
        """Get verbose/debug mode setting.

        Note:
            Checks MLWIZARD_VERBOSE environment variable first, then settings file.
            Accepts: "1", "true", "yes" (case-insensitive)
        """
        verbose_env = os.getenv("MLWIZARD_VERBOSE", "").lower()
        if verbose_env in ("1", "true", "yes"):
            return True

        settings = self.load_user_settings()
        return bool(settings.get("verbose", False))

    def load_session(self) -> dict[str, Any]:
        """Load the persisted wizard session, or an empty dict."""
        if not self.session_file.exists():
            return {}
        try:
            with open(self.session_file, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Discarding unreadable session file: {e}")
            return {}

    def save_session(self, data: dict[str, Any]) -> None:
        """Persist the wizard session."""
        try:
            with open(self.session_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.warning(f"Could not save session: {e}")
