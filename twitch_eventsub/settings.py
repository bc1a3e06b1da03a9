from enum import Enum
from typing import Optional

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class TransportKind(str, Enum):
    """Supported connection adapters."""

    DIRECT = "direct"
    ENV_PORT = "env_port"
    REVERSE_PROXY = "reverse_proxy"
    MIDDLEWARE = "middleware"


class LogLevel(str, Enum):
    """Supported logging levels."""

    CRITICAL = "CRITICAL"
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"
    DEBUG = "DEBUG"
    NOTSET = "NOTSET"


class TestEnvironment(BaseSettings):
    """
    Test-specific environment settings.
    """

    model_config = SettingsConfigDict(
        env_file="./test/.env.test",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Test detection
    pytest_current_test: Optional[str] = Field(default=None, alias="PYTEST_CURRENT_TEST")
    ci: bool = Field(default=False, alias="CI")
    github_actions: bool = Field(default=False, alias="GITHUB_ACTIONS")

    # Test configuration
    eventsub_no_env_file: bool = Field(default=False, alias="EVENTSUB_NO_ENV_FILE")

    @property
    def is_test_environment(self) -> bool:
        """Check if we're running in a test environment."""
        return self.pytest_current_test is not None

    @property
    def is_ci_environment(self) -> bool:
        """Check if we're running in a CI environment."""
        return self.ci or self.github_actions


class SettingModel(BaseSettings):
    """
    Configuration model for the EventSub listener.
    Loads values from environment variables or a .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    # Twitch API credentials
    twitch_client_id: Optional[str] = Field(default=None)
    twitch_access_token: Optional[SecretStr] = Field(
        default=None, validation_alias=AliasChoices("TWITCH_ACCESS_TOKEN", "TWITCH_APP_TOKEN")
    )
    helix_base_url: str = Field(default="https://api.twitch.tv/helix")

    # Connection adapter settings
    eventsub_transport: TransportKind = Field(default=TransportKind.ENV_PORT)
    eventsub_hostname: Optional[str] = Field(default=None)
    eventsub_path_prefix: str = Field(default="")
    eventsub_port: int = Field(default=443, ge=0, le=65535)
    ssl_certfile: Optional[str] = Field(default=None)
    ssl_keyfile: Optional[str] = Field(default=None)
    eventsub_port_env_var: str = Field(default="PORT")
    trusted_proxy_host: str = Field(default="127.0.0.1")

    # Verification settings
    freshness_window_seconds: float = Field(default=600.0, gt=0)
    dedup_ttl_seconds: float = Field(default=600.0, gt=0)
    dedup_max_size: int = Field(default=10_000, ge=1)

    # Logging settings
    log_level: LogLevel = Field(default=LogLevel.INFO)
    log_file: Optional[str] = Field(default=None)
    log_dir: str = Field(default="logs")
    log_format: str = Field(default="%(asctime)s [%(levelname)8s] %(name)s: %(message)s")

    @field_validator("eventsub_path_prefix", mode="before")
    @classmethod
    def parse_path_prefix(cls, v):
        """Normalize the path prefix to ``""`` or ``/segment``."""
        if v is None:
            return ""
        if isinstance(v, str):
            stripped = v.strip().strip("/")
            return f"/{stripped}" if stripped else ""
        return v

    @field_validator("eventsub_transport", mode="before")
    @classmethod
    def parse_transport(cls, v):
        """Accept dashes as well as underscores (``env-port`` == ``env_port``)."""
        if isinstance(v, str):
            return v.strip().lower().replace("-", "_")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """
        Customize the settings sources to prioritize .env file over environment variables.
        This matches the behavior of load_dotenv(override=True) in the CLI entry.
        """
        return init_settings, dotenv_settings, env_settings, file_secret_settings


_settings: Optional[SettingModel] = None
_test_env: Optional[TestEnvironment] = None


def get_settings(
    env_file: Optional[str] = ".env", no_env_file: bool = False, force_reload: bool = False, **kwargs
) -> SettingModel:
    """
    Get the global settings instance.

    Parameters
    ----------
    env_file : Optional[str], optional
        Path to the .env file, by default ".env"
    no_env_file : bool, optional
        Whether to skip loading the .env file, by default False
    force_reload : bool, optional
        Whether to force a reload of the settings, by default False
    **kwargs
        Additional settings to override

    Returns
    -------
    SettingModel
        The settings instance
    """
    global _settings

    # Check if we should skip .env loading based on test environment settings
    test_env = get_test_environment()
    if test_env.eventsub_no_env_file:
        no_env_file = True

    if _settings is None or force_reload:
        actual_env_file = None if no_env_file else env_file
        _settings = SettingModel(_env_file=actual_env_file, **kwargs)
    return _settings


def get_test_environment(force_reload: bool = False) -> TestEnvironment:
    """
    Get the test environment settings instance.

    Parameters
    ----------
    force_reload : bool, optional
        Whether to force a reload of the test environment settings, by default False

    Returns
    -------
    TestEnvironment
        The test environment settings instance
    """
    global _test_env

    if _test_env is None or force_reload:
        _test_env = TestEnvironment()
    return _test_env


def is_test_environment() -> bool:
    """
    Check if we're running in a test environment.

    Returns
    -------
    bool
        True if running in test environment
    """
    return get_test_environment().is_test_environment
