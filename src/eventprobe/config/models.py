from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


class EventCheckSettings(BaseModel):
    """Timing of event checks (sync waits, background watches and their join)."""

    timeout_sec: float = 15  # Default timeout of check_has_event / check_has_event_async
    polling_interval_ms: int = 500  # Poll interval of every watch loop
    join_timeout_sec: float = 30.0  # Safety bound of the teardown join
    await_on_teardown: bool = True  # Join background checks after each test

    @property
    def polling_interval(self) -> float:
        return self.polling_interval_ms / 1000.0


class EventServerSettings(BaseModel):
    """
    Local HTTP endpoint that receives analytics batches from the app (directly or via proxy).

    Fields:
    - enabled: start the server for every test
    - host: interface to bind
    - port: fixed port; if not specified (or busy) a free port is chosen
    - paths: POST paths accepted as event batches
    """

    enabled: bool = True
    host: str = "127.0.0.1"
    port: int | None = None
    paths: list[str] = Field(default_factory=lambda: ["/event", "/m/batch"])


class ReportingSettings(BaseModel):
    """Configuration for Allure artifacts of event checks."""

    allure_dir: str = "artifacts/allure"  # Directory to store Allure results
    attach_events_on_success: bool = True  # Attach matched event JSON
    attach_events_on_fail: bool = True  # Attach expected/last-seen JSON and diff


class Settings(BaseSettings):
    """
    Main configuration class.

    Loads values from the following sources:
    - Environment variables (with prefix EVENTPROBE_)
    - Initialization values (e.g., from YAML)
    - .env file
    - Secret files
    """

    model_config = SettingsConfigDict(env_prefix="EVENTPROBE_", env_nested_delimiter="__")

    events: EventCheckSettings = Field(default_factory=EventCheckSettings)
    server: EventServerSettings = Field(default_factory=EventServerSettings)
    reporting: ReportingSettings = Field(default_factory=ReportingSettings)

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
        Loading priority:
        1. Environment variables
        2. Initialization values (e.g., from YAML)
        3. .env file
        4. Secret files
        """
        return (env_settings, init_settings, dotenv_settings, file_secret_settings)
