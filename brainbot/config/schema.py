"""Configuration schema for brainbot."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


DEFAULT_HOME = Path.home() / ".brainbot"
DEFAULT_DATA_DIR = DEFAULT_HOME / "data"

# Bump when a migration is added to config/loader.py
CURRENT_SCHEMA_VERSION = 2


class ProviderConfig(BaseModel):
    """Configuration for a single LLM provider."""

    api_key: str = ""
    api_base: str = ""
    extra_headers: dict[str, str] = Field(default_factory=dict)


class AgentConfig(BaseModel):
    """LLM and resolution pipeline configuration."""

    model: str = "openrouter/openai/gpt-4o-mini"
    max_tokens: int = 1024
    temperature: float = 0.4
    react_max_iterations: int = 5
    react_tool_result_max_chars: int = 600
    message_limit: int = 1400
    route_max_chars: int = 180
    history_turns: int = 12
    image_model: str = "dall-e-3"
    image_size: str = "1024x1024"


class TelegramConfig(BaseModel):
    """Telegram channel configuration."""

    enabled: bool = False
    token: str = ""
    allow_from: list[str] = Field(default_factory=list)
    proxy: str = ""


class ChannelsConfig(BaseModel):
    """Channels configuration."""

    telegram: TelegramConfig = Field(default_factory=TelegramConfig)


class WebSearchConfig(BaseModel):
    """Web search configuration (Brave or Tavily)."""

    provider: str = "auto"  # auto, brave, tavily
    api_key: str = ""
    tavily_api_key: str = ""
    brave_base_url: str = "https://api.search.brave.com"
    tavily_base_url: str = "https://api.tavily.com"
    max_results: int = 3
    timeout: float = 12.0


class WebToolsConfig(BaseModel):
    """Web tools configuration."""

    search: WebSearchConfig = Field(default_factory=WebSearchConfig)


class EmailConfig(BaseModel):
    """Outgoing email configuration."""

    provider: str = "resend"  # resend, sendgrid
    from_address: str = "onboarding@resend.dev"
    resend_api_key: str = ""
    sendgrid_api_key: str = ""
    timeout: float = 15.0


class ToolsConfig(BaseModel):
    """Tools configuration."""

    web: WebToolsConfig = Field(default_factory=WebToolsConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)


class SchedulerConfig(BaseModel):
    """Time-driven trigger configuration."""

    status_enabled: bool = False
    status_interval_s: float = 30.0
    heartbeat_enabled: bool = True
    heartbeat_interval_s: float = 600.0
    proactive_enabled: bool = False
    proactive_interval_s: float = 3600.0
    check_interval_s: float = 15.0
    startup_delay_s: float = 5.0
    default_timezone: str = "UTC0"


class CronConfig(BaseModel):
    """Cron store limits."""

    max_jobs: int = 16
    missed_max: int = 10
    missed_lookback_hours: int = 48


class DispatcherConfig(BaseModel):
    """Pending-state lifetimes."""

    confirm_timeout_s: float = 30.0
    draft_timeout_s: float = 180.0


class HardwareConfig(BaseModel):
    """GPIO backend configuration."""

    backend: str = "simulated"
    led_pin: int = 2
    led_active_high: bool = True
    led_flash_ms: int = 180
    max_pin: int = 39


class FirmwareConfig(BaseModel):
    """Firmware update source."""

    github_repo: str = ""
    asset_suffix: str = ".bin"
    offer_ttl_s: float = 300.0
    install_command: str = ""
    check_on_start: bool = True


class BusConfig(BaseModel):
    """Handoff queue limits."""

    handoff_capacity: int = 64
    enqueue_timeout_s: float = 0.1


class EngineConfig(BaseModel):
    """Tick loop configuration."""

    tick_interval_s: float = 0.25
    stage_timeout_s: float = 120.0


class ApiConfig(BaseModel):
    """HTTP API server configuration."""

    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 18790


class DeliveryConfig(BaseModel):
    """Where scheduler and API replies are delivered."""

    channel: str = "cli"
    channel_id: str = "cli:local"


class Config(BaseSettings):
    """Root configuration for brainbot."""

    model_config = {"env_prefix": "BRAINBOT_", "env_nested_delimiter": "__"}

    schema_version: int = CURRENT_SCHEMA_VERSION
    data_dir: str = str(DEFAULT_DATA_DIR)
    providers: dict[str, ProviderConfig] = Field(
        default_factory=lambda: {"openrouter": ProviderConfig()}
    )
    agent: AgentConfig = Field(default_factory=AgentConfig)
    channels: ChannelsConfig = Field(default_factory=ChannelsConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    cron: CronConfig = Field(default_factory=CronConfig)
    dispatcher: DispatcherConfig = Field(default_factory=DispatcherConfig)
    hardware: HardwareConfig = Field(default_factory=HardwareConfig)
    firmware: FirmwareConfig = Field(default_factory=FirmwareConfig)
    bus: BusConfig = Field(default_factory=BusConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)

    @property
    def home_dir(self) -> Path:
        return DEFAULT_HOME

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir)

    @property
    def hosted_dir(self) -> Path:
        return self.data_path / "www"

    @property
    def sessions_dir(self) -> Path:
        return self.data_path / "sessions"
