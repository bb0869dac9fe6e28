"""Application configuration models with Pydantic validation."""

from pydantic import BaseModel, Field

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant working inside a Markdown notes vault. "
    "Answer concisely and use Markdown formatting when appropriate."
)


class AgentModeConfig(BaseModel):
    """Settings for autonomous multi-step task execution."""

    enabled: bool = Field(
        default=False,
        description="Whether agent mode is offered at all",
    )
    max_steps: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum planned steps, also the runaway ceiling for execution",
    )
    auto_approve: bool = Field(
        default=True,
        description="Apply parsed file operations without asking",
    )
    pause_on_error: bool = Field(
        default=True,
        description="Pause instead of failing the task when a step fails",
    )
    context_window_steps: int = Field(
        default=3,
        ge=0,
        le=20,
        description="Recent completed steps whose results are included in step prompts",
    )
    step_timeout_seconds: float = Field(
        default=60.0,
        ge=5,
        le=600,
        description="Per-step timeout for the backend call",
    )
    history_limit: int = Field(
        default=20,
        ge=0,
        le=200,
        description="Most recent chat messages passed to the backend",
    )


class BackendConfig(BaseModel):
    """Generative backend configuration.

    The API key is read from OPENROUTER_API_KEY and is never stored here.
    """

    model: str = Field(
        default="google/gemini-2.0-flash-001",
        description="Model in OpenRouter format: provider/model-name",
    )
    api_url: str = Field(
        default="https://openrouter.ai/api/v1/chat/completions",
        description="OpenAI-compatible chat completions endpoint",
    )
    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT)
    request_timeout: float = Field(
        default=30.0,
        ge=1,
        le=300,
        description="Connect/read timeout in seconds for each HTTP read",
    )


class AppConfig(BaseModel):
    """Root application configuration.

    Loaded from config.yaml and validated with Pydantic.
    """

    vault_path: str = Field(
        default="vault",
        description="Root directory of the notes vault the agent may modify",
    )
    data_dir: str = Field(
        default="data",
        description="Directory for persisted chat sessions",
    )
    backend: BackendConfig = Field(default_factory=BackendConfig)
    agent_mode: AgentModeConfig = Field(default_factory=AgentModeConfig)
    port: int = Field(
        default=5050,
        ge=1024,
        le=65535,
        description="Port for the Flask server",
    )
    debug: bool = Field(
        default=False,
        description="Enable Flask debug mode",
    )
