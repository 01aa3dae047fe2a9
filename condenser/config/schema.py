"""Configuration schema using Pydantic."""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CompressionConfig(BaseModel):
    """When and how a conversation gets compacted."""
    enabled: bool = True
    preserve_recent_count: int = Field(default=10, ge=0)
    compression_model_id: str = "gemini/gemini-2.5-flash-lite"
    compression_threshold: float = Field(default=0.7, gt=0, le=1)  # Fraction of the context window
    timeout_seconds: float = Field(default=300, gt=0)
    early_exit_reduction: float = Field(default=0.75, gt=0, le=1)  # Skip summarization above this


class FilterConfig(BaseModel):
    """Tool names and windows used by the deduplication filter."""
    read_tool: str = "readFile"
    write_tool: str = "writeFile"
    exploratory_tools: list[str] = Field(default_factory=lambda: ["glob", "listFiles", "codeSearch"])
    singleton_tools: list[str] = Field(default_factory=lambda: ["todoWrite", "exitPlanMode"])
    protection_window: int = Field(default=20, ge=0)
    keep_narration: bool = False  # Keep assistant text when all of its tool calls are dropped


class RewriterConfig(BaseModel):
    """Code payload rewriting."""
    enabled: bool = True
    line_threshold: int = Field(default=100, ge=1)


class Config(BaseSettings):
    """Root configuration for condenser."""
    model_config = SettingsConfigDict(env_prefix="CONDENSER_", env_nested_delimiter="__")

    compression: CompressionConfig = Field(default_factory=CompressionConfig)
    filter: FilterConfig = Field(default_factory=FilterConfig)
    rewriter: RewriterConfig = Field(default_factory=RewriterConfig)
    context_lengths: dict[str, int] = Field(default_factory=dict)  # Per-model overrides
    model: str = "gemini/gemini-2.5-flash-lite"  # Model the agent talks to
