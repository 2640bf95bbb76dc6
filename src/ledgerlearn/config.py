"""
Configuration management (SSOT).

This module defines ALL configuration for the ledgerlearn application.
All config keys are defined here; no other module should invent config keys.

Key invariants:
- The model server (Ollama) is an external collaborator; the master switch is off by default
- Page images come from exactly one page source (filesystem or HTTP)
- Prediction thresholds are read from here, never hard-coded in callers
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

# Model-reported confidence is never trusted above this
MAX_AI_CONFIDENCE = 0.85
# Runner-up candidates returned next to a prediction
MAX_ALTERNATIVES = 3


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class LLMConfig:
    """Local LLM (Ollama) configuration.

    SSOT for LLM settings:
    - enabled: Master switch (default OFF)
    - ollama_url: Can be localhost, LAN IP, or remote URL
    - auth_header: Optional auth header for proxied deployments
    - model_vision: Multimodal model used for page boundary classification
    - max_concurrent: Concurrency limiter for queue management
    """

    # Master enable/disable (SSOT: single enforcement point)
    enabled: bool = False
    # Ollama server URL (supports localhost, LAN, remote)
    ollama_url: str = "http://localhost:11434"
    # Optional authentication header for proxied deployments
    # Format: "Bearer <token>" or custom header value
    auth_header: str | None = None
    # Fast model (default) for account inference
    model_fast: str = "qwen2.5:3b-instruct-q4_K_M"
    # Fallback model (for hard cases)
    model_fallback: str = "qwen2.5:7b-instruct-q4_K_M"
    # Vision model for page classification
    model_vision: str = "qwen2.5vl:7b"
    # Request timeout (seconds)
    timeout_seconds: int = 30
    # Cache TTL (days)
    cache_ttl_days: int = 30
    # Maximum concurrent LLM requests (queue/semaphore)
    max_concurrent: int = 2

    def is_remote(self) -> bool:
        """Check if Ollama URL is remote (not localhost)."""
        url_lower = self.ollama_url.lower()
        return not any(
            local in url_lower
            for local in ["localhost", "127.0.0.1", "::1", "host.docker.internal"]
        )


@dataclass
class PageSourceConfig:
    """Where pre-extracted page images are read from.

    - kind "filesystem": images live next to the upload under `root`
    - kind "http": images are fetched from `base_url` with an optional token
    """

    kind: str = "filesystem"
    root: Path = field(default_factory=lambda: Path("data/uploads"))
    base_url: str | None = None
    token: str | None = None
    # Upper bound on pages probed per upload
    max_pages: int = 100
    timeout_seconds: int = 30
    max_retries: int = 3


@dataclass
class PredictionConfig:
    """Account prediction thresholds."""

    # AI fallback runs only when no candidate reaches this confidence
    ai_trigger_threshold: float = 0.7
    # Ceiling applied to model-reported confidence
    ai_confidence_cap: float = 0.85
    # Number of runner-up candidates returned as alternatives
    max_alternatives: int = 3


@dataclass
class Config:
    """Application configuration (SSOT).

    All configuration is centralized here. No other module should define
    configuration keys or defaults.
    """

    llm: LLMConfig = field(default_factory=LLMConfig)
    pages: PageSourceConfig = field(default_factory=PageSourceConfig)
    prediction: PredictionConfig = field(default_factory=PredictionConfig)
    state_db_path: Path = field(default_factory=lambda: Path("data/state.db"))

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if self.llm.enabled and not self.llm.ollama_url:
            errors.append("llm.ollama_url is required when LLM is enabled")
        if self.llm.max_concurrent < 1:
            errors.append("llm.max_concurrent must be >= 1")

        if self.pages.kind not in ("filesystem", "http"):
            errors.append(f"pages.kind must be 'filesystem' or 'http', got '{self.pages.kind}'")
        if self.pages.kind == "http" and not self.pages.base_url:
            errors.append("pages.base_url is required when pages.kind is 'http'")
        if self.pages.max_pages < 1:
            errors.append("pages.max_pages must be >= 1")

        if not 0.0 <= self.prediction.ai_confidence_cap <= MAX_AI_CONFIDENCE:
            errors.append(
                f"prediction.ai_confidence_cap must be within [0, {MAX_AI_CONFIDENCE}]"
            )
        if not 0.0 <= self.prediction.ai_trigger_threshold <= 1.0:
            errors.append("prediction.ai_trigger_threshold must be within [0, 1]")
        if not 0 <= self.prediction.max_alternatives <= MAX_ALTERNATIVES:
            errors.append(f"prediction.max_alternatives must be within [0, {MAX_ALTERNATIVES}]")

        return errors

    def ensure_valid(self) -> None:
        """Raise ConfigValidationError if validate() reports problems."""
        errors = self.validate()
        if errors:
            raise ConfigValidationError("; ".join(errors))


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    Environment variables can override config values:
    - LEDGERLEARN_STATE_DB
    - LEDGERLEARN_LLM_ENABLED (true/false)
    - OLLAMA_URL
    - OLLAMA_MODEL (fast model name)
    - OLLAMA_MODEL_FALLBACK (fallback model name)
    - OLLAMA_VISION_MODEL (page classification model)
    - OLLAMA_TIMEOUT (request timeout in seconds)
    - LEDGERLEARN_PAGE_ROOT
    - LEDGERLEARN_PAGE_URL (switches the page source to HTTP)
    - LEDGERLEARN_PAGE_TOKEN
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    # LLM config
    llm_data = data.get("llm", {})
    llm_enabled_env = os.environ.get("LEDGERLEARN_LLM_ENABLED", "").lower()
    llm_enabled = llm_data.get("enabled", False)
    if llm_enabled_env == "true":
        llm_enabled = True
    elif llm_enabled_env == "false":
        llm_enabled = False

    llm = LLMConfig(
        enabled=llm_enabled,
        ollama_url=os.environ.get(
            "OLLAMA_URL", llm_data.get("ollama_url", "http://localhost:11434")
        ),
        auth_header=os.environ.get("OLLAMA_AUTH_HEADER", llm_data.get("auth_header")),
        model_fast=os.environ.get(
            "OLLAMA_MODEL", llm_data.get("model_fast", "qwen2.5:3b-instruct-q4_K_M")
        ),
        model_fallback=os.environ.get(
            "OLLAMA_MODEL_FALLBACK", llm_data.get("model_fallback", "qwen2.5:7b-instruct-q4_K_M")
        ),
        model_vision=os.environ.get(
            "OLLAMA_VISION_MODEL", llm_data.get("model_vision", "qwen2.5vl:7b")
        ),
        timeout_seconds=int(os.environ.get(
            "OLLAMA_TIMEOUT", llm_data.get("timeout_seconds", 30)
        )),
        cache_ttl_days=llm_data.get("cache_ttl_days", 30),
        max_concurrent=llm_data.get("max_concurrent", 2),
    )

    # Page source config
    pages_data = data.get("pages", {})
    page_url = os.environ.get("LEDGERLEARN_PAGE_URL", pages_data.get("base_url"))
    pages = PageSourceConfig(
        kind=(
            "http"
            if os.environ.get("LEDGERLEARN_PAGE_URL")
            else pages_data.get("kind", "filesystem")
        ),
        root=Path(os.environ.get("LEDGERLEARN_PAGE_ROOT", pages_data.get("root", "data/uploads"))),
        base_url=page_url,
        token=os.environ.get("LEDGERLEARN_PAGE_TOKEN", pages_data.get("token")),
        max_pages=pages_data.get("max_pages", 100),
        timeout_seconds=pages_data.get("timeout_seconds", 30),
        max_retries=pages_data.get("max_retries", 3),
    )

    # Prediction config
    prediction_data = data.get("prediction", {})
    prediction = PredictionConfig(
        ai_trigger_threshold=prediction_data.get("ai_trigger_threshold", 0.7),
        ai_confidence_cap=prediction_data.get("ai_confidence_cap", 0.85),
        max_alternatives=prediction_data.get("max_alternatives", 3),
    )

    # State DB
    state_db = os.environ.get("LEDGERLEARN_STATE_DB", data.get("state_db_path", "data/state.db"))

    return Config(
        llm=llm,
        pages=pages,
        prediction=prediction,
        state_db_path=Path(state_db),
    )


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# ledgerlearn configuration
#
# Documents are split into jobs by a vision model and every transaction gets a
# predicted GL account. Human approvals and corrections feed the learning stores.

# Local LLM settings (Ollama)
# Supports localhost, LAN, or remote deployments
llm:
  enabled: false                           # Set to true to enable model calls
  ollama_url: "http://localhost:11434"     # Ollama server URL (localhost, LAN, or remote)
  auth_header: null                        # Optional auth header for proxied deployments
  model_fast: "qwen2.5:3b-instruct-q4_K_M"        # Account inference
  model_fallback: "qwen2.5:7b-instruct-q4_K_M"    # Fallback for account inference
  model_vision: "qwen2.5vl:7b"             # Page boundary classification
  timeout_seconds: 30
  cache_ttl_days: 30                       # Cache account inference results for this long
  max_concurrent: 2                        # Max concurrent LLM requests

# Page images (pre-extracted as <name>_p1.jpg, <name>_p2.jpg, ...)
pages:
  kind: "filesystem"                       # filesystem | http
  root: "data/uploads"
  base_url: null                           # Required for kind: http
  token: null
  max_pages: 100

# Account prediction
prediction:
  ai_trigger_threshold: 0.7                # Ask the model only below this confidence
  ai_confidence_cap: 0.85                  # Never trust the model above this
  max_alternatives: 3

# State database path
state_db_path: "data/state.db"
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
