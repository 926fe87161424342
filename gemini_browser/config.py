"""
Configuration management for Gemini Browser.

Provides the configuration dataclass, environment variable loading and
layered resolution: defaults < project rc file < environment < preset < CLI.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from .errors import ConfigError

# Load environment variables from .env file if present
load_dotenv()


PROJECT_CONFIG_FILENAME = ".gemini-browserrc.json"

API_KEY_HELP = (
    "GEMINI_API_KEY not set\n\n"
    "Get an API key: https://aistudio.google.com/apikey\n"
    "Create .env file and add: GEMINI_API_KEY=your_key_here"
)


def get_project_config_path(project_dir: Optional[Path] = None) -> Path:
    """Get the path to the project config file."""
    return Path(project_dir or Path.cwd()) / PROJECT_CONFIG_FILENAME


# Default configuration values
DEFAULTS: dict[str, Any] = {
    "model": "gemini-2.5-flash",
    "max_steps": 30,
    "thinking_budget": 1024,
    "request_delay_ms": 1000,
    "temperature": 0.2,
    "request_timeout": 60.0,
    "interactive": True,
    "mcp_command": "npx",
    "mcp_args": ["chrome-devtools-mcp@latest"],
}

# Keys that may appear in rc files, presets and CLI overrides
CONFIG_KEYS = (
    "model",
    "max_steps",
    "thinking_budget",
    "request_delay_ms",
    "temperature",
    "request_timeout",
    "interactive",
    "schema",
    "mcp_command",
    "mcp_args",
    "log_dir",
)


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").lower() in ("1", "true", "yes")


@dataclass
class AgentConfig:
    """Configuration for the browser agent."""

    # LLM settings
    api_key: str = field(default_factory=lambda: os.getenv("GEMINI_API_KEY", ""))
    model: str = DEFAULTS["model"]
    base_url: Optional[str] = None
    thinking_budget: int = DEFAULTS["thinking_budget"]
    temperature: float = DEFAULTS["temperature"]
    request_delay_ms: int = DEFAULTS["request_delay_ms"]
    request_timeout: float = DEFAULTS["request_timeout"]

    # Agent settings
    max_steps: int = DEFAULTS["max_steps"]
    interactive: bool = DEFAULTS["interactive"]

    # Structured output
    schema: Optional[str] = None
    response_schema: Optional[dict[str, Any]] = None

    # Automation backend
    mcp_command: str = DEFAULTS["mcp_command"]
    mcp_args: list[str] = field(default_factory=lambda: list(DEFAULTS["mcp_args"]))

    # Output
    quiet: bool = False
    debug: bool = field(default_factory=lambda: _env_flag("GEMINI_BROWSER_DEBUG"))
    log_dir: Optional[Path] = None

    def __post_init__(self):
        if self.max_steps < 1:
            raise ConfigError("max_steps must be a positive number")
        if self.log_dir is not None:
            self.log_dir = Path(self.log_dir).expanduser()

    def validate(self) -> None:
        """Check settings that can only be verified before a run.

        Raises:
            ConfigError: If the API key is missing
        """
        if not self.api_key:
            raise ConfigError(API_KEY_HELP)


def parse_positive_int(value: Any, name: str = "value") -> int:
    """Parse a value as a positive integer.

    Raises:
        ConfigError: If the value is not a positive integer
    """
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a positive number") from None
    if parsed < 1:
        raise ConfigError(f"{name} must be a positive number")
    return parsed


def load_config_file(path: Path) -> Optional[dict[str, Any]]:
    """Load configuration from a JSON file.

    Returns:
        The parsed config, or None if the file does not exist

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    if not path.exists():
        return None

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Failed to load config from {path}: expected a JSON object")
    return data


def load_env_config() -> dict[str, Any]:
    """Read configuration overrides from environment variables."""
    config: dict[str, Any] = {}

    model = os.getenv("GEMINI_MODEL")
    if model:
        config["model"] = model

    budget = os.getenv("GEMINI_THINKING_BUDGET")
    if budget:
        try:
            config["thinking_budget"] = int(budget)
        except ValueError:
            raise ConfigError("GEMINI_THINKING_BUDGET must be an integer") from None

    return config


def merge_configs(*configs: Optional[dict[str, Any]]) -> dict[str, Any]:
    """Merge configurations, later ones taking precedence.

    None entries and None values are skipped. ``presets`` maps are merged
    by name rather than replaced.
    """
    merged: dict[str, Any] = {}

    for config in configs:
        if not config:
            continue

        for key in CONFIG_KEYS:
            if config.get(key) is not None:
                merged[key] = config[key]

        if config.get("presets"):
            merged["presets"] = {**merged.get("presets", {}), **config["presets"]}

    return merged


def apply_preset(config: dict[str, Any], preset_name: str) -> dict[str, Any]:
    """Apply a named preset on top of a configuration.

    Raises:
        ConfigError: If the preset does not exist
    """
    presets = config.get("presets") or {}
    if preset_name not in presets:
        available = ", ".join(presets) if presets else "none"
        raise ConfigError(f'Preset "{preset_name}" not found. Available presets: {available}')

    return merge_configs(config, presets[preset_name])


def load_schema(schema_path: str | Path) -> dict[str, Any]:
    """Load a response schema from a JSON file.

    The file holds either the schema itself or an object with a single
    ``schema`` key.

    Raises:
        ConfigError: If the file is missing or not a JSON object schema
    """
    path = Path(schema_path).expanduser()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to load schema from {schema_path}: {e}") from e

    if isinstance(data, dict) and set(data) == {"schema"}:
        data = data["schema"]

    if not isinstance(data, dict) or "type" not in data:
        raise ConfigError(
            f"Failed to load schema from {schema_path}: expected a JSON object with a \"type\""
        )
    return data


def resolve_config(
    cli_config: Optional[dict[str, Any]] = None,
    preset_name: Optional[str] = None,
    project_dir: Optional[Path] = None,
    quiet: bool = False,
    debug: bool = False,
) -> AgentConfig:
    """Resolve the final configuration from all sources.

    Args:
        cli_config: Values given on the command line (None means unset)
        preset_name: Optional preset from the rc file
        project_dir: Directory holding the rc file (cwd if None)
        quiet: Suppress console output
        debug: Enable verbose logging

    Returns:
        The resolved AgentConfig, with any response schema loaded
    """
    project_config = load_config_file(get_project_config_path(project_dir))
    merged = merge_configs(DEFAULTS, project_config, load_env_config())

    if preset_name:
        try:
            merged = apply_preset(merged, preset_name)
        except ConfigError as e:
            raise ConfigError(f"Preset error: {e}") from e

    merged = merge_configs(merged, cli_config)

    response_schema = load_schema(merged["schema"]) if merged.get("schema") else None

    return AgentConfig(
        model=merged["model"],
        max_steps=parse_positive_int(merged["max_steps"], "max_steps"),
        thinking_budget=int(merged["thinking_budget"]),
        request_delay_ms=int(merged["request_delay_ms"]),
        temperature=float(merged["temperature"]),
        request_timeout=float(merged["request_timeout"]),
        interactive=bool(merged["interactive"]),
        schema=merged.get("schema"),
        response_schema=response_schema,
        mcp_command=merged["mcp_command"],
        mcp_args=list(merged["mcp_args"]),
        log_dir=merged.get("log_dir"),
        quiet=quiet,
        debug=debug or _env_flag("GEMINI_BROWSER_DEBUG"),
    )
