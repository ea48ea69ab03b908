"""
Parser Settings

Environment-driven configuration for the statement parser.
"""

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_CONFIG_DIR = Path(__file__).parent / "config"
DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_CATEGORIZE_TIMEOUT = 30.0


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ParserSettings:
    """Runtime settings resolved from the environment."""

    config_dir: Path = DEFAULT_CONFIG_DIR
    anthropic_api_key: str | None = None
    model: str = DEFAULT_MODEL
    categorize_timeout: float = DEFAULT_CATEGORIZE_TIMEOUT
    use_claude: bool = True

    @classmethod
    def from_env(cls) -> "ParserSettings":
        config_dir = os.getenv("STATEMENT_PARSER_CONFIG_DIR")
        timeout = os.getenv("STATEMENT_PARSER_CATEGORIZE_TIMEOUT")
        return cls(
            config_dir=Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR,
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
            model=os.getenv("STATEMENT_PARSER_MODEL", DEFAULT_MODEL),
            categorize_timeout=float(timeout) if timeout else DEFAULT_CATEGORIZE_TIMEOUT,
            use_claude=_env_flag("STATEMENT_PARSER_USE_CLAUDE", True),
        )


def resolve_config_dir(config_dir: Path | str | None = None) -> Path:
    """Explicit directory, else STATEMENT_PARSER_CONFIG_DIR, else the bundled one."""
    if config_dir:
        return Path(config_dir)
    return ParserSettings.from_env().config_dir
