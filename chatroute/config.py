"""Configuration management for chatroute.

Loads YAML settings (settings.yaml) and environment variables (.env)
into a Config object. Property getters provide safe access with
defaults for the bot prefix, the Signal transport, role assignments,
extensions and logging.

The dispatch core never reads configuration directly: the bootstrap
builds a CommandRegistry from ``Config.bot_prefix`` and hands it to
every command.

Key classes:
    Config: Central configuration manager.

Key functions:
    get_config: Singleton accessor for the bootstrap path.
"""

import os
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional

import structlog
import yaml
from dotenv import load_dotenv

logger = structlog.get_logger("chatroute.bot")

DEFAULT_BOT_PREFIX = "&"


class Config:
    """Central configuration manager for chatroute.

    Loads settings.yaml and .env from the config directory. Read-only
    after __init__.

    Args:
        config_dir: Path to the config directory. Defaults to
            ``<repo_root>/config/``.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        if config_dir is None:
            config_dir = Path(__file__).parent.parent / "config"
        self.config_dir = Path(config_dir)

        env_file = self.config_dir / ".env"
        if env_file.exists():
            load_dotenv(env_file)

        self.settings = self._load_yaml("settings.yaml")

    def _load_yaml(self, filename: str) -> dict:
        """Load a YAML configuration file."""
        filepath = self.config_dir / filename
        if filepath.exists():
            with open(filepath, "r") as f:
                return yaml.safe_load(f) or {}
        return {}

    # --- Dispatch ---

    @property
    def bot_prefix(self) -> str:
        """Global invocation prefix. Env var CHATROUTE_BOT_PREFIX takes precedence."""
        env_prefix = os.environ.get("CHATROUTE_BOT_PREFIX")
        if env_prefix is not None:
            return env_prefix
        prefix = self.settings.get("bot_prefix", DEFAULT_BOT_PREFIX)
        return str(prefix) if prefix is not None else DEFAULT_BOT_PREFIX

    @property
    def role_assignments(self) -> Dict[str, FrozenSet[str]]:
        """Actor id -> roles. Signal has no native roles, so they live here."""
        raw = self.settings.get("roles", {})
        if not isinstance(raw, dict):
            logger.error("roles_invalid_type", type=type(raw).__name__)
            return {}
        assignments = {}
        for actor_id, roles in raw.items():
            if isinstance(roles, str):
                roles = [roles]
            if not isinstance(roles, list):
                continue
            assignments[str(actor_id)] = frozenset(str(r) for r in roles)
        return assignments

    def roles_for(self, actor_id: str) -> FrozenSet[str]:
        return self.role_assignments.get(actor_id, frozenset())

    @property
    def bot_ids(self) -> FrozenSet[str]:
        """Actor ids treated as automated participants."""
        ids = self.settings.get("bot_ids", [])
        if not isinstance(ids, list):
            logger.error("bot_ids_invalid_type", type=type(ids).__name__)
            return frozenset()
        return frozenset(str(i) for i in ids)

    # --- Signal transport ---

    @property
    def signal_api_url(self) -> str:
        """Signal REST API URL. Env var SIGNAL_API_URL takes precedence."""
        return os.environ.get("SIGNAL_API_URL") or self.settings.get(
            "signal_api_url", "http://127.0.0.1:8080"
        )

    @property
    def signal_account(self) -> Optional[str]:
        """Registered account number. Env var SIGNAL_ACCOUNT takes precedence."""
        return os.environ.get("SIGNAL_ACCOUNT") or self.settings.get("signal_account")

    @property
    def styled_replies(self) -> bool:
        """Send replies with Signal text styling (bold titles, monospace)."""
        return bool(self.settings.get("styled_replies", True))

    # --- Extensions ---

    @property
    def extensions_dir(self) -> Path:
        configured = self.settings.get("extensions_dir")
        if configured:
            return Path(configured).expanduser()
        return Path(__file__).parent.parent / "extensions"

    @property
    def extension_allowlist(self) -> Optional[List[str]]:
        """If set, only these extension directories are loaded."""
        allowlist = self.settings.get("extension_allowlist")
        if allowlist is not None and not isinstance(allowlist, list):
            logger.error("extension_allowlist_invalid_type", type=type(allowlist).__name__)
            return None
        return allowlist

    # --- Logging ---

    @property
    def log_dir(self) -> Path:
        configured = self.settings.get("log_dir")
        if configured:
            return Path(configured).expanduser()
        return Path(__file__).parent.parent / "logs"

    @property
    def logging_level(self) -> str:
        """Global log level (default INFO). Controls console and combined file."""
        return self.settings.get("logging", {}).get("level", "INFO")

    @property
    def logging_subsystem_levels(self) -> dict:
        """Per-subsystem log level overrides. E.g. {"dispatch": "DEBUG"}."""
        return self.settings.get("logging", {}).get("subsystem_levels", {})

    @property
    def logging_max_file_size_mb(self) -> int:
        return self.settings.get("logging", {}).get("max_file_size_mb", 10)

    @property
    def logging_backup_count(self) -> int:
        return self.settings.get("logging", {}).get("backup_count", 5)

    def validate(self) -> List[str]:
        """Check settings at startup.

        Logs each problem and returns them. Never raises: the bot starts
        with defaults for anything invalid.
        """
        problems = []
        prefix = self.bot_prefix
        if not prefix:
            problems.append("bot_prefix is empty; every message starting with a command prefix matches")
        elif any(ch.isspace() for ch in prefix):
            problems.append("bot_prefix contains whitespace")

        raw_roles = self.settings.get("roles", {})
        if not isinstance(raw_roles, dict):
            problems.append("roles must be a mapping of actor id to role list")
        else:
            for actor_id, roles in raw_roles.items():
                if not isinstance(roles, (list, str)):
                    problems.append(f"roles for ...{str(actor_id)[-4:]} must be a list")

        if not self.signal_account:
            problems.append("signal_account is not set")

        for problem in problems:
            logger.warning("config_problem", problem=problem)
        return problems


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config
