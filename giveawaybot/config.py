from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import os
import yaml


class ConfigError(RuntimeError):
    """Raised when the configuration file is invalid."""


RATE_LIMIT_FEEDBACK_MODES = ("reaction", "reply")


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    logger_channel_id: Optional[int] = None


@dataclass(slots=True)
class StorageConfig:
    path: Path = Path("data") / "giveaways.sqlite"


@dataclass(slots=True)
class TimersConfig:
    expiry_poll_seconds: int = 10
    cooldown_sweep_minutes: int = 10
    cooldown_retention_seconds: int = 3600


@dataclass(slots=True)
class GiveawayDefaults:
    min_duration_minutes: int = 3
    default_cooldown_seconds: int = 60
    min_cooldown_seconds: int = 15
    rate_limit_feedback: str = "reaction"
    rate_limit_reply_seconds: int = 3
    pending_ttl_minutes: int = 15

    @property
    def min_duration_ms(self) -> int:
        return self.min_duration_minutes * 60_000

    @property
    def default_cooldown_ms(self) -> int:
        return self.default_cooldown_seconds * 1000

    @property
    def min_cooldown_ms(self) -> int:
        return self.min_cooldown_seconds * 1000


@dataclass(slots=True)
class PermissionsConfig:
    admin_roles: List[int] = field(default_factory=list)
    development_guild_id: Optional[int] = None


@dataclass(slots=True)
class Config:
    token: str
    application_id: int
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    timers: TimersConfig = field(default_factory=TimersConfig)
    giveaways: GiveawayDefaults = field(default_factory=GiveawayDefaults)
    permissions: PermissionsConfig = field(default_factory=PermissionsConfig)


def _require(data: Dict[str, Any], key: str) -> Any:
    if key not in data:
        raise ConfigError(f"Missing required config key: {key}")
    return data[key]

def _resolve_env_value(value: str, key: str) -> str:
    trimmed = value.strip()
    if trimmed.startswith("${") and trimmed.endswith("}"):
        env_name = trimmed[2:-1].strip()
        if not env_name:
            raise ConfigError(f"Environment reference for '{key}' is empty.")
        env_value = os.getenv(env_name)
        if env_value is None:
            raise ConfigError(
                f"Environment variable '{env_name}' referenced by '{key}' is not set."
            )
        return env_value
    return value

def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    section = data.get(key) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"{key} must be a mapping.")
    return section


def _positive_int(data: Dict[str, Any], key: str, default: int, *, section: str) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"{section}.{key} must be a positive integer.")
    return value


def _parse_logging(data: Dict[str, Any]) -> LoggingConfig:
    level = str(data.get("level", "INFO"))
    logger_channel_id = data.get("logger_channel_id")
    if logger_channel_id is not None and not isinstance(logger_channel_id, int):
        raise ConfigError(
            "logging.logger_channel_id must be an integer channel ID or null."
        )
    return LoggingConfig(level=level, logger_channel_id=logger_channel_id)


def _parse_storage(data: Dict[str, Any]) -> StorageConfig:
    raw_path = data.get("path")
    if raw_path in (None, ""):
        return StorageConfig()
    return StorageConfig(path=Path(_resolve_env_value(str(raw_path), "storage.path")))


def _parse_timers(data: Dict[str, Any]) -> TimersConfig:
    return TimersConfig(
        expiry_poll_seconds=_positive_int(data, "expiry_poll_seconds", 10, section="timers"),
        cooldown_sweep_minutes=_positive_int(
            data, "cooldown_sweep_minutes", 10, section="timers"
        ),
        cooldown_retention_seconds=_positive_int(
            data, "cooldown_retention_seconds", 3600, section="timers"
        ),
    )


def _parse_giveaways(data: Dict[str, Any]) -> GiveawayDefaults:
    min_cooldown = _positive_int(data, "min_cooldown_seconds", 15, section="giveaways")
    default_cooldown = _positive_int(
        data, "default_cooldown_seconds", 60, section="giveaways"
    )
    if default_cooldown < min_cooldown:
        raise ConfigError(
            "giveaways.default_cooldown_seconds must not be lower than "
            "giveaways.min_cooldown_seconds."
        )
    feedback = str(data.get("rate_limit_feedback", "reaction")).strip().lower()
    if feedback not in RATE_LIMIT_FEEDBACK_MODES:
        raise ConfigError(
            "giveaways.rate_limit_feedback must be one of: "
            + ", ".join(RATE_LIMIT_FEEDBACK_MODES)
        )
    return GiveawayDefaults(
        min_duration_minutes=_positive_int(
            data, "min_duration_minutes", 3, section="giveaways"
        ),
        default_cooldown_seconds=default_cooldown,
        min_cooldown_seconds=min_cooldown,
        rate_limit_feedback=feedback,
        rate_limit_reply_seconds=_positive_int(
            data, "rate_limit_reply_seconds", 3, section="giveaways"
        ),
        pending_ttl_minutes=_positive_int(
            data, "pending_ttl_minutes", 15, section="giveaways"
        ),
    )


def _parse_permissions(data: Dict[str, Any]) -> PermissionsConfig:
    admin_roles_raw = data.get("admin_roles", [])
    if not isinstance(admin_roles_raw, list):
        raise ConfigError("permissions.admin_roles must be a list of role IDs.")
    admin_roles: List[int] = []
    for role_id in admin_roles_raw:
        try:
            admin_roles.append(int(role_id))
        except (TypeError, ValueError) as exc:
            raise ConfigError(
                f"permissions.admin_roles contains invalid role id: {role_id!r}"
            ) from exc
    dev_guild_raw = data.get("development_guild_id")
    development_guild_id: Optional[int]
    if dev_guild_raw in (None, "", 0):
        development_guild_id = None
    else:
        try:
            development_guild_id = int(dev_guild_raw)
        except (TypeError, ValueError) as exc:
            raise ConfigError(
                "permissions.development_guild_id must be an integer guild ID or null."
            ) from exc
        if development_guild_id <= 0:
            raise ConfigError(
                "permissions.development_guild_id must be a positive integer."
            )
    return PermissionsConfig(
        admin_roles=admin_roles, development_guild_id=development_guild_id
    )


def load_config(path: Path) -> Config:
    if not path.exists():
        raise ConfigError(f"Config file {path} does not exist.")

    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ConfigError("Configuration file must contain a mapping at the root.")

    token_raw = str(_require(data, "token"))
    token = _resolve_env_value(token_raw, "token").strip()
    if not token:
        raise ConfigError("token must not be empty.")
    application_id_raw = _require(data, "application_id")
    if isinstance(application_id_raw, str):
        application_id_raw = _resolve_env_value(application_id_raw, "application_id")
    try:
        application_id = int(application_id_raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError("application_id must be an integer.") from exc

    return Config(
        token=token,
        application_id=application_id,
        logging=_parse_logging(_section(data, "logging")),
        storage=_parse_storage(_section(data, "storage")),
        timers=_parse_timers(_section(data, "timers")),
        giveaways=_parse_giveaways(_section(data, "giveaways")),
        permissions=_parse_permissions(_section(data, "permissions")),
    )
