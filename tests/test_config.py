from pathlib import Path

import pytest

from giveawaybot.config import ConfigError, load_config


def write_config(tmp_path, body: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(body, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_minimal_uses_defaults(self, tmp_path):
        config = load_config(write_config(tmp_path, "token: abc\napplication_id: 42\n"))
        assert config.token == "abc"
        assert config.application_id == 42
        assert config.logging.level == "INFO"
        assert config.logging.logger_channel_id is None
        assert config.storage.path == Path("data") / "giveaways.sqlite"
        assert config.timers.expiry_poll_seconds == 10
        assert config.giveaways.min_duration_ms == 180_000
        assert config.giveaways.default_cooldown_ms == 60_000
        assert config.giveaways.min_cooldown_ms == 15_000
        assert config.giveaways.rate_limit_feedback == "reaction"
        assert config.permissions.admin_roles == []

    def test_full_file(self, tmp_path):
        body = """
token: abc
application_id: "42"
logging:
  level: DEBUG
  logger_channel_id: 555
storage:
  path: state/bot.sqlite
timers:
  expiry_poll_seconds: 5
  cooldown_sweep_minutes: 2
  cooldown_retention_seconds: 600
giveaways:
  min_duration_minutes: 1
  default_cooldown_seconds: 30
  min_cooldown_seconds: 20
  rate_limit_feedback: Reply
  rate_limit_reply_seconds: 5
  pending_ttl_minutes: 30
permissions:
  admin_roles: [1, "2"]
  development_guild_id: 99
"""
        config = load_config(write_config(tmp_path, body))
        assert config.application_id == 42
        assert config.logging.logger_channel_id == 555
        assert config.storage.path == Path("state/bot.sqlite")
        assert config.timers.cooldown_retention_seconds == 600
        assert config.giveaways.rate_limit_feedback == "reply"
        assert config.giveaways.pending_ttl_minutes == 30
        assert config.permissions.admin_roles == [1, 2]
        assert config.permissions.development_guild_id == 99

    def test_env_references(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GIVEAWAY_TOKEN", "from-env")
        monkeypatch.setenv("GIVEAWAY_APP", "77")
        path = write_config(
            tmp_path, "token: ${GIVEAWAY_TOKEN}\napplication_id: ${GIVEAWAY_APP}\n"
        )
        config = load_config(path)
        assert config.token == "from-env"
        assert config.application_id == 77

    def test_missing_env_reference(self, tmp_path, monkeypatch):
        monkeypatch.delenv("GIVEAWAY_MISSING", raising=False)
        path = write_config(tmp_path, "token: ${GIVEAWAY_MISSING}\napplication_id: 1\n")
        with pytest.raises(ConfigError, match="GIVEAWAY_MISSING"):
            load_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="does not exist"):
            load_config(tmp_path / "nope.yaml")

    @pytest.mark.parametrize(
        "body, message",
        [
            ("application_id: 1\n", "token"),
            ("token: abc\napplication_id: nope\n", "application_id"),
            ("- just\n- a list\n", "mapping"),
            (
                "token: abc\napplication_id: 1\ngiveaways: {rate_limit_feedback: shout}\n",
                "rate_limit_feedback",
            ),
            (
                "token: abc\napplication_id: 1\n"
                "giveaways: {default_cooldown_seconds: 10, min_cooldown_seconds: 15}\n",
                "default_cooldown_seconds",
            ),
            ("token: abc\napplication_id: 1\ntimers: {expiry_poll_seconds: 0}\n", "timers"),
            ("token: abc\napplication_id: 1\npermissions: {admin_roles: 5}\n", "admin_roles"),
        ],
    )
    def test_invalid_values(self, tmp_path, body, message):
        with pytest.raises(ConfigError, match=message):
            load_config(write_config(tmp_path, body))
