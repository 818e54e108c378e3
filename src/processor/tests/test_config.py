"""
Tests for processor configuration layering.
"""

import pytest

from core.constants import DEFAULT_DATABASE_URL
from core.errors import ConfigurationError
from processor.config import ProcessorConfig


class TestProcessorConfig:
    @pytest.fixture(autouse=True)
    def isolated_cwd(self, tmp_path, monkeypatch):
        """Keep settings files from the working tree out of the tests."""
        monkeypatch.chdir(tmp_path)
        return tmp_path

    def test_defaults(self):
        config = ProcessorConfig(argv=[])
        settings = config.settings

        assert settings.database_url == DEFAULT_DATABASE_URL
        assert settings.replace_existing_placements is True
        assert settings.ignored_review_types == ["AV Scan"]
        assert settings.id_seq_component_state == "COMPONENT_STATE_SEQ"
        assert settings.challenge_notification_events_topic == "challenge.notification.events"
        assert settings.submission_notification_create_topic == "submission.notification.create"
        assert settings.token_cache_time == 86400
        assert settings.auth0_client_id is None
        assert config.log_file == "logs/processor.log"

    def test_cli_overrides(self):
        config = ProcessorConfig(
            argv=[
                "--no-replace-existing-placements",
                "--ignored-review-types",
                '["AV Scan", "Iterative Review"]',
                "--database-url",
                "sqlite+aiosqlite:///ledger.db",
                "--log-file",
                "",
            ]
        )
        settings = config.settings

        assert settings.replace_existing_placements is False
        assert settings.ignored_review_types == ["AV Scan", "Iterative Review"]
        assert settings.database_url == "sqlite+aiosqlite:///ledger.db"
        assert config.log_file is None

    def test_config_file(self, isolated_cwd):
        config_path = isolated_cwd / "custom.toml"
        config_path.write_text(
            'database_url = "postgresql+asyncpg://ledger@db/ledger"\n'
            "replace_existing_placements = false\n"
            'ignored_review_types = ["Screening"]\n'
        )

        settings = ProcessorConfig(argv=["--config", str(config_path)]).settings

        assert settings.database_url == "postgresql+asyncpg://ledger@db/ledger"
        assert settings.replace_existing_placements is False
        assert settings.ignored_review_types == ["Screening"]

    def test_missing_config_file(self, isolated_cwd):
        with pytest.raises(FileNotFoundError):
            ProcessorConfig(argv=["--config", str(isolated_cwd / "nope.toml")])

    @pytest.mark.parametrize("value", ["AV Scan", '{"name": "AV Scan"}', "[1, 2]"])
    def test_invalid_ignored_review_types(self, value):
        with pytest.raises(ConfigurationError):
            ProcessorConfig(argv=["--ignored-review-types", value])
