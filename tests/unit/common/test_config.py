"""Tests for workflow policy configuration and logging setup."""

import logging

import pytest
import yaml

from releasegate.common.config import (
    DEFAULT_SCHEDULER_ROLES,
    WorkflowConfig,
    load_config,
    load_typed_config,
    parse_config,
)
from releasegate.common.logger import setup_from_settings, setup_logger
from releasegate.core.approval.states import DocumentType
from releasegate.core.config import Settings
from releasegate.db.models import AccountRole


class TestWorkflowConfig:
    """Tests for WorkflowConfig defaults."""

    def test_defaults(self):
        config = WorkflowConfig()

        assert config.scheduler_roles == DEFAULT_SCHEDULER_ROLES
        assert config.is_scheduler(AccountRole.HEAD)
        assert config.is_scheduler(AccountRole.MANAGER)
        assert not config.is_scheduler(AccountRole.DEVELOPER)
        assert not config.is_scheduler(None)

    def test_report_has_no_window(self):
        config = WorkflowConfig()
        assert config.has_window(DocumentType.DEPLOYMENT)
        assert config.has_window(DocumentType.PLAN)
        assert not config.has_window(DocumentType.REPORT)

    def test_instances_do_not_share_lists(self):
        first = WorkflowConfig()
        first.scheduler_roles.append(AccountRole.DEVELOPER)
        assert AccountRole.DEVELOPER not in WorkflowConfig().scheduler_roles


class TestParseConfig:
    """Tests for policy parsing."""

    def test_parse_policy(self, sample_policy):
        config = parse_config(sample_policy)

        assert config.scheduler_roles == [AccountRole.HEAD]
        assert config.recurrence_horizon_days == 90
        assert config.ban_listing_days == 14
        assert config.scheduled_types == {DocumentType.DEPLOYMENT, DocumentType.ROLLBACK}
        assert DocumentType.REPORT in config.windowless_types

    def test_flat_mapping(self):
        config = parse_config({"scheduler_roles": ["manager"], "ban_listing_days": "7"})
        assert config.scheduler_roles == [AccountRole.MANAGER]
        assert config.ban_listing_days == 7

    def test_missing_keys_use_defaults(self):
        config = parse_config({"workflow": {}})
        assert config == WorkflowConfig()

    def test_unknown_role(self):
        with pytest.raises(ValueError, match="scheduler_roles"):
            parse_config({"workflow": {"scheduler_roles": ["OWNER"]}})

    def test_unknown_document_type(self):
        with pytest.raises(ValueError, match="scheduled_types"):
            parse_config({"workflow": {"scheduled_types": ["HOTFIX"]}})


class TestLoadConfig:
    """Tests for YAML loading."""

    def test_load_with_env_expansion(self, tmp_path, monkeypatch, sample_policy):
        monkeypatch.setenv("RELEASE_HORIZON", "120")
        sample_policy["workflow"]["recurrence_horizon_days"] = "${RELEASE_HORIZON}"
        path = tmp_path / "releasegate.yaml"
        path.write_text(yaml.safe_dump(sample_policy))

        config = load_typed_config(str(path))

        assert config.recurrence_horizon_days == 120
        assert config.scheduler_roles == [AccountRole.HEAD]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "absent.yaml"))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(str(path)) == {}

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- one\n- two\n")
        with pytest.raises(TypeError):
            load_config(str(path))

    def test_no_path_gives_defaults(self):
        assert load_typed_config(None) == WorkflowConfig()


class TestSettings:
    """Tests for environment-driven settings."""

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("RELEASEGATE_DATABASE_URL", "sqlite:///./other.db")
        monkeypatch.setenv("RELEASEGATE_LOG_LEVEL", "DEBUG")

        settings = Settings()

        assert settings.database_url == "sqlite:///./other.db"
        assert settings.log_level == "DEBUG"


class TestSetupLogger:
    """Tests for logger setup."""

    def test_file_and_console(self, tmp_path):
        logger = setup_logger("releasegate-test-file", log_dir=str(tmp_path), level="debug")
        try:
            assert logger.level == logging.DEBUG
            assert len(logger.handlers) == 2
            logger.info("hello")
            assert (tmp_path / "releasegate-test-file.log").exists()
        finally:
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)

    def test_no_duplicate_handlers(self, tmp_path):
        name = "releasegate-test-console"
        try:
            setup_logger(name, log_dir=str(tmp_path), file_logging=False)
            logger = setup_logger(name, log_dir=str(tmp_path), file_logging=False)
            assert len(logger.handlers) == 1
        finally:
            logger = logging.getLogger(name)
            for handler in list(logger.handlers):
                logger.removeHandler(handler)

    def test_invalid_level(self):
        with pytest.raises(ValueError, match="Invalid log level"):
            setup_logger("releasegate-test-invalid", level="LOUD", file_logging=False)

    def test_debug_setting_overrides_level(self, tmp_path):
        settings = Settings(debug=True, log_level="WARNING", log_dir=str(tmp_path))
        logger = setup_from_settings(settings)
        try:
            assert logger.name == "releasegate"
            assert logger.level == logging.DEBUG
            assert not (tmp_path / "releasegate.log").exists()
        finally:
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
            logger.setLevel(logging.NOTSET)
