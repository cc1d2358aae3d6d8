"""Tests for detection rules loading and validation."""

import pytest

from shieldwatch.common.config.rules import DetectionRules, load_rules, parse_rules
from shieldwatch.common.config.settings import Config
from shieldwatch.common.exceptions import ConfigurationError
from shieldwatch.core.types import Severity


class TestDefaults:
    """Tests for built-in defaults."""

    def test_default_thresholds(self):
        rules = DetectionRules()

        assert rules.unusual_hours.start_hour == 22
        assert rules.unusual_hours.end_hour == 6
        assert rules.unusual_locations.distance_threshold_km == 500
        assert rules.multi_device_login.device_count == 3
        assert rules.failed_attempts.threshold == 5
        assert rules.failed_attempts.time_window_minutes == 15
        assert rules.brute_force.attempts_per_minute == 10
        assert rules.brute_force.block_duration_minutes == 60
        assert rules.behavior_change.sensitivity_level == 2
        assert rules.simultaneous_logins.time_window_minutes == 5
        assert rules.correlation.throttle_minutes == 15
        assert rules.response.account_lock_minutes == 30
        assert rules.notifications.siem_min_severity == Severity.MEDIUM

    def test_bundled_rules_file_matches_defaults(self):
        """The shipped YAML restates the defaults."""
        rules = load_rules(Config().config_dir / "detection_rules.yaml")

        assert rules == DetectionRules()


class TestLoadRules:
    """Tests for load_rules()."""

    def test_missing_file_uses_defaults(self, tmp_path):
        rules = load_rules(tmp_path / "absent.yaml")

        assert rules == DetectionRules()

    def test_partial_file_overrides_only_given_keys(self, tmp_path):
        rules_file = tmp_path / "rules.yaml"
        rules_file.write_text(
            "failed_attempts:\n"
            "  threshold: 3\n"
            "correlation:\n"
            "  throttle_minutes: 5\n"
        )

        rules = load_rules(rules_file)

        assert rules.failed_attempts.threshold == 3
        assert rules.failed_attempts.time_window_minutes == 15
        assert rules.correlation.throttle_minutes == 5
        assert rules.brute_force.attempts_per_minute == 10

    def test_empty_file_uses_defaults(self, tmp_path):
        rules_file = tmp_path / "rules.yaml"
        rules_file.write_text("")

        assert load_rules(rules_file) == DetectionRules()

    def test_malformed_yaml_raises(self, tmp_path):
        rules_file = tmp_path / "rules.yaml"
        rules_file.write_text("failed_attempts: [threshold: 3\n")

        with pytest.raises(ConfigurationError):
            load_rules(rules_file)

    def test_out_of_range_value_raises(self, tmp_path):
        rules_file = tmp_path / "rules.yaml"
        rules_file.write_text("behavior_change:\n  sensitivity_level: 7\n")

        with pytest.raises(ConfigurationError) as exc_info:
            load_rules(rules_file)

        assert exc_info.value.code == "CONFIG_ERROR"


class TestParseRules:
    """Tests for parse_rules()."""

    def test_none_yields_defaults(self):
        assert parse_rules(None) == DetectionRules()

    def test_severity_floor_parsed_from_string(self):
        rules = parse_rules({"notifications": {"siem_min_severity": "high"}})

        assert rules.notifications.siem_min_severity == Severity.HIGH

    def test_unknown_severity_rejected(self):
        with pytest.raises(ConfigurationError):
            parse_rules({"notifications": {"siem_min_severity": "urgent"}})
