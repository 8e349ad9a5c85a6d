"""Unit tests for BotanicalSettings and provider policy loading."""

from pathlib import Path

import pytest
import yaml

from botanical.config.provider_policies import (
    ProviderPolicy,
    builtin_policies,
    load_provider_policies,
)
from botanical.config.settings import BotanicalSettings


# ---------------------------------------------------------------------------
# BotanicalSettings
# ---------------------------------------------------------------------------


class TestBotanicalSettings:
    def test_loads_with_required_env_vars(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("BOTANICAL_SERVICE_KEY", "svc-key")
        settings = BotanicalSettings()
        assert settings.service_key == "svc-key"

    def test_defaults_are_correct(self):
        settings = BotanicalSettings()

        assert settings.port == 8002
        assert settings.log_level == "INFO"
        assert settings.trefle_api_key is None
        assert settings.perenual_api_key is None
        assert settings.trefle_api_url == "https://trefle.io/api/v1"
        assert settings.perenual_api_url == "https://perenual.com/api"
        assert settings.request_timeout_seconds == 10
        assert settings.max_attempts == 3
        assert settings.initial_backoff_seconds == 1.0
        assert settings.rate_limit_cooldown_seconds == 60
        assert settings.cb_failure_threshold == 5
        assert settings.cb_cooldown_seconds == 30
        assert settings.cb_max_cooldown_seconds == 300
        assert settings.health_probe_tokens == 30
        assert settings.alert_webhook_url is None
        assert settings.provider_policies_path.endswith("provider_policies.yaml")

    def test_env_prefix_is_botanical(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("BOTANICAL_PORT", "9000")
        monkeypatch.setenv("BOTANICAL_TREFLE_API_KEY", "tk")
        settings = BotanicalSettings()
        assert settings.port == 9000
        assert settings.trefle_api_key == "tk"

    def test_missing_service_key_raises(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("BOTANICAL_SERVICE_KEY", raising=False)
        with pytest.raises(Exception):
            BotanicalSettings()

    def test_max_attempts_validation(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("BOTANICAL_MAX_ATTEMPTS", "0")
        with pytest.raises(Exception):
            BotanicalSettings()


# ---------------------------------------------------------------------------
# ProviderPolicy model
# ---------------------------------------------------------------------------


class TestProviderPolicy:
    def test_default_values(self):
        policy = ProviderPolicy()
        assert policy.min_delay_ms == 500
        assert policy.page_size == 20
        assert policy.max_attempts is None
        assert policy.timeout_seconds is None

    def test_page_size_bounds(self):
        with pytest.raises(Exception):
            ProviderPolicy(page_size=0)
        with pytest.raises(Exception):
            ProviderPolicy(page_size=101)

    def test_builtin_policies_are_copies(self):
        first = builtin_policies()
        first["trefle"].min_delay_ms = 1
        assert builtin_policies()["trefle"].min_delay_ms == 500


# ---------------------------------------------------------------------------
# load_provider_policies
# ---------------------------------------------------------------------------


class TestLoadProviderPolicies:
    def test_loads_shipped_file(self):
        policies = load_provider_policies(BotanicalSettings().provider_policies_path)
        assert policies["perenual"].min_delay_ms == 1000
        assert policies["perenual"].timeout_seconds == 15
        assert policies["trefle"].page_size == 20

    def test_loads_valid_yaml(self, tmp_path: Path):
        yaml_file = tmp_path / "policies.yaml"
        yaml_file.write_text(
            yaml.safe_dump(
                {"providers": {"trefle": {"min_delay_ms": 250, "max_attempts": 5}}}
            )
        )
        policies = load_provider_policies(str(yaml_file))
        assert policies["trefle"].min_delay_ms == 250
        assert policies["trefle"].max_attempts == 5
        # Untouched providers keep their built-in policy
        assert policies["perenual"].min_delay_ms == 1000

    def test_missing_file_falls_back(self, tmp_path: Path):
        policies = load_provider_policies(str(tmp_path / "absent.yaml"))
        assert policies == builtin_policies()

    def test_malformed_yaml_falls_back(self, tmp_path: Path):
        yaml_file = tmp_path / "broken.yaml"
        yaml_file.write_text("providers: [unclosed")
        assert load_provider_policies(str(yaml_file)) == builtin_policies()

    def test_missing_providers_key_falls_back(self, tmp_path: Path):
        yaml_file = tmp_path / "other.yaml"
        yaml_file.write_text(yaml.safe_dump({"domains": {}}))
        assert load_provider_policies(str(yaml_file)) == builtin_policies()

    def test_invalid_entry_is_skipped(self, tmp_path: Path):
        yaml_file = tmp_path / "policies.yaml"
        yaml_file.write_text(
            yaml.safe_dump(
                {
                    "providers": {
                        "trefle": {"min_delay_ms": -5},
                        "perenual": {"min_delay_ms": 2000},
                    }
                }
            )
        )
        policies = load_provider_policies(str(yaml_file))
        assert policies["trefle"].min_delay_ms == 500
        assert policies["perenual"].min_delay_ms == 2000
