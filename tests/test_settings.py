"""
Tests for workflow settings reducers and the cached settings reader.
"""

from unittest.mock import MagicMock

import pytest

from portal import settings as workflow_settings
from portal.catalog import INTEGRATION_KEYS
from portal.settings import SettingsError


class TestDefaults:

    def test_every_integration_disabled(self):
        defaults = workflow_settings.default_settings()
        assert len(INTEGRATION_KEYS) == 29
        assert set(defaults["integrations"]) == set(INTEGRATION_KEYS)
        assert not any(c["enabled"] for c in defaults["integrations"].values())

    def test_only_engagement_letter_automated(self):
        steps = workflow_settings.default_settings()["workflowSteps"]
        assert [k for k, v in steps.items() if v] == ["autoGenerateEngagementLetter"]

    def test_stored_values_win(self):
        merged = workflow_settings.with_defaults({
            "companyName": "Smith & Co",
            "integrations": {"xero": {"enabled": True, "apiKey": "k"}},
            "workflowSteps": {"autoCreateBillingEntry": True},
        })
        assert merged["companyName"] == "Smith & Co"
        assert merged["integrations"]["xero"] == {"enabled": True, "apiKey": "k"}
        assert merged["integrations"]["stripe"] == {"enabled": False}
        assert merged["workflowSteps"]["autoCreateBillingEntry"] is True
        assert merged["workflowSteps"]["autoGenerateEngagementLetter"] is True


class TestReducers:

    def test_toggle_integration(self):
        settings = workflow_settings.toggle_integration(None, "docuSign")
        assert settings["integrations"]["docuSign"]["enabled"] is True
        settings = workflow_settings.toggle_integration(settings, "docuSign")
        assert settings["integrations"]["docuSign"]["enabled"] is False

    def test_toggle_does_not_mutate_input(self):
        stored = {"integrations": {"docuSign": {"enabled": False}}}
        workflow_settings.toggle_integration(stored, "docuSign")
        assert stored["integrations"]["docuSign"]["enabled"] is False

    def test_update_config(self):
        settings = workflow_settings.update_integration_config(None, "stripe", "apiKey", "sk_test")
        assert settings["integrations"]["stripe"]["apiKey"] == "sk_test"

    def test_update_config_field_restricted(self):
        with pytest.raises(SettingsError):
            workflow_settings.update_integration_config(None, "stripe", "enabled", "true")

    def test_unknown_keys_rejected(self):
        with pytest.raises(SettingsError):
            workflow_settings.toggle_integration(None, "myspace")
        with pytest.raises(SettingsError):
            workflow_settings.toggle_workflow_step(None, "autoFileReturns")

    def test_toggle_workflow_step(self):
        settings = workflow_settings.toggle_workflow_step(None, "autoGenerateEngagementLetter")
        assert settings["workflowSteps"]["autoGenerateEngagementLetter"] is False
        assert workflow_settings.workflow_enabled(settings, "autoGenerateEngagementLetter") is False

    def test_validate_rejects_unknown_integration(self):
        with pytest.raises(SettingsError):
            workflow_settings.validate_settings({"integrations": {"myspace": {"enabled": True}}})


class TestConnectionCheck:

    def test_disabled_and_unconfigured(self):
        result = workflow_settings.check_connection(None, "karbon")
        assert result["success"] is False
        assert len(result["problems"]) == 2

    def test_ready(self):
        settings = workflow_settings.update_integration_config(None, "karbon", "apiKey", "key")
        settings = workflow_settings.toggle_integration(settings, "karbon")
        assert workflow_settings.check_connection(settings, "karbon") == {
            "integration": "karbon",
            "success": True,
            "problems": [],
        }


class TestCachedSettings:

    def test_cached_until_saved(self):
        store = MagicMock()
        store.get_settings.return_value = {"companyName": "First"}

        assert workflow_settings.load_settings(store)["companyName"] == "First"
        store.get_settings.return_value = {"companyName": "Second"}
        assert workflow_settings.load_settings(store)["companyName"] == "First"
        assert store.get_settings.call_count == 1

        workflow_settings.save_settings(store, {"companyName": "Second"}, "user-1")
        assert workflow_settings.load_settings(store)["companyName"] == "Second"
        store.save_settings.assert_called_once_with({"companyName": "Second"}, "user-1")

    def test_force_refresh(self):
        store = MagicMock()
        store.get_settings.return_value = {"companyName": "First"}
        workflow_settings.load_settings(store)
        workflow_settings.load_settings(store, force_refresh=True)
        assert store.get_settings.call_count == 2

    def test_never_saved_is_not_cached(self):
        store = MagicMock()
        store.get_settings.return_value = None
        assert workflow_settings.load_settings(store) is None
        workflow_settings.load_settings(store)
        assert store.get_settings.call_count == 2
