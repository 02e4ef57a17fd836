"""
Unit Tests for Netron Configuration

Tests for:
- Settings precedence (environment > file > defaults)
- Document and endpoint name overrides
- Settings persistence
"""

import pytest
import json

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from netron.types import DocumentKey, Endpoint
from netron.config import (
    DEFAULT_DOCUMENTS,
    DEFAULT_ENDPOINTS,
    Settings,
    load_settings,
    save_settings,
)


class TestLoadSettings:
    """Tests for load_settings."""

    def test_defaults_without_file(self, tmp_path):
        """Test defaults are used when no file or environment is set."""
        settings = load_settings(str(tmp_path / "missing.json"), environ={})

        assert settings.transport == "http"
        assert settings.timeout == 5.0
        assert settings.poll_interval == 1.0

    def test_file_overrides_defaults(self, tmp_path):
        """Test the settings file is merged over the defaults."""
        path = tmp_path / "netron-settings.json"
        path.write_text(json.dumps({
            "device_url": "http://10.0.0.5",
            "documents": {"cues": "Cue.json"},
        }))

        settings = load_settings(str(path), environ={})

        assert settings.device_url == "http://10.0.0.5"
        assert settings.document_names()[DocumentKey.CUES] == "Cue.json"
        assert settings.document_names()[DocumentKey.IP] == "IP.json"

    def test_environment_overrides_file(self, tmp_path):
        """Test environment variables win over the settings file."""
        path = tmp_path / "netron-settings.json"
        path.write_text(json.dumps({"timeout": 2.0}))

        settings = load_settings(str(path), environ={
            "NETRON_TIMEOUT": "9.5",
            "NETRON_DEVICE_URL": "http://2.0.0.1",
        })

        assert settings.timeout == 9.5
        assert settings.device_url == "http://2.0.0.1"

    def test_invalid_environment_ignored(self, tmp_path):
        """Test a non-numeric environment value is ignored."""
        settings = load_settings(str(tmp_path / "none.json"), environ={"NETRON_POLL_INTERVAL": "often"})
        assert settings.poll_interval == 1.0

    def test_corrupt_file_ignored(self, tmp_path):
        """Test an unreadable settings file falls back to defaults."""
        path = tmp_path / "netron-settings.json"
        path.write_text("{not json")
        assert load_settings(str(path), environ={}).device_url == Settings().device_url


class TestSettings:
    """Tests for the Settings dataclass."""

    def test_endpoint_overrides(self):
        """Test endpoint names can be overridden by key."""
        names = Settings(endpoints={"save-input": "save_input"}).endpoint_names()
        assert names[Endpoint.SAVE_INPUT] == "save_input"
        assert names[Endpoint.SAVE_PORT] == DEFAULT_ENDPOINTS[Endpoint.SAVE_PORT]

    def test_default_tables_complete(self):
        """Test every document and endpoint has a default name."""
        assert set(DEFAULT_DOCUMENTS) == set(DocumentKey)
        assert set(DEFAULT_ENDPOINTS) == set(Endpoint)

    def test_transport_options(self, tmp_path):
        """Test transport options follow the transport type."""
        assert Settings(device_url="http://1.2.3.4", timeout=1.0).transport_options() == {
            "base_url": "http://1.2.3.4",
            "timeout": 1.0,
        }
        fixture = Settings(transport="fixture", fixture_dir=str(tmp_path))
        assert fixture.transport_options() == {"directory": str(tmp_path)}

    def test_save_settings(self, tmp_path):
        """Test saved settings load back."""
        path = str(tmp_path / "netron-settings.json")
        assert save_settings(Settings(device_url="http://10.1.1.1"), path) is True
        assert load_settings(path, environ={}).device_url == "http://10.1.1.1"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
