"""
Netron Configuration

Name tables for device documents and save endpoints, plus the client
settings (device address, timeouts, polling) resolved from defaults,
an optional JSON settings file and NETRON_* environment variables.

Precedence: environment > settings file > defaults.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional
import json
import logging
import os

from .types import DocumentKey, Endpoint

logger = logging.getLogger(__name__)


# ============================================================
# Device Name Tables
# ============================================================

# Hardware variant that exposes DMX input documents
VARIANT_MODEL = "NETRON RDM10"

DEFAULT_DOCUMENTS: Dict[DocumentKey, str] = {
    DocumentKey.SETTING: "Setting.json",
    DocumentKey.IP: "IP.json",
    DocumentKey.INDEX: "index.json",
    DocumentKey.DMX_PORTS: "DMXPorts.json",
    DocumentKey.IDENTIFY: "Identify.json",
    DocumentKey.PRESETS: "Presets.json",
    DocumentKey.USER_PRESETS: "UserPresets.json",
    DocumentKey.CUES: "Cues.json",
    DocumentKey.CUES_SETTING: "CuesSetting.json",
    DocumentKey.CUES_STATUS: "CuesStatus.json",
    DocumentKey.REMOTE_INPUTS: "RemoteInputs.json",
    DocumentKey.DMX_INPUT_TAB: "DMXInputab.json",
    DocumentKey.DMX_INPUT_MERGER: "DMXInputmerger.json",
}

VARIANT_DOCUMENTS = (DocumentKey.DMX_INPUT_TAB, DocumentKey.DMX_INPUT_MERGER)
BASE_DOCUMENTS = tuple(key for key in DocumentKey if key not in VARIANT_DOCUMENTS)

DEFAULT_ENDPOINTS: Dict[Endpoint, str] = {
    Endpoint.SET_IDENTIFY: "set_identify",
    Endpoint.SAVE_PRESET: "save_preset_netron",
    Endpoint.LOAD_PRESET: "load_preset_netron",
    Endpoint.SAVE_PORT: "save_dmx_port",
    Endpoint.SAVE_IP: "save_info",
    Endpoint.RUN_CUES: "run_cues",
    Endpoint.SAVE_CUES: "save_cues",
    Endpoint.EDIT_CUES: "edit_cues",
    Endpoint.SAVE_INPUT: "save_remote_input",
}

# Trailing marker appended to every form post
END_FLAG = ("EndFlag", 1)


# ============================================================
# Client Settings
# ============================================================

HOME_DIR = os.path.expanduser("~")
SETTINGS_FILE = os.path.join(HOME_DIR, "netron-settings.json")

DEFAULT_SETTINGS: Dict[str, Any] = {
    "device_url": "http://192.168.0.10",
    "transport": "http",
    "timeout": 5.0,
    "poll_interval": 1.0,
    "notification_duration": 2.0,
    "fixture_dir": None,
    "documents": {},
    "endpoints": {},
}

ENV_OVERRIDES = {
    "NETRON_DEVICE_URL": ("device_url", str),
    "NETRON_TRANSPORT": ("transport", str),
    "NETRON_TIMEOUT": ("timeout", float),
    "NETRON_POLL_INTERVAL": ("poll_interval", float),
    "NETRON_NOTIFICATION_DURATION": ("notification_duration", float),
    "NETRON_FIXTURE_DIR": ("fixture_dir", str),
}


@dataclass
class Settings:
    """
    Resolved client settings.

    Attributes:
        device_url: Base URL of the device web server
        transport: "http" or "fixture"
        timeout: Per-request timeout in seconds
        poll_interval: Status refresh period in seconds
        notification_duration: Seconds a save notification stays visible
        fixture_dir: Directory of JSON fixtures for the fixture transport
        documents: Document name overrides keyed by DocumentKey value
        endpoints: Endpoint name overrides keyed by Endpoint value
    """
    device_url: str = DEFAULT_SETTINGS["device_url"]
    transport: str = DEFAULT_SETTINGS["transport"]
    timeout: float = DEFAULT_SETTINGS["timeout"]
    poll_interval: float = DEFAULT_SETTINGS["poll_interval"]
    notification_duration: float = DEFAULT_SETTINGS["notification_duration"]
    fixture_dir: Optional[str] = None
    documents: Dict[str, str] = field(default_factory=dict)
    endpoints: Dict[str, str] = field(default_factory=dict)

    def document_names(self) -> Dict[DocumentKey, str]:
        """Default document table with overrides applied."""
        names = dict(DEFAULT_DOCUMENTS)
        for key, name in self.documents.items():
            names[DocumentKey(key)] = name
        return names

    def endpoint_names(self) -> Dict[Endpoint, str]:
        """Default endpoint table with overrides applied."""
        names = dict(DEFAULT_ENDPOINTS)
        for key, name in self.endpoints.items():
            names[Endpoint(key)] = name
        return names

    def transport_options(self) -> Dict[str, Any]:
        """Keyword arguments for create_transport()."""
        if self.transport == "fixture":
            return {"directory": self.fixture_dir or os.getcwd()}
        return {"base_url": self.device_url, "timeout": self.timeout}


def load_settings(path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> Settings:
    """
    Resolve settings from defaults, the JSON settings file and the environment.

    A missing or unreadable settings file is logged and ignored.

    Args:
        path: Settings file (defaults to ~/netron-settings.json)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Settings instance
    """
    path = path or SETTINGS_FILE
    environ = os.environ if environ is None else environ
    values = {key: (dict(value) if isinstance(value, dict) else value)
              for key, value in DEFAULT_SETTINGS.items()}

    try:
        if os.path.exists(path):
            with open(path, 'r') as f:
                saved = json.load(f)
            for key in saved:
                if key in values and isinstance(values[key], dict):
                    values[key].update(saved[key])
                elif key in values:
                    values[key] = saved[key]
    except (OSError, ValueError) as e:
        logger.warning(f"Error loading settings from {path}: {e}")

    for env_key, (key, cast) in ENV_OVERRIDES.items():
        raw = environ.get(env_key)
        if raw in (None, ""):
            continue
        try:
            values[key] = cast(raw)
        except ValueError:
            logger.warning(f"Ignoring invalid {env_key}={raw!r}")

    return Settings(**values)


def save_settings(settings: Settings, path: Optional[str] = None) -> bool:
    """Write settings to the JSON settings file."""
    path = path or SETTINGS_FILE
    try:
        with open(path, 'w') as f:
            json.dump(asdict(settings), f, indent=2)
        return True
    except OSError as e:
        logger.error(f"Error saving settings to {path}: {e}")
        return False
