"""
Netron Configuration Core - Device Configuration for Netron DMX Gateways

This package loads the configuration of a Netron Ethernet/DMX gateway,
translates it for the operator, validates changes locally and saves
them back to the device.

Key Components:
- DeviceManager: High-level facade for loading and saving
- DeviceAggregator: Bulk load and in-memory device state
- ValueCodec: Raw device values <-> operator values
- PortGraph: Clone relationships and port validation
- HttpDeviceTransport: JSON documents and form posts over HTTP

Usage:
    from netron import DeviceManager, load_settings

    manager = DeviceManager.from_settings(load_settings())
    result = await manager.load()
    await manager.save_port(0, {"ptMode": "Output", "ptUniverse": 1})

Transport:
    Documents are fetched as JSON files; saves are form-encoded posts
    terminated by EndFlag=1.

Version: 0.1.0
"""

from .types import (
    EMPTY,
    is_empty,
    PortMode,
    Protocol,
    MergeMode,
    InputSource,
    TriggerSource,
    RemoteAction,
    AddressMode,
    IdentifyStatus,
    CloneStatus,
    DocumentKey,
    Endpoint,
    ValidationError,
    PortValidationError,
    CueValidationError,
    FormValidationError,
    DmxPort,
    Cue,
    Preset,
    UserPreset,
    RemoteInput,
    Choice,
    CloneCandidate,
    LoadResult,
    SaveStatus,
    SaveResult,
)

from .transport import (
    DeviceTransport,
    HttpDeviceTransport,
    FixtureTransport,
    TransportError,
    TransportTimeoutError,
    TransportConnectionError,
    TransportHttpError,
    BulkLoadError,
    create_transport,
)
from .codec import ValueCodec, FieldKind, FieldSpec, Gate
from .ports import PortGraph
from .cues import resolve_chains, chain_of
from .device import DeviceAggregator, DeviceState, DocumentError
from .feedback import FeedbackCenter, Notification, NotificationLevel
from .poller import StatusPoller
from .preferences import PreferenceStore, MemoryPreferenceStore, JsonFilePreferenceStore
from .config import Settings, load_settings, save_settings
from .manager import DeviceManager

__all__ = [
    # Types
    "EMPTY",
    "is_empty",
    "PortMode",
    "Protocol",
    "MergeMode",
    "InputSource",
    "TriggerSource",
    "RemoteAction",
    "AddressMode",
    "IdentifyStatus",
    "CloneStatus",
    "DocumentKey",
    "Endpoint",
    "ValidationError",
    "PortValidationError",
    "CueValidationError",
    "FormValidationError",
    "DmxPort",
    "Cue",
    "Preset",
    "UserPreset",
    "RemoteInput",
    "Choice",
    "CloneCandidate",
    "LoadResult",
    "SaveStatus",
    "SaveResult",
    # Transport
    "DeviceTransport",
    "HttpDeviceTransport",
    "FixtureTransport",
    "TransportError",
    "TransportTimeoutError",
    "TransportConnectionError",
    "TransportHttpError",
    "BulkLoadError",
    "create_transport",
    # Rules
    "ValueCodec",
    "FieldKind",
    "FieldSpec",
    "Gate",
    "PortGraph",
    "resolve_chains",
    "chain_of",
    # State
    "DeviceAggregator",
    "DeviceState",
    "DocumentError",
    # Feedback and polling
    "FeedbackCenter",
    "Notification",
    "NotificationLevel",
    "StatusPoller",
    # Preferences and settings
    "PreferenceStore",
    "MemoryPreferenceStore",
    "JsonFilePreferenceStore",
    "Settings",
    "load_settings",
    "save_settings",
    # Manager
    "DeviceManager",
]

__version__ = "0.1.0"
