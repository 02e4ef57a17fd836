"""
Netron Type Definitions - Dataclasses for Device Documents

This module contains the enums and dataclasses shared by the Netron
configuration core. These are data containers; the translation and
validation rules live in codec.py, ports.py and cues.py.

Classes:
    DmxPort: One physical DMX port (DMXPorts.json entry)
    Cue: One cue slot (Cues.json entry)
    Preset: Factory preset catalog entry
    UserPreset: User preset with owner lock and mutable name
    RemoteInput: External trigger mapped to an action
    CloneCandidate: One entry of a port's clone target list
    Choice: Selectable lookup table entry
    LoadResult: Outcome of a bulk device load
    SaveResult: Outcome of a save operation

Constants:
    EMPTY: Sentinel for "not applicable in this context"
    PortMode, Protocol, MergeMode, InputSource, TriggerSource, ...
"""

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Mapping
from enum import Enum, IntEnum


# ============================================================
# Empty Sentinel
# ============================================================

EMPTY_DISPLAY = "---"


class _EmptyType:
    """Marker returned by the codec when a field does not apply."""

    _instance: Optional["_EmptyType"] = None

    def __new__(cls) -> "_EmptyType":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "EMPTY"

    def __str__(self) -> str:
        return EMPTY_DISPLAY

    def __bool__(self) -> bool:
        return False


EMPTY = _EmptyType()


def is_empty(value: Any) -> bool:
    """True for the EMPTY sentinel and for missing values."""
    return value is EMPTY or value is None


# ============================================================
# Wire Enumerations
# ============================================================

class PortMode(IntEnum):
    """Operating mode of a DMX port (ptMode)."""
    DISABLE = 0
    INPUT = 1
    OUTPUT = 2
    SEND_VALUE = 3


class Protocol(IntEnum):
    """Network protocol of a port (ptProtocol, ptResendProtocol, InputProtocol)."""
    ARTNET = 0
    SACN = 1
    NONE = 2


class MergeMode(IntEnum):
    """Merge policy of an output port (ptMergeMode)."""
    OFF = 0
    HTP = 1
    LTP = 2
    TOGGLE = 3
    BACKUP = 4


class InputSource(IntEnum):
    """Source of a DMX input line on variant hardware (InputSource)."""
    DMX = 0
    NETWORK = 1
    SEND_VALUE = 2


class TriggerSource(IntEnum):
    """Signal that fires a remote input (rmTriggerSource)."""
    DMX = 0
    ARTNET = 1
    SACN = 2


class RemoteAction(IntEnum):
    """Action performed by a remote input (rmAction)."""
    RUN_CUE = 0
    LOAD_PRESET = 1
    SEND_VALUE = 2


class AddressMode(IntEnum):
    """IP address assignment mode (addressmode)."""
    DHCP = 0
    AUTO_2 = 1
    AUTO_10 = 2
    CUSTOM = 3
    AUTO_192 = 4
    AUTO_172 = 5


class IdentifyStatus(IntEnum):
    """Values posted to set_identify."""
    OFF = 0
    ON = 2


class CloneStatus(Enum):
    """Why a port is (or is not) offered as a clone target."""
    NONE = "none"                       # The inspecting port itself
    FREE = "free"
    NOT_OUTPUTTING = "not_outputting"
    LOCAL_CYCLE = "local_cycle"         # Target clones the inspecting port
    DISTANT_CYCLE = "distant_cycle"     # Target clones some other port


class DocumentKey(Enum):
    """Device documents loaded by the aggregator."""
    SETTING = "setting"
    IP = "ip"
    INDEX = "index"
    DMX_PORTS = "dmx_ports"
    IDENTIFY = "identify"
    PRESETS = "presets"
    USER_PRESETS = "user_presets"
    CUES = "cues"
    CUES_SETTING = "cues_setting"
    CUES_STATUS = "cues_status"
    REMOTE_INPUTS = "remote_inputs"
    # Variant hardware only
    DMX_INPUT_TAB = "dmx_input_tab"
    DMX_INPUT_MERGER = "dmx_input_merger"


class Endpoint(Enum):
    """Named save operations accepted by the device."""
    SAVE_PORT = "save-port"
    SAVE_IP = "save-ip"
    SAVE_PRESET = "save-preset"
    LOAD_PRESET = "load-preset"
    RUN_CUES = "run-cues"
    SAVE_CUES = "save-cues"
    EDIT_CUES = "edit-cues"
    SAVE_INPUT = "save-input"
    SET_IDENTIFY = "set-identify"


def as_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    """Coerce a wire value to int, returning default when it is not numeric."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


# ============================================================
# Validation Errors
# ============================================================

class ValidationError(Exception):
    """A proposed save breaks a configuration rule. Never reaches the transport."""
    pass


class PortValidationError(ValidationError):
    """Clone relationship or DMX range is invalid."""
    pass


class CueValidationError(ValidationError):
    """Cue name, timing or link is invalid."""
    pass


class FormValidationError(ValidationError):
    """Any other form field is invalid (IP settings, presets, remote inputs)."""
    pass


# ============================================================
# Device Entities
# ============================================================

@dataclass
class DmxPort:
    """
    One physical DMX port.

    Attribute names are Pythonic; WIRE_KEYS maps them to the keys used
    by DMXPorts.json and the save_dmx_port form. Keys the core does not
    know are kept in ``extra`` so they survive a round trip.

    Attributes:
        index: 0-based port number
        mode: Operating mode (PortMode value)
        clone_port: Port this one replays; equal to index when it owns its config
        protocol: Network protocol
        universe: Raw (wire) universe number
        rdm: RDM traffic flag
        framerate: Frame rate table index
        merge_mode: Merge policy
        merge_universe: Raw universe merged into the output
        resend_protocol: Protocol used to resend the merged output
        resend_universe: Raw universe for the resend
        send_value: Static level for send-value mode (0-255)
        range_from: First DMX channel (1-512)
        range_to: Last DMX channel (1-512)
        offset: Channel offset applied to the range
        extra: Unknown keys from the device
    """
    index: int
    mode: int = PortMode.DISABLE
    clone_port: int = 0
    protocol: int = Protocol.ARTNET
    universe: int = 0
    rdm: int = 1
    framerate: int = 5
    merge_mode: int = MergeMode.OFF
    merge_universe: int = 0
    resend_protocol: int = Protocol.NONE
    resend_universe: int = 0
    send_value: int = 0
    range_from: int = 1
    range_to: int = 512
    offset: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)

    WIRE_KEYS = {
        "mode": "ptMode",
        "clone_port": "ptClonePort",
        "protocol": "ptProtocol",
        "universe": "ptUniverse",
        "rdm": "ptRDM",
        "framerate": "ptFramerate",
        "merge_mode": "ptMergeMode",
        "merge_universe": "ptMergeUniverse",
        "resend_protocol": "ptResendProtocol",
        "resend_universe": "ptResendUniverse",
        "send_value": "ptSendValue",
        "range_from": "ptRangeFrom",
        "range_to": "ptRangeTo",
        "offset": "ptOffsetAddr",
    }
    ATTRIBUTES = {wire: attr for attr, wire in WIRE_KEYS.items()}

    @property
    def is_output(self) -> bool:
        return self.mode == PortMode.OUTPUT

    @property
    def number(self) -> int:
        """1-based port number shown to the operator."""
        return self.index + 1

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], index: int) -> "DmxPort":
        """Parse a DMXPorts.json entry. A missing clone target means "self"."""
        port = cls(index=index, clone_port=index)
        port.update(data)
        return port

    def update(self, fields: Mapping[str, Any]) -> None:
        """Apply wire-keyed fields in place. Non-numeric values keep the current value."""
        for key, value in fields.items():
            attr = self.ATTRIBUTES.get(key)
            if attr is None:
                self.extra[key] = value
                continue
            number = as_int(value)
            if number is not None:
                setattr(self, attr, number)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to wire-keyed dictionary (usable as codec context)."""
        result: Dict[str, Any] = dict(self.extra)
        for attr, wire in self.WIRE_KEYS.items():
            result[wire] = int(getattr(self, attr))
        return result


@dataclass
class Cue:
    """
    One cue slot.

    Attributes:
        idx: 1-based slot number
        name: Operator label (max 12 characters)
        fade_time: Fade time in seconds
        hold_time: Hold time in seconds
        link: Slot of the next cue, 0 for none
    """
    idx: int
    name: str = ""
    fade_time: int = 0
    hold_time: int = 0
    link: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)

    WIRE_KEYS = {
        "name": "Name",
        "fade_time": "fadeTime",
        "hold_time": "holdTime",
        "link": "linkCue",
    }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], position: int) -> "Cue":
        """Parse a Cues.json entry; slot defaults to position + 1."""
        known = {"idx", "name", *cls.WIRE_KEYS.values()}
        return cls(
            idx=as_int(data.get("idx"), position + 1),
            name=str(data.get("Name", data.get("name", ""))).strip(),
            fade_time=as_int(data.get("fadeTime"), 0),
            hold_time=as_int(data.get("holdTime"), 0),
            link=as_int(data.get("linkCue"), 0),
            extra={k: v for k, v in data.items() if k not in known},
        )

    def update(self, fields: Mapping[str, Any]) -> None:
        """Apply wire-keyed fields confirmed by edit_cues."""
        if "Name" in fields:
            self.name = str(fields["Name"]).strip()
        if "fadeTime" in fields:
            self.fade_time = as_int(fields["fadeTime"], self.fade_time)
        if "holdTime" in fields:
            self.hold_time = as_int(fields["holdTime"], self.hold_time)
        if "linkCue" in fields:
            self.link = as_int(fields["linkCue"], 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.extra,
            "idx": self.idx,
            "Name": self.name,
            "fadeTime": self.fade_time,
            "holdTime": self.hold_time,
            "linkCue": self.link,
        }


@dataclass
class Preset:
    """
    Factory preset. ``universe`` is None for presets without a start universe.
    """
    idx: int
    name: str = ""
    universe: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], position: int) -> "Preset":
        return cls(
            idx=position,
            name=str(data.get("name", "")).strip(),
            universe=as_int(data.get("universe")) if "universe" in data else None,
            extra={k: v for k, v in data.items() if k not in ("name", "universe")},
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {**self.extra, "name": self.name}
        if self.universe is not None:
            result["universe"] = self.universe
        return result


@dataclass
class UserPreset:
    """User preset slot; ``owner`` set to 1 locks it against loading."""
    idx: int
    name: str = ""
    owner: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def locked(self) -> bool:
        return self.owner == 1

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], position: int) -> "UserPreset":
        return cls(
            idx=position,
            name=str(data.get("name", "")).strip(),
            owner=as_int(data.get("Owner"), 0),
            extra={k: v for k, v in data.items() if k not in ("name", "Owner")},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {**self.extra, "name": self.name, "Owner": self.owner}


@dataclass
class RemoteInput:
    """
    External trigger mapped to an action.

    Attributes:
        idx: 0-based input number
        trigger_source: TriggerSource value
        source_universe: Raw universe listened to (network triggers only)
        source_channel: DMX channel watched (1-512)
        action: RemoteAction value
        action_value: Cue slot, preset index or static level depending on action
    """
    idx: int
    trigger_source: int = TriggerSource.DMX
    source_universe: int = 0
    source_channel: int = 1
    action: int = RemoteAction.RUN_CUE
    action_value: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)

    WIRE_KEYS = {
        "trigger_source": "rmTriggerSource",
        "source_universe": "rmSourceUniverse",
        "source_channel": "rmSourceChannel",
        "action": "rmAction",
        "action_value": "rmActionValue",
    }
    ATTRIBUTES = {wire: attr for attr, wire in WIRE_KEYS.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], position: int) -> "RemoteInput":
        remote = cls(idx=position)
        remote.update(data)
        return remote

    def update(self, fields: Mapping[str, Any]) -> None:
        for key, value in fields.items():
            attr = self.ATTRIBUTES.get(key)
            if attr is None:
                if key != "idx":
                    self.extra[key] = value
                continue
            number = as_int(value)
            if number is not None:
                setattr(self, attr, number)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = dict(self.extra)
        for attr, wire in self.WIRE_KEYS.items():
            result[wire] = getattr(self, attr)
        return result


# ============================================================
# Query and Operation Results
# ============================================================

@dataclass
class Choice:
    """Lookup table entry offered for selection. ``value`` is the raw index."""
    value: int
    name: str
    desc: str = ""


@dataclass
class CloneCandidate:
    """
    One row of a port's clone target list.

    Attributes:
        target: 0-based port index this row selects
        label: Short text shown in the list
        description: Explanation shown on hover
        selectable: Whether the operator may pick it
        status: Reason code
    """
    target: int
    label: str
    description: str
    selectable: bool
    status: CloneStatus

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "label": self.label,
            "description": self.description,
            "selectable": self.selectable,
            "status": self.status.value,
        }


@dataclass
class LoadResult:
    """Outcome of DeviceAggregator.load_all(). ``state`` is None on failure."""
    success: bool
    state: Optional[Any] = None
    error: Optional[str] = None
    batches: int = 0

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success, "batches": self.batches}
        if self.error:
            result["error"] = self.error
        return result


class SaveStatus(Enum):
    """Tag of a save outcome."""
    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    SAVE_ERROR = "save_error"
    BUSY = "busy"


@dataclass
class SaveResult:
    """
    Outcome of a save operation.

    Attributes:
        status: Outcome tag
        message: Text shown to the operator
        endpoint: Operation that was targeted
        fields: Field map that was (or would have been) submitted
        response: Decoded device response on success
    """
    status: SaveStatus
    message: str
    endpoint: Optional[Endpoint] = None
    fields: Dict[str, Any] = field(default_factory=dict)
    response: Optional[Any] = None

    @property
    def success(self) -> bool:
        return self.status == SaveStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "status": self.status.value,
            "message": self.message,
            "endpoint": self.endpoint.value if self.endpoint else None,
            "fields": dict(self.fields),
        }
