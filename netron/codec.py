"""
Value Codec - Raw Device Values <-> Operator Values

Translates between what the device stores and what the operator sees.
Several translations depend on sibling fields (a universe depends on
the protocol, RDM only applies to output ports), so every call takes a
``context`` mapping of wire keys from the same document line.

Each wire attribute is described by a FieldSpec carrying its kind, its
lookup table and the gates that make it inapplicable. ValueCodec
dispatches on the kind; nothing is generated at runtime.

Classes:
    FieldKind: Tagged union of field kinds
    Gate: Context rules that turn a field into EMPTY
    FieldSpec: Per-attribute description
    TableEntry: Lookup table row, optionally model-restricted
    ValueCodec: decode/encode/choices for one loaded device

Example:
    codec = ValueCodec(device_type="NETRON EN12", universe_mode=0)
    codec.decode("ptUniverse", 0, {"ptMode": 2, "ptProtocol": 0})   # -> 1
    codec.encode("ptUniverse", 1, {"ptProtocol": 0})                # -> 0
"""

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple
from enum import Enum
import logging
import re

from .types import (
    EMPTY,
    Choice,
    InputSource,
    PortMode,
    Protocol,
    TriggerSource,
    as_int,
    is_empty,
)
from .config import VARIANT_MODEL
from .wording import ARTNET, SACN, word

logger = logging.getLogger(__name__)


# ============================================================
# Lookup Tables
# ============================================================

@dataclass(frozen=True)
class TableEntry:
    """Lookup table row. A non-empty ``restricted`` set limits it to those models."""
    name: str
    desc: str = ""
    restricted: FrozenSet[str] = frozenset()

    def allowed_for(self, device_type: str) -> bool:
        return not self.restricted or device_type in self.restricted


TABLES: Dict[str, Tuple[TableEntry, ...]] = {
    "InputSource": (
        TableEntry("DMX", "The line receives DMX from its physical input"),
        TableEntry("Network", "The line receives DMX from the network"),
        TableEntry("Send value", "The line sends a static DMX value"),
    ),
    "addressmode": (
        TableEntry("DHCP IP", "The device waits for a DHCP server address. "
                              "After 30s, it assigns itself a unique 169.254.x.x address"),
        TableEntry("Automatic 2.X", "The device is set to a unique 2.x.x.x address, subnet 255.0.0.0"),
        TableEntry("Automatic 10.X", "The device is set to a unique 10.x.x.x address, subnet 255.0.0.0"),
        TableEntry("Custom IP", "Assign any desired numbers"),
        TableEntry("Automatic 192.X", "The device is set to a unique 192.x.x.x address, subnet 255.0.0.0"),
        TableEntry("Automatic 172.X", "The device is set to a unique 172.x.x.x address, subnet 255.0.0.0"),
    ),
    "ptSource": (
        TableEntry("A", "Input A"),
        TableEntry("B", "Input B", frozenset({VARIANT_MODEL})),
        TableEntry("Merge", "Inputs A and B merged", frozenset({VARIANT_MODEL})),
        TableEntry("Disabled", "No source"),
    ),
    "ptRDM": (
        TableEntry("Disable", "RDM traffic is disable"),
        TableEntry("Enable", "RDM traffic is enable"),
    ),
    "ptMergeMode": (
        TableEntry("OFF", "The merger is disabled"),
        TableEntry("HTP", "The sources are merged by Highest Takes Precedence"),
        TableEntry("LTP", "The sources are merged by Last Takes Precedence"),
        TableEntry("Toggle", "The complete source Universe is switched as soon as a single value changes"),
        TableEntry("Backup", "The merge Universe is activated if the main Universe has no valid traffic"),
    ),
    "ptMode": (
        TableEntry("Disable", "The port is disabled"),
        TableEntry("Input", "The port receives DMX values and assigns them to the selected Universe"),
        TableEntry("Output", "The port sends out DMX values on the selected Universe"),
        TableEntry("Send value", "Send a static DMX value"),
    ),
    "ptProtocol": (
        TableEntry(ARTNET, "EtherDMX uses Art-Net protocol"),
        TableEntry(SACN, "EtherDMX uses sACN protocol"),
        TableEntry("None", "EtherDMX does not use any protocol"),
    ),
    "ptFramerate": tuple(TableEntry(f"{hz}Hz") for hz in range(10, 45, 5)),
    "rmTriggerSource": (
        TableEntry("DMX", "Triggered by a DMX channel on the physical input"),
        TableEntry(ARTNET, "Triggered by an Art-Net channel"),
        TableEntry(SACN, "Triggered by an sACN channel"),
    ),
    "rmAction": (
        TableEntry("Run cue", "Runs the selected cue"),
        TableEntry("Load preset", "Loads the selected user preset"),
        TableEntry("Send value", "Sends a static DMX value"),
    ),
}

# Presets whose universes are Art-Net numbered
ARTNET_PRESETS = {
    "default": frozenset({0, 1, 2, 3, 4, 5, 6, 15}),
    VARIANT_MODEL: frozenset({6, 7}),
}

# Protocol hints, highest precedence first
PROTOCOL_PRECEDENCE = (
    "ptProtocol",
    "ptResendProtocol",
    "InputProtocol",
    "presetID",
    "rmTriggerSource",
)


# ============================================================
# Field Specifications
# ============================================================

class FieldKind(Enum):
    """How a field is translated."""
    LOOKUP = "lookup"
    PROTOCOL = "protocol"
    UNIVERSE = "universe"
    CUE_LINK = "cue_link"
    DURATION = "duration"
    IP_ADDRESS = "ip_address"
    ON_TIME = "on_time"
    PLAIN = "plain"


class Gate(Enum):
    """
    Context rule that makes a field inapplicable.

    A gate only applies when its key is present in the context, so a
    field decoded without context is never hidden.
    """
    PORT_ENABLED = "port_enabled"           # ptMode != Disable
    PORT_OUTPUT = "port_output"             # ptMode == Output
    PORT_STREAMING = "port_streaming"       # ptMode not in (Disable, Send value)
    NETWORK_SOURCE = "network_source"       # InputSource not in (DMX, Send value)
    NOT_SEND_SOURCE = "not_send_source"     # InputSource != Send value

    def closes(self, context: Mapping[str, Any]) -> bool:
        """True when the gate hides the field for this context."""
        if self in (Gate.PORT_ENABLED, Gate.PORT_OUTPUT, Gate.PORT_STREAMING):
            if context.get("ptMode") is None:
                return False
            mode = as_int(context["ptMode"])
            if self == Gate.PORT_ENABLED:
                return mode == PortMode.DISABLE
            if self == Gate.PORT_OUTPUT:
                return mode != PortMode.OUTPUT
            return mode in (PortMode.DISABLE, PortMode.SEND_VALUE)

        if context.get("InputSource") is None:
            return False
        source = as_int(context["InputSource"])
        if self == Gate.NETWORK_SOURCE:
            return source in (InputSource.DMX, InputSource.SEND_VALUE)
        return source == InputSource.SEND_VALUE


@dataclass(frozen=True)
class FieldSpec:
    """
    Description of one wire attribute.

    Attributes:
        name: Wire key
        kind: Translation kind
        table: Lookup table name (LOOKUP and PROTOCOL kinds)
        gates: Rules that turn the field into EMPTY
        protocol_hint: Context key consulted before the usual precedence
    """
    name: str
    kind: FieldKind
    table: Optional[str] = None
    gates: Tuple[Gate, ...] = ()
    protocol_hint: Optional[str] = None


_NETWORK = (Gate.PORT_ENABLED, Gate.NETWORK_SOURCE)
_RDM = (Gate.PORT_OUTPUT, Gate.NOT_SEND_SOURCE)
_MERGE = (Gate.PORT_OUTPUT,)
_FRAMERATE = (Gate.PORT_STREAMING,)


def _specs(*specs: FieldSpec) -> Dict[str, FieldSpec]:
    return {spec.name: spec for spec in specs}


FIELDS: Dict[str, FieldSpec] = _specs(
    FieldSpec("ptMode", FieldKind.LOOKUP, "ptMode"),
    FieldSpec("ptSource", FieldKind.LOOKUP, "ptSource"),
    FieldSpec("InputSource", FieldKind.LOOKUP, "InputSource"),
    FieldSpec("addressmode", FieldKind.LOOKUP, "addressmode"),
    FieldSpec("rmTriggerSource", FieldKind.LOOKUP, "rmTriggerSource"),
    FieldSpec("rmAction", FieldKind.LOOKUP, "rmAction"),
    # Protocols
    FieldSpec("ptProtocol", FieldKind.PROTOCOL, "ptProtocol", _NETWORK),
    FieldSpec("ptResendProtocol", FieldKind.PROTOCOL, "ptProtocol", _NETWORK),
    FieldSpec("InputProtocol", FieldKind.PROTOCOL, "ptProtocol", _NETWORK),
    # Universes
    FieldSpec("ptUniverse", FieldKind.UNIVERSE, gates=_NETWORK),
    FieldSpec("ptMergeUniverse", FieldKind.UNIVERSE, gates=_NETWORK),
    FieldSpec("ptResendUniverse", FieldKind.UNIVERSE, gates=_NETWORK),
    FieldSpec("InputUniverse", FieldKind.UNIVERSE, gates=_NETWORK),
    FieldSpec("rmSourceUniverse", FieldKind.UNIVERSE, protocol_hint="rmTriggerSource"),
    FieldSpec("universe", FieldKind.UNIVERSE, protocol_hint="presetID"),
    # RDM, merge and frame rate
    FieldSpec("ptRDM", FieldKind.LOOKUP, "ptRDM", _RDM),
    FieldSpec("InputRDM", FieldKind.LOOKUP, "ptRDM", _RDM),
    FieldSpec("ptMergeMode", FieldKind.LOOKUP, "ptMergeMode", _MERGE),
    FieldSpec("MergerMode", FieldKind.LOOKUP, "ptMergeMode", _MERGE),
    FieldSpec("ptFramerate", FieldKind.LOOKUP, "ptFramerate", _FRAMERATE),
    FieldSpec("InputFrameRate", FieldKind.LOOKUP, "ptFramerate", _FRAMERATE),
    FieldSpec("MergerFrameRate", FieldKind.LOOKUP, "ptFramerate", _FRAMERATE),
    # Cues
    FieldSpec("linkCue", FieldKind.CUE_LINK),
    FieldSpec("fadeTime", FieldKind.DURATION),
    FieldSpec("holdTime", FieldKind.DURATION),
    # Network and status
    FieldSpec("ipaddress", FieldKind.IP_ADDRESS),
    FieldSpec("netmask", FieldKind.IP_ADDRESS),
    FieldSpec("OnTime", FieldKind.ON_TIME),
)


# ============================================================
# Pure Helpers
# ============================================================

def re_ip_address(value: str) -> str:
    """Wire IP ("002.143.056.006") to display IP ("2.143.56.6")."""
    octets = []
    for octet in str(value).strip().split("."):
        octets.append(str(int(octet)) if octet.isdigit() else octet)
    return ".".join(octets)


def de_ip_address(value: str) -> str:
    """Display IP ("2.143.56.6") to wire IP ("002.143.056.006")."""
    octets = []
    for octet in str(value).strip().split("."):
        octets.append(octet.zfill(3) if octet.isdigit() else octet)
    return ".".join(octets)


def seconds_to_time(seconds: int) -> str:
    """Seconds to "HH:MM:SS"."""
    seconds = int(seconds)
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def time_to_seconds(value: str) -> int:
    """
    "HH:MM:SS" to seconds. Shorter forms ("MM:SS", "SS") are accepted.

    Raises:
        ValueError: If a part is not a non-negative integer
    """
    parts = str(value).strip().split(":")
    if not 1 <= len(parts) <= 3 or not all(p.isdigit() for p in parts):
        raise ValueError(f"Invalid time: {value}")
    total = 0
    for part in parts:
        total = total * 60 + int(part)
    return total


def format_on_time(value: Any) -> str:
    """Device on-time ("1200h") to "1200h (7 weeks, or 50 days)"."""
    match = re.search(r"\d+", str(value))
    hours = int(match.group(0)) if match else 0
    days = hours // 24
    weeks = days // 7
    return word(
        "status_on_time",
        hours,
        weeks,
        "s" if weeks > 1 else "",
        days,
        "s" if days > 1 else "",
    )


# ============================================================
# Codec
# ============================================================

class ValueCodec:
    """
    Context-sensitive translation for one loaded device.

    The device model selects the Art-Net preset set and filters
    restricted table entries; ``universe_mode`` 0 means Art-Net
    universes are stored 0-based and shown 1-based.

    Codec methods never raise for values outside a table: the raw
    value is returned unchanged.
    """

    def __init__(self, device_type: str = "", universe_mode: int = 0):
        self.device_type = device_type or ""
        self.universe_mode = as_int(universe_mode, 0)

    @classmethod
    def for_state(cls, state: Any) -> "ValueCodec":
        """Build a codec from a loaded DeviceState."""
        return cls(device_type=state.device_type, universe_mode=state.universe_mode)

    # ─────────────────────────────────────────────────────────
    # Tables
    # ─────────────────────────────────────────────────────────

    def choices(self, table: str) -> List[Choice]:
        """Entries of a table valid for this model, keeping their raw index."""
        return [
            Choice(value=index, name=entry.name, desc=entry.desc)
            for index, entry in enumerate(TABLES[table])
            if entry.allowed_for(self.device_type)
        ]

    def label(self, table: str, raw: Any) -> Any:
        """Name of a raw table index, or the raw value itself if unknown."""
        index = as_int(raw)
        entries = TABLES.get(table, ())
        if index is None or not 0 <= index < len(entries):
            return raw
        return entries[index].name

    def index_of(self, table: str, display: Any) -> Any:
        """Raw index of a table name; numbers and unknown names pass through."""
        index = as_int(display)
        if index is not None:
            return index
        for position, entry in enumerate(TABLES.get(table, ())):
            if entry.name == display:
                return position
        return display

    # ─────────────────────────────────────────────────────────
    # Protocol Resolution
    # ─────────────────────────────────────────────────────────

    def is_preset_artnet(self, preset_id: Any) -> bool:
        presets = ARTNET_PRESETS.get(self.device_type, ARTNET_PRESETS["default"])
        return as_int(preset_id) in presets

    def is_artnet(self, context: Optional[Mapping[str, Any]], hint: Optional[str] = None) -> bool:
        """
        Resolve whether the context describes an Art-Net line.

        The first hint present wins: ``hint`` if given, then ptProtocol,
        ptResendProtocol, InputProtocol, presetID, rmTriggerSource.
        """
        if not context:
            return False
        keys = (hint,) + PROTOCOL_PRECEDENCE if hint else PROTOCOL_PRECEDENCE
        for key in keys:
            value = context.get(key)
            if value is None:
                continue
            if key == "presetID":
                return self.is_preset_artnet(value)
            if key == "rmTriggerSource":
                return as_int(value) == TriggerSource.ARTNET
            return as_int(value) == Protocol.ARTNET
        return False

    def _shifts_universe(self, spec: FieldSpec, context: Optional[Mapping[str, Any]]) -> bool:
        return self.universe_mode == 0 and self.is_artnet(context, spec.protocol_hint)

    # ─────────────────────────────────────────────────────────
    # Decode / Encode
    # ─────────────────────────────────────────────────────────

    def is_applicable(self, field_name: str, context: Optional[Mapping[str, Any]] = None) -> bool:
        """False when the context gates the field out."""
        spec = FIELDS.get(field_name)
        if spec is None or not context:
            return True
        return not any(gate.closes(context) for gate in spec.gates)

    def decode(self, field_name: str, raw: Any, context: Optional[Mapping[str, Any]] = None) -> Any:
        """
        Raw device value to display value.

        Args:
            field_name: Wire key of the field
            raw: Value as stored by the device
            context: Sibling wire fields of the same line

        Returns:
            Display value, or EMPTY when the field does not apply
        """
        spec = FIELDS.get(field_name)
        if spec is None:
            return raw
        if not self.is_applicable(field_name, context):
            return EMPTY

        kind = spec.kind
        if kind in (FieldKind.LOOKUP, FieldKind.PROTOCOL):
            return self.label(spec.table, raw)

        if kind == FieldKind.UNIVERSE:
            number = as_int(raw)
            if number is None:
                return raw
            return number + 1 if self._shifts_universe(spec, context) else number

        if kind == FieldKind.CUE_LINK:
            link = as_int(raw)
            return EMPTY if not link else link

        if kind == FieldKind.DURATION:
            seconds = as_int(raw)
            return seconds_to_time(seconds) if seconds is not None and seconds >= 0 else raw

        if kind == FieldKind.IP_ADDRESS:
            return re_ip_address(raw) if isinstance(raw, str) else raw

        if kind == FieldKind.ON_TIME:
            return format_on_time(raw)

        return raw

    def encode(self, field_name: str, display: Any, context: Optional[Mapping[str, Any]] = None) -> Any:
        """
        Display value to raw device value.

        Returns None for EMPTY (the field is not submitted), except cue
        links where EMPTY means "no link" (0).
        """
        spec = FIELDS.get(field_name)
        if spec is None:
            return display

        kind = spec.kind
        if kind == FieldKind.CUE_LINK:
            return 0 if is_empty(display) else as_int(display, display)
        if is_empty(display):
            return None

        if kind in (FieldKind.LOOKUP, FieldKind.PROTOCOL):
            return self.index_of(spec.table, display)

        if kind == FieldKind.UNIVERSE:
            number = as_int(display)
            if number is None:
                return display
            return number - 1 if self._shifts_universe(spec, context) else number

        if kind == FieldKind.DURATION:
            if as_int(display) is not None:
                return as_int(display)
            try:
                return time_to_seconds(display)
            except ValueError:
                logger.debug(f"Passing through unparsable time for {field_name}: {display!r}")
                return display

        if kind == FieldKind.IP_ADDRESS:
            return de_ip_address(display)

        return display

    def decode_line(self, line: Mapping[str, Any], fields: Optional[List[str]] = None) -> Dict[str, Any]:
        """Decode several fields of one line, using the line as context."""
        names = fields if fields is not None else list(line.keys())
        return {name: self.decode(name, line.get(name), line) for name in names}
