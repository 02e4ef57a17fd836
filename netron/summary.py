"""
Display Summaries

Read-only rows for the overview pages, decoded with a ValueCodec.
Nothing here changes the state.

Usage:
    codec = ValueCodec.for_state(state)
    rows = port_rows(state, codec)
    home(state, codec)     # {"ports": ..., "resume": ..., "inputs": ..., "merge": ...}
"""

from typing import Any, Dict, List, Optional, Tuple

from .types import EMPTY_DISPLAY, is_empty
from .codec import ValueCodec
from .cues import resolve_chains
from .ports import is_cloned
from .wording import word

PORT_COLUMNS = ("ptMode", "ptProtocol", "ptUniverse", "ptRDM", "ptMergeMode", "ptFramerate")

# Columns taken from the clone target for a cloning port
CLONED_COLUMNS = ("ptUniverse", "ptRDM", "ptMergeMode", "ptFramerate")

INPUT_COLUMNS = ("InputSource", "InputProtocol", "InputUniverse", "InputFrameRate", "InputRDM")
MERGE_COLUMNS = ("MergerMode", "MergerFrameRate")
MERGE_SOURCE = 2

STATUS_KEYS = (
    "DeviceType",
    "DeviceName",
    "MACAddress",
    "RDMUID",
    "OnTime",
    "addressmode",
    "ipaddress",
    "netmask",
    "FirmwareVer",
    "BootVer",
    "WebVer",
)


def display_text(value: Any) -> str:
    """Text of a decoded value; EMPTY and missing values show as "---"."""
    if is_empty(value):
        return EMPTY_DISPLAY
    return str(value)


def port_rows(state: Any, codec: ValueCodec) -> List[Dict[str, Any]]:
    """
    One decoded row per DMX port.

    A cloning port shows "Cloning Pn" as its protocol and the
    remaining columns of the port it clones.
    """
    rows = []
    for port in state.dmx_ports:
        line = port.to_dict()
        row: Dict[str, Any] = {"port": port.number}
        row.update(codec.decode_line(line, list(PORT_COLUMNS)))

        if is_cloned(port, port.index) and 0 <= port.clone_port < len(state.dmx_ports):
            target = state.dmx_ports[port.clone_port].to_dict()
            row["ptProtocol"] = word("port_cloning_summary", port.clone_port + 1)
            row.update(codec.decode_line(target, list(CLONED_COLUMNS)))
        rows.append(row)
    return rows


def resume_row(state: Any, codec: ValueCodec) -> Dict[str, Any]:
    """Compact one-line summary: each port's universe plus the running cue."""
    universes = []
    for port in state.dmx_ports:
        if is_cloned(port, port.index):
            universes.append(word("port_cloning_short", port.clone_port + 1))
            continue
        universe = codec.decode("ptUniverse", port.universe, port.to_dict())
        universes.append(EMPTY_DISPLAY if is_empty(universe) else str(universe).zfill(3))
    return {
        "universes": universes,
        "cue": state.cues_status.get("CueRunningName", word("cue_none")),
    }


def input_rows(state: Any, codec: ValueCodec) -> List[Dict[str, Any]]:
    """DMX input lines of variant hardware, labelled A, B, ... by row."""
    if not state.is_variant:
        return []
    rows = []
    for position, line in enumerate(state.dmx_input_tab):
        row: Dict[str, Any] = {"indexSource": codec.label("ptSource", position)}
        row.update(codec.decode_line(line, list(INPUT_COLUMNS)))
        rows.append(row)
    return rows


def merge_row(state: Any, codec: ValueCodec) -> Optional[Dict[str, Any]]:
    if not state.is_variant:
        return None
    row: Dict[str, Any] = {"indexSource": codec.label("ptSource", MERGE_SOURCE)}
    row.update(codec.decode_line(state.dmx_input_merger, list(MERGE_COLUMNS)))
    return row


def status_rows(state: Any, codec: ValueCodec) -> List[Tuple[str, Any]]:
    """
    Device status as (key, display value) pairs.

    Keys are looked up in Setting, then IP, then index.
    """
    rows = []
    for key in STATUS_KEYS:
        raw = None
        for document in (state.setting, state.ip, state.index):
            if key in document:
                raw = document[key]
                break
        if raw is None:
            continue
        rows.append((key, codec.decode(key, raw)))
    return rows


def cue_lists(state: Any, codec: Optional[ValueCodec] = None) -> List[List[Dict[str, Any]]]:
    """Cue chains with decoded times and links."""
    codec = codec or ValueCodec()
    return [
        [codec.decode_line(cue.to_dict()) for cue in chain]
        for chain in resolve_chains(state.cues)
    ]


def home(state: Any, codec: ValueCodec) -> Dict[str, Any]:
    return {
        "ports": port_rows(state, codec),
        "resume": resume_row(state, codec),
        "inputs": input_rows(state, codec),
        "merge": merge_row(state, codec),
    }


def status(state: Any, codec: ValueCodec) -> Dict[str, Any]:
    return dict(status_rows(state, codec))
