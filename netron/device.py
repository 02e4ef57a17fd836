"""
Device State Aggregator

Loads every device document in one concurrent batch (plus a second
batch for variant hardware), normalizes them into a DeviceState, and
applies the deltas confirmed by successful saves without reloading.

DeviceState is a plain dataclass. All changes go through the pure
``with_*``/``update_*`` functions below, which return a new state and
leave the old one untouched; DeviceAggregator only swaps references.

Events:
    device_ready: Bulk load finished (data: DeviceState)
    identify_on: IdentifyStatus went from zero to non-zero (data: status)
"""

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Mapping, Optional
import copy
import logging

from .types import (
    Cue,
    DmxPort,
    DocumentKey,
    LoadResult,
    Preset,
    RemoteInput,
    UserPreset,
    as_int,
)
from .codec import re_ip_address
from .config import BASE_DOCUMENTS, DEFAULT_DOCUMENTS, VARIANT_DOCUMENTS, VARIANT_MODEL
from .events import EventEmitter
from .transport import DeviceTransport, TransportError
from .wording import word

logger = logging.getLogger(__name__)


class DocumentError(ValueError):
    """A fetched document does not have the expected shape."""
    pass


# ============================================================
# Device State
# ============================================================

@dataclass
class DeviceState:
    """
    In-memory copy of the device configuration, one field per document.

    Attributes:
        setting: Setting.json (DeviceType, DeviceName, UniverseMode, ...)
        ip: IP.json with display-form addresses
        index: index.json with lower-cased version strings
        dmx_ports: DMXPorts.json
        identify: Identify.json
        presets: Presets.json
        user_presets: UserPresets.json
        cues: Cues.json
        cues_setting: CuesSetting.json
        cues_status: CuesStatus.json
        remote_inputs: RemoteInputs.json
        dmx_input_tab: DMXInputab.json (variant hardware only)
        dmx_input_merger: DMXInputmerger.json (variant hardware only)
    """
    setting: Dict[str, Any] = field(default_factory=dict)
    ip: Dict[str, Any] = field(default_factory=dict)
    index: Dict[str, Any] = field(default_factory=dict)
    dmx_ports: List[DmxPort] = field(default_factory=list)
    identify: Dict[str, Any] = field(default_factory=dict)
    presets: List[Preset] = field(default_factory=list)
    user_presets: List[UserPreset] = field(default_factory=list)
    cues: List[Cue] = field(default_factory=list)
    cues_setting: Dict[str, Any] = field(default_factory=dict)
    cues_status: Dict[str, Any] = field(default_factory=dict)
    remote_inputs: List[RemoteInput] = field(default_factory=list)
    dmx_input_tab: List[Dict[str, Any]] = field(default_factory=list)
    dmx_input_merger: Dict[str, Any] = field(default_factory=dict)

    @property
    def device_type(self) -> str:
        return str(self.setting.get("DeviceType", ""))

    @property
    def universe_mode(self) -> int:
        return as_int(self.setting.get("UniverseMode"), 0)

    @property
    def is_variant(self) -> bool:
        return self.device_type == VARIANT_MODEL

    @property
    def identify_status(self) -> int:
        return as_int(self.identify.get("IdentifyStatus"), 0)

    @property
    def is_identified(self) -> bool:
        return self.identify_status > 0


# ============================================================
# Normalization
# ============================================================

VERSION_KEYS = ("BootVer", "FirmwareVer", "WebVer")


def normalize_ip(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Canonicalize ipaddress and netmask (no leading zeros per octet)."""
    result = dict(data)
    for key in ("ipaddress", "netmask"):
        if isinstance(result.get(key), str):
            result[key] = re_ip_address(result[key])
    return result


def normalize_index(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Lower-case boot, firmware and web version strings."""
    result = dict(data)
    for key in VERSION_KEYS:
        if isinstance(result.get(key), str):
            result[key] = result[key].lower()
    return result


def _parse_list(data: Any, factory: Callable[[Mapping[str, Any], int], Any]) -> List[Any]:
    if not isinstance(data, list):
        raise TypeError(f"expected a list, got {type(data).__name__}")
    return [factory(item, position) for position, item in enumerate(data)]


def _parse_dict(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise TypeError(f"expected an object, got {type(data).__name__}")
    return dict(data)


PARSERS: Dict[DocumentKey, Callable[[Any], Any]] = {
    DocumentKey.SETTING: _parse_dict,
    DocumentKey.IP: lambda data: normalize_ip(_parse_dict(data)),
    DocumentKey.INDEX: lambda data: normalize_index(_parse_dict(data)),
    DocumentKey.DMX_PORTS: lambda data: _parse_list(data, DmxPort.from_dict),
    DocumentKey.IDENTIFY: _parse_dict,
    DocumentKey.PRESETS: lambda data: _parse_list(data, Preset.from_dict),
    DocumentKey.USER_PRESETS: lambda data: _parse_list(data, UserPreset.from_dict),
    DocumentKey.CUES: lambda data: _parse_list(data, Cue.from_dict),
    DocumentKey.CUES_SETTING: _parse_dict,
    DocumentKey.CUES_STATUS: _parse_dict,
    DocumentKey.REMOTE_INPUTS: lambda data: _parse_list(data, RemoteInput.from_dict),
    DocumentKey.DMX_INPUT_TAB: lambda data: _parse_list(data, lambda item, _: dict(item)),
    DocumentKey.DMX_INPUT_MERGER: _parse_dict,
}


def parse_document(key: DocumentKey, data: Any) -> Any:
    """
    Normalize a raw document into its DeviceState field value.

    Raises:
        DocumentError: If the document has the wrong shape
    """
    try:
        return PARSERS[key](data)
    except (TypeError, ValueError, AttributeError) as e:
        raise DocumentError(f"Malformed {key.value} document: {e}") from e


def with_document(state: DeviceState, key: DocumentKey, data: Any) -> DeviceState:
    """Return a new state with one document replaced."""
    return replace(state, **{key.value: parse_document(key, data)})


# ============================================================
# Confirmed Deltas
# ============================================================

def update_port(state: DeviceState, index: int, fields: Mapping[str, Any]) -> DeviceState:
    """Apply confirmed save_dmx_port fields to one port."""
    ports = list(state.dmx_ports)
    port = copy.deepcopy(ports[index])
    port.update({k: v for k, v in fields.items() if k != "idx"})
    ports[index] = port
    return replace(state, dmx_ports=ports)


def update_ip(state: DeviceState, fields: Mapping[str, Any]) -> DeviceState:
    """Apply confirmed save_info fields; addresses are stored in display form."""
    ip = dict(state.ip)
    for key, value in fields.items():
        if key == "addressmode":
            ip[key] = as_int(value, value)
        elif key in ("ipaddress", "netmask"):
            ip[key] = re_ip_address(value)
        else:
            ip[key] = value
    return replace(state, ip=ip)


def update_preset_universe(state: DeviceState, idx: int, universe: int) -> DeviceState:
    presets = list(state.presets)
    presets[idx] = replace(presets[idx], universe=universe)
    return replace(state, presets=presets)


def update_user_preset_name(state: DeviceState, idx: int, name: str) -> DeviceState:
    presets = list(state.user_presets)
    presets[idx] = replace(presets[idx], name=name.strip())
    return replace(state, user_presets=presets)


def update_cue(state: DeviceState, idx: int, fields: Mapping[str, Any]) -> DeviceState:
    """Apply confirmed edit_cues fields to the cue in slot ``idx``."""
    cues = []
    for cue in state.cues:
        if cue.idx == idx:
            cue = copy.deepcopy(cue)
            cue.update(fields)
        cues.append(cue)
    return replace(state, cues=cues)


def update_running_cue(state: DeviceState, cue_idx: int, resend: int) -> DeviceState:
    """Record the cue started (0 = stopped) and the resend flag."""
    name = word("cue_none")
    for cue in state.cues:
        if cue.idx == cue_idx:
            name = cue.name
            break
    status = {**state.cues_status, "CueRunning": cue_idx, "CueRunningName": name}
    setting = {**state.cues_setting, "CuesResendEth": resend}
    return replace(state, cues_status=status, cues_setting=setting)


def update_identify(state: DeviceState, status: int) -> DeviceState:
    return replace(state, identify={**state.identify, "IdentifyStatus": status})


def update_remote_input(state: DeviceState, idx: int, fields: Mapping[str, Any]) -> DeviceState:
    remotes = list(state.remote_inputs)
    remote = copy.deepcopy(remotes[idx])
    remote.update(fields)
    remotes[idx] = remote
    return replace(state, remote_inputs=remotes)


# ============================================================
# Aggregator
# ============================================================

class DeviceAggregator(EventEmitter):
    """
    Owns the current DeviceState of one device.

    Attributes:
        transport: Device transport
        names: Document file names keyed by DocumentKey
        state: Current state, None until a load succeeds
    """

    def __init__(
        self,
        transport: DeviceTransport,
        names: Optional[Mapping[DocumentKey, str]] = None
    ):
        super().__init__()
        self.transport = transport
        self.names: Dict[DocumentKey, str] = dict(DEFAULT_DOCUMENTS)
        if names:
            self.names.update(names)
        self._state: Optional[DeviceState] = None

    @property
    def state(self) -> Optional[DeviceState]:
        return self._state

    @property
    def ready(self) -> bool:
        return self._state is not None

    def require_state(self) -> DeviceState:
        """
        Current state.

        Raises:
            RuntimeError: If no load has succeeded yet
        """
        if self._state is None:
            raise RuntimeError("Device state is not loaded")
        return self._state

    # ─────────────────────────────────────────────────────────
    # Loading
    # ─────────────────────────────────────────────────────────

    async def _fetch_batch(self, state: DeviceState, keys: tuple) -> DeviceState:
        documents = await self.transport.get_many_json([self.names[key] for key in keys])
        for key, data in zip(keys, documents):
            state = with_document(state, key, data)
        return state

    async def load_all(self) -> LoadResult:
        """
        Load every document into a fresh state.

        One concurrent batch for the base documents, and one more for
        the variant documents when Setting reports the variant model.
        On any failure the previous state is kept and the result says
        why; nothing is raised.

        Returns:
            LoadResult
        """
        batches = 1
        try:
            state = await self._fetch_batch(DeviceState(), BASE_DOCUMENTS)
            if state.is_variant:
                batches += 1
                state = await self._fetch_batch(state, VARIANT_DOCUMENTS)
        except (TransportError, DocumentError) as e:
            logger.error(f"Device load failed: {e}")
            return LoadResult(success=False, error=str(e), batches=batches)

        previous = self._state
        self._state = state
        logger.info(
            f"Loaded {state.device_type or 'device'} with {len(state.dmx_ports)} ports "
            f"in {batches} batch{'es' if batches > 1 else ''}"
        )
        self._check_identify(previous, state)
        self._emit("device_ready", state)
        return LoadResult(success=True, state=state, batches=batches)

    async def refresh(self, key: DocumentKey) -> DeviceState:
        """
        Fetch one document and assign it.

        Raises:
            TransportError: If the fetch fails
            DocumentError: If the document is malformed
        """
        data = await self.transport.get_json(self.names[key])
        return self.assign(key, data)

    # ─────────────────────────────────────────────────────────
    # Setters
    # ─────────────────────────────────────────────────────────

    def _set(self, state: DeviceState) -> DeviceState:
        previous = self._state
        self._state = state
        self._check_identify(previous, state)
        return state

    def _check_identify(self, previous: Optional[DeviceState], state: DeviceState) -> None:
        was_on = previous is not None and previous.is_identified
        if state.is_identified and not was_on:
            self._emit("identify_on", state.identify_status)

    def assign(self, key: DocumentKey, data: Any) -> DeviceState:
        """Replace one document, normalizing it."""
        return self._set(with_document(self.require_state(), key, data))

    def apply_port(self, index: int, fields: Mapping[str, Any]) -> DeviceState:
        return self._set(update_port(self.require_state(), index, fields))

    def apply_ip(self, fields: Mapping[str, Any]) -> DeviceState:
        return self._set(update_ip(self.require_state(), fields))

    def apply_preset_universe(self, idx: int, universe: int) -> DeviceState:
        return self._set(update_preset_universe(self.require_state(), idx, universe))

    def apply_user_preset_name(self, idx: int, name: str) -> DeviceState:
        return self._set(update_user_preset_name(self.require_state(), idx, name))

    def apply_cue(self, idx: int, fields: Mapping[str, Any]) -> DeviceState:
        return self._set(update_cue(self.require_state(), idx, fields))

    def apply_running_cue(self, cue_idx: int, resend: int) -> DeviceState:
        return self._set(update_running_cue(self.require_state(), cue_idx, resend))

    def apply_identify(self, status: int) -> DeviceState:
        return self._set(update_identify(self.require_state(), status))

    def apply_remote_input(self, idx: int, fields: Mapping[str, Any]) -> DeviceState:
        return self._set(update_remote_input(self.require_state(), idx, fields))
