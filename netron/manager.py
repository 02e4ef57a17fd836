"""
Netron Manager - High-Level Facade for Device Configuration

This module is the entry point for reading and changing a device. It
owns the aggregator, validates every save locally, posts it, applies
the confirmed delta and raises one notification per save.

Classes:
    DeviceManager: Main configuration facade

Usage:
    manager = DeviceManager.from_settings(load_settings())
    result = await manager.load()

    # Saves (each returns a SaveResult, never raises on device errors)
    await manager.save_port(0, {"ptMode": "Output", "ptUniverse": 1})
    await manager.save_ip(AddressMode.CUSTOM, "2.143.56.6", "255.0.0.0")
    await manager.edit_cue(1, "Intro", "00:00:05", "00:00:10", 2)

    # Events
    manager.on('identify_on', handler)
"""

from typing import Any, Callable, Dict, List, Mapping, Optional, Set
import logging
import re

from .types import (
    EMPTY,
    AddressMode,
    CloneCandidate,
    CueValidationError,
    DocumentKey,
    Endpoint,
    FormValidationError,
    IdentifyStatus,
    LoadResult,
    PortValidationError,
    RemoteAction,
    SaveResult,
    SaveStatus,
    TriggerSource,
    ValidationError,
    as_int,
    is_empty,
)
from .codec import FIELDS, FieldKind, ValueCodec
from .config import DEFAULT_ENDPOINTS, Settings
from .cues import MAX_NAME_LENGTH, check_cue_edit, find_cue
from .device import DeviceAggregator, DeviceState
from .events import EventEmitter
from .feedback import FeedbackCenter, NotificationLevel
from .poller import StatusPoller
from .ports import PortGraph, submitted_port_fields
from .preferences import PreferenceStore
from .transport import DeviceTransport, TransportError, create_transport
from .wording import word
from . import summary

logger = logging.getLogger(__name__)

VALID_IP = re.compile(r"^(?:(?:25[0-5]|(?:2[0-4]|1\d|[1-9]|)\d)\.?\b){4}$")

USER_PRESET_LOAD_OFFSET = 100
USER_PRESET_RENAME_OFFSET = 101


class DeviceManager(EventEmitter):
    """
    High-level facade for one device.

    Save flow: refuse while the control is busy, validate locally (no
    network on failure), post, apply the confirmed fields to the state,
    notify. The in-memory state only changes after the device accepted
    the post.

    Attributes:
        transport: Device transport
        aggregator: Device state owner
        endpoints: Endpoint names keyed by Endpoint
        feedback: Notification center
        preferences: Optional preference store
        candidates: Clone candidate lists for every port
    """

    def __init__(
        self,
        transport: DeviceTransport,
        names: Optional[Mapping[DocumentKey, str]] = None,
        endpoints: Optional[Mapping[Endpoint, str]] = None,
        feedback: Optional[FeedbackCenter] = None,
        preferences: Optional[PreferenceStore] = None,
        poll_interval: float = StatusPoller.DEFAULT_INTERVAL
    ):
        super().__init__()
        self.transport = transport
        self.aggregator = DeviceAggregator(transport, names)
        self.endpoints: Dict[Endpoint, str] = dict(DEFAULT_ENDPOINTS)
        if endpoints:
            self.endpoints.update(endpoints)
        self.feedback = feedback or FeedbackCenter()
        self.preferences = preferences
        self.poll_interval = poll_interval
        self.candidates: Dict[int, List[CloneCandidate]] = {}
        self._in_flight: Set[str] = set()
        self._poller: Optional[StatusPoller] = None

        self.aggregator.on("device_ready", lambda s: self._emit("device_ready", s))
        self.aggregator.on("identify_on", lambda s: self._emit("identify_on", s))

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        preferences: Optional[PreferenceStore] = None
    ) -> "DeviceManager":
        """Build transport, feedback and manager from resolved settings."""
        transport = create_transport(settings.transport, **settings.transport_options())
        return cls(
            transport,
            names=settings.document_names(),
            endpoints=settings.endpoint_names(),
            feedback=FeedbackCenter(settings.notification_duration),
            preferences=preferences,
            poll_interval=settings.poll_interval,
        )

    @property
    def state(self) -> Optional[DeviceState]:
        return self.aggregator.state

    @property
    def codec(self) -> ValueCodec:
        state = self.aggregator.state
        return ValueCodec.for_state(state) if state else ValueCodec()

    def graph(self) -> PortGraph:
        return PortGraph(self.aggregator.require_state().dmx_ports, self.codec)

    # ─────────────────────────────────────────────────────────
    # Loading
    # ─────────────────────────────────────────────────────────

    async def load(self) -> LoadResult:
        """Bulk-load the device and compute clone candidates."""
        result = await self.aggregator.load_all()
        if result.success:
            self._recompute_candidates()
            if self.preferences is not None:
                self.preferences.set("last_device_type", result.state.device_type)
                self.preferences.set("last_device_name", result.state.setting.get("DeviceName", ""))
        return result

    def _recompute_candidates(self) -> None:
        self.candidates = self.graph().all_candidates()
        self._emit("candidates_changed", self.candidates)

    # ─────────────────────────────────────────────────────────
    # Save Pipeline
    # ─────────────────────────────────────────────────────────

    def is_busy(self, control_id: str) -> bool:
        """True while a save of this control is in flight or its notification is visible."""
        return control_id in self._in_flight or self.feedback.is_disabled(control_id)

    async def _save(
        self,
        control_id: str,
        endpoint: Endpoint,
        prepare: Callable[[], Dict[str, Any]],
        success: str,
        apply: Optional[Callable[[Dict[str, Any], Any], None]] = None
    ) -> SaveResult:
        if self.is_busy(control_id):
            return SaveResult(SaveStatus.BUSY, word("save_busy"), endpoint)

        try:
            fields = prepare()
        except ValidationError as e:
            logger.warning(f"Rejected {endpoint.value} for {control_id}: {e}")
            return self._finish(control_id, SaveResult(SaveStatus.VALIDATION_ERROR, str(e), endpoint))

        self._in_flight.add(control_id)
        try:
            response = await self.transport.post_form(self.endpoints[endpoint], fields)
        except TransportError as e:
            logger.warning(f"Save {endpoint.value} failed: {e}")
            result = SaveResult(SaveStatus.SAVE_ERROR, word("save_failed"), endpoint, fields)
        else:
            if apply is not None:
                apply(fields, response)
            logger.info(f"Saved {endpoint.value}: {fields}")
            result = SaveResult(SaveStatus.SUCCESS, success, endpoint, fields, response)
        finally:
            self._in_flight.discard(control_id)

        return self._finish(control_id, result)

    def _finish(self, control_id: str, result: SaveResult) -> SaveResult:
        level = NotificationLevel.SUCCESS if result.success else NotificationLevel.DANGER
        self.feedback.notify(control_id, result.message, level)
        self._emit("saved", result)
        return result

    def _encode_fields(
        self,
        line: Dict[str, Any],
        values: Mapping[str, Any]
    ) -> Dict[str, Any]:
        """
        Encode display values onto a raw line.

        Universes are encoded last so they see the already encoded
        protocol fields of the same submission.
        """
        codec = self.codec
        line = dict(line)
        ordered = sorted(
            values.items(),
            key=lambda item: FIELDS.get(item[0]) is not None and FIELDS[item[0]].kind == FieldKind.UNIVERSE,
        )
        for key, value in ordered:
            if key in FIELDS:
                raw = codec.encode(key, value, line)
            else:
                raw = as_int(value, value)
            if raw is not None:
                line[key] = raw
        return line

    # ─────────────────────────────────────────────────────────
    # DMX Ports
    # ─────────────────────────────────────────────────────────

    async def save_port(self, index: int, values: Mapping[str, Any]) -> SaveResult:
        """
        Save one DMX port.

        Args:
            index: 0-based port index
            values: Display values keyed by wire key (ptMode, ptUniverse, ...)

        Returns:
            SaveResult; clone candidates of every port are recomputed on success
        """
        def prepare() -> Dict[str, Any]:
            state = self.aggregator.require_state()
            if not 0 <= index < len(state.dmx_ports):
                raise PortValidationError(word("port_unknown", index + 1))
            line = self._encode_fields(state.dmx_ports[index].to_dict(), values)
            fields = {key: line[key] for key in submitted_port_fields(index, line)}
            self.graph().validate_update(index, fields)
            return {"idx": index, **fields}

        def apply(fields: Dict[str, Any], response: Any) -> None:
            self.aggregator.apply_port(index, fields)
            self._recompute_candidates()

        return await self._save(
            f"port-{index}", Endpoint.SAVE_PORT, prepare, word("port_success", index + 1), apply
        )

    def port_candidates(self, index: int) -> List[CloneCandidate]:
        """Clone candidates of one port, current port first."""
        if index not in self.candidates:
            return self.graph().clone_candidates(index)
        return self.candidates[index]

    # ─────────────────────────────────────────────────────────
    # IP Settings
    # ─────────────────────────────────────────────────────────

    async def save_ip(
        self,
        addressmode: Any,
        ipaddress: Optional[str] = None,
        netmask: Optional[str] = None
    ) -> SaveResult:
        """
        Save the address mode; a custom mode also sends address and netmask.

        Addresses are given in display form and sent zero-padded.
        """
        def prepare() -> Dict[str, Any]:
            codec = self.codec
            mode = codec.encode("addressmode", addressmode)
            fields: Dict[str, Any] = {"addressmode": mode}
            if mode == AddressMode.CUSTOM:
                if not VALID_IP.match(str(ipaddress or "")):
                    raise FormValidationError(word("ip_address_invalid", ipaddress))
                if not VALID_IP.match(str(netmask or "")):
                    raise FormValidationError(word("ip_netmask_invalid", netmask))
                fields["ipaddress"] = codec.encode("ipaddress", ipaddress)
                fields["netmask"] = codec.encode("netmask", netmask)
            return fields

        def apply(fields: Dict[str, Any], response: Any) -> None:
            self.aggregator.apply_ip(fields)

        return await self._save("ip", Endpoint.SAVE_IP, prepare, word("ip_success"), apply)

    # ─────────────────────────────────────────────────────────
    # Presets
    # ─────────────────────────────────────────────────────────

    async def save_preset(self, idx: int, universe: Any = None) -> SaveResult:
        """
        Load a factory preset, optionally with a start universe.

        The universe is omitted for presets without one.
        """
        def prepare() -> Dict[str, Any]:
            state = self.aggregator.require_state()
            if not 0 <= idx < len(state.presets):
                raise FormValidationError(word("preset_unknown", idx + 1))
            fields: Dict[str, Any] = {"idx": idx, "PresetNum": idx}
            if not is_empty(universe) and state.presets[idx].universe is not None:
                fields["universe"] = self.codec.encode("universe", universe, {"presetID": idx})
            return fields

        def apply(fields: Dict[str, Any], response: Any) -> None:
            if "universe" in fields:
                self.aggregator.apply_preset_universe(idx, fields["universe"])

        return await self._save("preset", Endpoint.SAVE_PRESET, prepare, word("preset_success"), apply)

    async def load_user_preset(self, idx: int) -> SaveResult:
        """Load a user preset. Locked presets are refused."""
        def prepare() -> Dict[str, Any]:
            state = self.aggregator.require_state()
            if not 0 <= idx < len(state.user_presets):
                raise FormValidationError(word("preset_unknown", idx + 1))
            if state.user_presets[idx].locked:
                raise FormValidationError(word("user_preset_locked", idx + 1))
            return {"PresetNum": idx + USER_PRESET_LOAD_OFFSET}

        return await self._save(
            "user-preset-load", Endpoint.LOAD_PRESET, prepare, word("user_preset_load_success")
        )

    async def rename_user_preset(self, idx: int, name: str) -> SaveResult:
        """Rename a user preset. Locked presets are refused."""
        def prepare() -> Dict[str, Any]:
            state = self.aggregator.require_state()
            if not 0 <= idx < len(state.user_presets):
                raise FormValidationError(word("preset_unknown", idx + 1))
            if state.user_presets[idx].locked:
                raise FormValidationError(word("user_preset_locked", idx + 1))
            new_name = str(name).strip()
            if not 1 <= len(new_name) <= MAX_NAME_LENGTH:
                raise FormValidationError(word("user_preset_name"))
            return {"idx": idx + USER_PRESET_RENAME_OFFSET, "name": new_name}

        def apply(fields: Dict[str, Any], response: Any) -> None:
            self.aggregator.apply_user_preset_name(idx, fields["name"])

        return await self._save(
            "user-preset-rename", Endpoint.SAVE_PRESET, prepare, word("user_preset_rename_success"), apply
        )

    # ─────────────────────────────────────────────────────────
    # Cues
    # ─────────────────────────────────────────────────────────

    async def run_cue(self, cue_idx: int, resend: bool = False) -> SaveResult:
        """Start a cue (0 stops cue playback) and set the Ethernet resend flag."""
        def prepare() -> Dict[str, Any]:
            state = self.aggregator.require_state()
            if cue_idx and find_cue(state.cues, cue_idx) is None:
                raise CueValidationError(word("cue_unknown", cue_idx))
            return {"RunCue": cue_idx, "CuesResendEth": 1 if resend else 0}

        def apply(fields: Dict[str, Any], response: Any) -> None:
            self.aggregator.apply_running_cue(fields["RunCue"], fields["CuesResendEth"])

        return await self._save("cue-run", Endpoint.RUN_CUES, prepare, word("cue_run_success"), apply)

    async def save_cue(self, slot: int) -> SaveResult:
        """Snapshot all port values into a cue slot."""
        def prepare() -> Dict[str, Any]:
            state = self.aggregator.require_state()
            if find_cue(state.cues, slot) is None:
                raise CueValidationError(word("cue_unknown", slot))
            return {"CueNum": slot}

        return await self._save("cue-save", Endpoint.SAVE_CUES, prepare, word("cue_save_success"))

    async def edit_cue(
        self,
        idx: int,
        name: str,
        fade_time: Any,
        hold_time: Any = None,
        link: Any = EMPTY
    ) -> SaveResult:
        """
        Edit a cue's name, timing and link.

        Times may be seconds or "HH:MM:SS". The hold time is only sent
        when the cue links to a next cue.
        """
        def prepare() -> Dict[str, Any]:
            state = self.aggregator.require_state()
            codec = self.codec
            link_raw = codec.encode("linkCue", link)
            fields: Dict[str, Any] = {
                "idx": idx,
                "Name": str(name).strip(),
                "fadeTime": codec.encode("fadeTime", fade_time),
            }
            if link_raw:
                fields["holdTime"] = codec.encode("holdTime", 0 if is_empty(hold_time) else hold_time)
            fields["linkCue"] = link_raw
            check_cue_edit(state.cues, fields)
            return fields

        def apply(fields: Dict[str, Any], response: Any) -> None:
            self.aggregator.apply_cue(idx, fields)

        return await self._save("cue-edit", Endpoint.EDIT_CUES, prepare, word("cue_edit_success"), apply)

    def cue_chains(self) -> List[List[Any]]:
        return summary.cue_lists(self.aggregator.require_state(), self.codec)

    # ─────────────────────────────────────────────────────────
    # Remote Inputs
    # ─────────────────────────────────────────────────────────

    async def save_remote_input(self, idx: int, values: Mapping[str, Any]) -> SaveResult:
        """
        Save one remote input.

        The source universe is only sent for network triggers, and the
        action value is checked against the selected action.
        """
        def prepare() -> Dict[str, Any]:
            state = self.aggregator.require_state()
            if not 0 <= idx < len(state.remote_inputs):
                raise FormValidationError(word("remote_unknown", idx + 1))
            line = self._encode_fields(state.remote_inputs[idx].to_dict(), values)

            channel = as_int(line.get("rmSourceChannel"), 0)
            if not 1 <= channel <= 512:
                raise FormValidationError(word("remote_channel"))

            action = as_int(line.get("rmAction"), RemoteAction.RUN_CUE)
            value = as_int(line.get("rmActionValue"), -1)
            if action == RemoteAction.RUN_CUE:
                valid = value == 0 or find_cue(state.cues, value) is not None
            elif action == RemoteAction.LOAD_PRESET:
                valid = 0 <= value < len(state.user_presets)
            else:
                valid = 0 <= value <= 255
            if not valid:
                raise FormValidationError(word("remote_value", line.get("rmActionValue")))

            fields: Dict[str, Any] = {
                "idx": idx,
                "rmTriggerSource": line.get("rmTriggerSource"),
                "rmSourceChannel": channel,
                "rmAction": action,
                "rmActionValue": value,
            }
            if as_int(line.get("rmTriggerSource")) != TriggerSource.DMX:
                fields["rmSourceUniverse"] = line.get("rmSourceUniverse")
            return fields

        def apply(fields: Dict[str, Any], response: Any) -> None:
            self.aggregator.apply_remote_input(idx, {k: v for k, v in fields.items() if k != "idx"})

        return await self._save(
            f"remote-{idx}", Endpoint.SAVE_INPUT, prepare, word("remote_success", idx + 1), apply
        )

    # ─────────────────────────────────────────────────────────
    # Identify
    # ─────────────────────────────────────────────────────────

    async def set_identify(self, on: bool = True) -> SaveResult:
        """Turn the device identify blink on or off."""
        status = IdentifyStatus.ON if on else IdentifyStatus.OFF

        def prepare() -> Dict[str, Any]:
            self.aggregator.require_state()
            return {"IdentifyStatus": int(status)}

        def apply(fields: Dict[str, Any], response: Any) -> None:
            self.aggregator.apply_identify(fields["IdentifyStatus"])

        return await self._save(
            "identify", Endpoint.SET_IDENTIFY, prepare,
            word("identify_on" if on else "identify_off"), apply
        )

    async def toggle_identify(self) -> SaveResult:
        return await self.set_identify(not self.aggregator.require_state().is_identified)

    # ─────────────────────────────────────────────────────────
    # Display
    # ─────────────────────────────────────────────────────────

    def home_summary(self) -> Dict[str, Any]:
        """Decoded rows for the overview tables."""
        return summary.home(self.aggregator.require_state(), self.codec)

    def status_summary(self) -> Dict[str, Any]:
        return summary.status(self.aggregator.require_state(), self.codec)

    # ─────────────────────────────────────────────────────────
    # Polling and Lifecycle
    # ─────────────────────────────────────────────────────────

    def start_status_polling(self, interval: Optional[float] = None) -> StatusPoller:
        """Refresh CuesStatus periodically. Requires a loaded device."""
        self.aggregator.require_state()
        if self._poller is None:
            name = self.aggregator.names[DocumentKey.CUES_STATUS]
            self._poller = StatusPoller(
                fetch=lambda: self.transport.get_json(name),
                apply=lambda data: self.aggregator.assign(DocumentKey.CUES_STATUS, data),
                interval=interval or self.poll_interval,
                name="cue status",
            )
        self._poller.start()
        return self._poller

    async def stop_status_polling(self) -> None:
        if self._poller is not None:
            await self._poller.stop()

    async def close(self) -> None:
        """Stop polling, clear notifications and close the transport."""
        await self.stop_status_polling()
        self.feedback.dismiss_all()
        await self.transport.close()
