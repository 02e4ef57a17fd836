"""
Port Dependency Graph - Clone Relationships Between DMX Ports

An output port may replay ("clone") another output port instead of
owning its protocol, universe and range. This module answers which
ports a given port may clone, explains why the others are refused,
and validates a port form before it is submitted.

Rules:
    - A port clones another when it is in output mode and its clone
      target is not itself.
    - Only output ports can be cloned.
    - A port cannot clone a port that clones it (local cycle) or a port
      that clones some other port (distant cycle).
    - A port cannot leave output mode, or start cloning, while other
      output ports clone it.

Classes:
    PortGraph: Queries and validation over the ordered port list
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .types import (
    CloneCandidate,
    CloneStatus,
    DmxPort,
    MergeMode,
    PortMode,
    PortValidationError,
    Protocol,
    as_int,
)
from .codec import ValueCodec
from .wording import word

DMX_CHANNELS = 512

RANGE_FIELDS = ("ptRangeFrom", "ptRangeTo", "ptOffsetAddr")

# Fields submitted for each mode of the port form
MODE_FIELDS = {
    PortMode.DISABLE: ("ptMode",),
    PortMode.INPUT: ("ptMode", "ptProtocol", "ptUniverse") + RANGE_FIELDS,
    PortMode.OUTPUT: (
        "ptClonePort", "ptMode", "ptRDM", "ptProtocol", "ptUniverse",
        "ptFramerate", "ptMergeMode",
    ) + RANGE_FIELDS,
    PortMode.SEND_VALUE: ("ptMode", "ptSendValue", "ptFramerate") + RANGE_FIELDS,
}
CLONING_FIELDS = ("ptClonePort", "ptMode")

PortLike = Union[DmxPort, Mapping[str, Any]]


def _mode_and_clone(port: PortLike, default_clone: int) -> tuple:
    if isinstance(port, DmxPort):
        return port.mode, port.clone_port
    return as_int(port.get("ptMode"), PortMode.DISABLE), as_int(port.get("ptClonePort"), default_clone)


def is_cloned(port: PortLike, as_seen_from: int) -> bool:
    """
    True when the port is in output mode and defers to a port other than ``as_seen_from``.

    ``is_cloned(p, p.index)`` tells whether ``p`` replays another port.
    """
    mode, clone = _mode_and_clone(port, as_seen_from)
    return mode == PortMode.OUTPUT and clone != as_seen_from


def move_to_front(items: List[Any], position: int) -> List[Any]:
    """Return a copy with the item at ``position`` moved first."""
    if not 0 <= position < len(items):
        return list(items)
    reordered = list(items)
    reordered.insert(0, reordered.pop(position))
    return reordered


def submitted_port_fields(index: int, line: Mapping[str, Any]) -> List[str]:
    """
    Wire keys a port form submits for the mode in ``line``.

    A cloning output port only submits its clone target (and mode). A
    self-owned output port adds merge fields when merging, and the
    resend universe when resending.
    """
    mode = as_int(line.get("ptMode"), PortMode.DISABLE)
    if mode == PortMode.OUTPUT:
        if is_cloned(line, index):
            return list(CLONING_FIELDS)
        fields = list(MODE_FIELDS[PortMode.OUTPUT])
        if as_int(line.get("ptMergeMode"), MergeMode.OFF) != MergeMode.OFF:
            fields += ["ptMergeUniverse", "ptResendProtocol"]
            if as_int(line.get("ptResendProtocol"), Protocol.NONE) != Protocol.NONE:
                fields.append("ptResendUniverse")
        return fields
    return list(MODE_FIELDS.get(mode, ("ptMode",)))


class PortGraph:
    """
    Clone relationships among the ports of one device.

    The graph reads the port list it is given and never mutates it;
    build a new graph (or call all_candidates() again) after a save.
    """

    def __init__(self, ports: Sequence[DmxPort], codec: Optional[ValueCodec] = None):
        self.ports = list(ports)
        self.codec = codec or ValueCodec()

    def __len__(self) -> int:
        return len(self.ports)

    # ─────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────

    def is_cloned(self, port: PortLike, as_seen_from: int) -> bool:
        return is_cloned(port, as_seen_from)

    def dependents_of(self, index: int) -> List[int]:
        """Indices of other output ports cloning port ``index``."""
        return [
            port.index for port in self.ports
            if port.index != index and port.is_output and port.clone_port == index
        ]

    def clone_candidates(self, for_port: int, current_first: bool = True) -> List[CloneCandidate]:
        """
        Describe every port as a clone target for ``for_port``.

        Args:
            for_port: 0-based index of the inspecting port
            current_first: Move the inspecting port's own row to the front

        Returns:
            One CloneCandidate per port, in device order unless reordered
        """
        candidates = [self._describe(for_port, port) for port in self.ports]
        if current_first:
            return move_to_front(candidates, for_port)
        return candidates

    def all_candidates(self, current_first: bool = True) -> Dict[int, List[CloneCandidate]]:
        """Candidate lists for every port, keyed by port index."""
        return {
            port.index: self.clone_candidates(port.index, current_first)
            for port in self.ports
        }

    def _describe(self, for_port: int, port: DmxPort) -> CloneCandidate:
        number = port.number

        if port.index == for_port:
            return CloneCandidate(port.index, word("clone_none"), "", True, CloneStatus.NONE)

        if not port.is_output:
            mode_name = self.codec.label("ptMode", port.mode)
            return CloneCandidate(
                port.index,
                word("clone_not_outputting", number, mode_name),
                word("clone_not_outputting_desc", number, mode_name),
                False,
                CloneStatus.NOT_OUTPUTTING,
            )

        if port.clone_port == for_port:
            return CloneCandidate(
                port.index,
                word("clone_local", number, for_port + 1),
                word("clone_local_desc", number, for_port + 1),
                False,
                CloneStatus.LOCAL_CYCLE,
            )

        if is_cloned(port, port.index):
            return CloneCandidate(
                port.index,
                word("clone_distant", number, port.clone_port + 1),
                word("clone_distant_desc", number, port.clone_port + 1),
                False,
                CloneStatus.DISTANT_CYCLE,
            )

        return CloneCandidate(
            port.index,
            word("clone_free", number),
            word("clone_free_desc", number),
            True,
            CloneStatus.FREE,
        )

    # ─────────────────────────────────────────────────────────
    # Validation
    # ─────────────────────────────────────────────────────────

    def _cloned_by_error(self, index: int, dependents: List[int]) -> PortValidationError:
        numbers = [str(i + 1) for i in dependents]
        return PortValidationError(word(
            "port_cloned_by",
            index + 1,
            "s" if len(numbers) > 1 else "",
            ", ".join(numbers),
        ))

    def check_mode_change(self, index: int, new_mode: int) -> None:
        """
        Refuse leaving output mode while other ports clone this one.

        Raises:
            PortValidationError: Naming the dependent ports
        """
        if new_mode == PortMode.OUTPUT:
            return
        dependents = self.dependents_of(index)
        if dependents:
            raise self._cloned_by_error(index, dependents)

    def check_clone_target(self, index: int, target: int) -> None:
        """
        Refuse a clone target that is not a free output port.

        Raises:
            PortValidationError: With the candidate's explanation
        """
        if target == index:
            return
        if not 0 <= target < len(self.ports):
            raise PortValidationError(word("port_unknown", target + 1))

        candidate = self._describe(index, self.ports[target])
        if not candidate.selectable:
            raise PortValidationError(candidate.description)

        dependents = self.dependents_of(index)
        if dependents:
            raise self._cloned_by_error(index, dependents)

    @staticmethod
    def check_range(range_from: int, range_to: int, offset: int) -> None:
        """
        Validate a DMX range and its offset.

        Raises:
            PortValidationError: If a bound or the offset is out of range
        """
        if not (1 <= range_from <= DMX_CHANNELS and 1 <= range_to <= DMX_CHANNELS):
            raise PortValidationError(word("port_range_bounds"))
        if range_from > range_to:
            raise PortValidationError(word("port_range_order"))
        if offset < 0:
            raise PortValidationError(word("port_offset_negative"))
        if range_from + offset > DMX_CHANNELS:
            raise PortValidationError(word("port_offset_from"))
        if range_to + offset > DMX_CHANNELS:
            raise PortValidationError(word("port_offset_to"))

    def validate_update(self, index: int, fields: Mapping[str, Any]) -> None:
        """
        Validate raw port fields before they are submitted.

        Every port field must be a whole number. Missing fields are taken
        from the stored port. Range checks are skipped for disabled and
        cloning ports.

        Raises:
            PortValidationError: On the first broken rule
        """
        if not 0 <= index < len(self.ports):
            raise PortValidationError(word("port_unknown", index + 1))

        for key, value in fields.items():
            if key in DmxPort.ATTRIBUTES and as_int(value) is None:
                raise PortValidationError(word("port_value_invalid", key, value))

        line = {**self.ports[index].to_dict(), **fields}
        mode = as_int(line.get("ptMode"), PortMode.DISABLE)
        clone = as_int(line.get("ptClonePort"), index)

        self.check_mode_change(index, mode)
        if mode == PortMode.OUTPUT:
            self.check_clone_target(index, clone)

        if mode == PortMode.DISABLE or is_cloned(line, index):
            return

        self.check_range(
            as_int(line.get("ptRangeFrom"), 1),
            as_int(line.get("ptRangeTo"), DMX_CHANNELS),
            as_int(line.get("ptOffsetAddr"), 0),
        )
        if mode == PortMode.SEND_VALUE:
            value = as_int(line.get("ptSendValue"), -1)
            if not 0 <= value <= 255:
                raise PortValidationError(word("port_send_value"))
