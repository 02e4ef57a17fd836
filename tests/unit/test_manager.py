"""
Unit Tests for the Device Manager

Tests for:
- Port saves: validation, submitted fields, confirmed deltas, candidates
- IP, preset, cue, remote input and identify saves
- Save guard (busy controls) and one notification per save
- Save failures leaving the state untouched
- Status polling and settings wiring
"""

import pytest
import asyncio
from unittest.mock import Mock

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from netron.types import CloneStatus, Endpoint, IdentifyStatus, SaveStatus
from netron.config import Settings
from netron.feedback import FeedbackCenter, NotificationLevel
from netron.manager import DeviceManager
from netron.preferences import MemoryPreferenceStore
from netron.transport import DeviceTransport, FixtureTransport
from netron.wording import word


async def load_manager(transport, **kwargs):
    manager = DeviceManager(transport, **kwargs)
    result = await manager.load()
    assert result.success
    return manager


class BlockingTransport(DeviceTransport):
    """Wraps a transport and holds posts until released."""

    def __init__(self, inner):
        self.inner = inner
        self.release = asyncio.Event()

    async def get_json(self, name):
        return await self.inner.get_json(name)

    async def post_form(self, endpoint, fields):
        await self.release.wait()
        return await self.inner.post_form(endpoint, fields)


class TestSavePort:
    """Tests for save_port."""

    @pytest.mark.asyncio
    async def test_range_rejected_without_post(self, transport):
        """Test From 500 / To 100 is refused locally."""
        manager = await load_manager(transport)
        before = manager.state.dmx_ports[2]

        result = await manager.save_port(2, {"ptRangeFrom": 500, "ptRangeTo": 100})

        assert result.status == SaveStatus.VALIDATION_ERROR
        assert result.message == word("port_range_order")
        assert transport.posted == []
        assert manager.state.dmx_ports[2] == before

    @pytest.mark.asyncio
    async def test_mode_change_names_dependent_port(self, transport):
        """Test disabling a cloned port names the port cloning it."""
        manager = await load_manager(transport)

        result = await manager.save_port(0, {"ptMode": "Disable"})

        assert result.status == SaveStatus.VALIDATION_ERROR
        assert result.message == "Port 1 is cloned by Port: 2"
        assert transport.posted == []
        assert manager.state.dmx_ports[0].mode == 2

    @pytest.mark.asyncio
    async def test_save_output_port(self, transport):
        """Test a successful save posts raw values and applies them."""
        manager = await load_manager(transport)

        result = await manager.save_port(3, {"ptMode": "Output", "ptProtocol": "Art-Net", "ptUniverse": 5})

        assert result.success is True
        endpoint, fields = transport.posted[0]
        assert endpoint == "save_dmx_port"
        assert fields["idx"] == 3
        assert fields["ptMode"] == 2
        assert fields["ptUniverse"] == 4
        assert "ptSendValue" not in fields
        assert manager.state.dmx_ports[3].mode == 2
        assert manager.state.dmx_ports[3].universe == 4
        assert result.message == "Port 4 updated successfully!"

    @pytest.mark.asyncio
    async def test_candidates_recomputed(self, transport):
        """Test clone candidates follow a saved mode change."""
        manager = await load_manager(transport)
        handler = Mock()
        manager.on("candidates_changed", handler)
        before = {c.target: c.status for c in manager.port_candidates(0)}
        assert before[3] == CloneStatus.NOT_OUTPUTTING

        await manager.save_port(3, {"ptMode": "Output"})

        after = {c.target: c.status for c in manager.port_candidates(0)}
        assert after[3] == CloneStatus.FREE
        handler.assert_called_once()

    @pytest.mark.asyncio
    async def test_cloning_port_submits_target_only(self, transport):
        """Test a port set to clone only posts its target and mode."""
        manager = await load_manager(transport)

        result = await manager.save_port(3, {"ptMode": "Output", "ptClonePort": 0})

        assert result.success is True
        assert transport.posted[0] == ("save_dmx_port", {"idx": 3, "ptClonePort": 0, "ptMode": 2})
        assert manager.graph().dependents_of(0) == [1, 3]

    @pytest.mark.asyncio
    async def test_clone_of_cloning_port_refused(self, transport):
        """Test a port can not clone a port that clones another."""
        manager = await load_manager(transport)

        result = await manager.save_port(3, {"ptMode": "Output", "ptClonePort": 1})

        assert result.status == SaveStatus.VALIDATION_ERROR
        assert transport.posted == []

    @pytest.mark.asyncio
    async def test_save_failure_leaves_state(self, transport):
        """Test a failed post reports the generic error and changes nothing."""
        manager = await load_manager(transport)
        transport.fail_posts = True

        result = await manager.save_port(3, {"ptMode": "Output"})

        assert result.status == SaveStatus.SAVE_ERROR
        assert result.message == word("save_failed")
        assert manager.state.dmx_ports[3].mode == 0
        assert manager.feedback.get("port-3").level == NotificationLevel.DANGER

    @pytest.mark.asyncio
    async def test_unknown_port(self, transport):
        """Test saving a port that does not exist."""
        manager = await load_manager(transport)
        result = await manager.save_port(9, {"ptMode": "Output"})
        assert result.status == SaveStatus.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_non_numeric_universe_refused(self, transport):
        """Test a universe that is not a number is refused and the port stays usable."""
        manager = await load_manager(transport)

        result = await manager.save_port(0, {"ptUniverse": "abc"})

        assert result.status == SaveStatus.VALIDATION_ERROR
        assert result.message == word("port_value_invalid", "ptUniverse", "abc")
        assert transport.posted == []
        assert manager.state.dmx_ports[0].universe == 0
        assert manager.home_summary()["ports"][0]["ptUniverse"] == 1

    @pytest.mark.asyncio
    async def test_mutual_clones_refused_both_ways(self, transport, documents):
        """Test ports cloning each other can not be saved that way from either side."""
        documents["DMXPorts.json"][0]["ptClonePort"] = 1
        manager = await load_manager(transport)

        assert manager.port_candidates(0)[1].status == CloneStatus.LOCAL_CYCLE
        assert {c.target: c.status for c in manager.port_candidates(1)}[0] == CloneStatus.LOCAL_CYCLE

        first = await manager.save_port(0, {"ptMode": "Output", "ptClonePort": 1})
        second = await manager.save_port(1, {"ptMode": "Output", "ptClonePort": 0})

        assert first.status == SaveStatus.VALIDATION_ERROR
        assert second.status == SaveStatus.VALIDATION_ERROR
        assert transport.posted == []


class TestSaveGuard:
    """Tests for busy controls and notifications."""

    @pytest.mark.asyncio
    async def test_one_notification_per_save(self, transport):
        """Test every completed save shows exactly one notification."""
        manager = await load_manager(transport)
        shown = Mock()
        manager.feedback.on("shown", shown)

        await manager.save_port(3, {"ptMode": "Output"})
        await manager.save_port(2, {"ptRangeFrom": 500, "ptRangeTo": 100})

        assert shown.call_count == 2
        assert manager.feedback.get("port-3").level == NotificationLevel.SUCCESS
        assert manager.feedback.get("port-2").level == NotificationLevel.DANGER

    @pytest.mark.asyncio
    async def test_busy_while_notification_visible(self, transport):
        """Test a control is refused while its notification is visible."""
        manager = await load_manager(transport)
        shown = Mock()
        await manager.save_port(3, {"ptMode": "Output"})
        manager.feedback.on("shown", shown)

        result = await manager.save_port(3, {"ptMode": "Input"})

        assert result.status == SaveStatus.BUSY
        assert len(transport.posted) == 1
        shown.assert_not_called()

    @pytest.mark.asyncio
    async def test_busy_while_in_flight(self, transport):
        """Test a second save of the same control waits for the first."""
        blocking = BlockingTransport(transport)
        manager = await load_manager(blocking)

        first = asyncio.ensure_future(manager.set_identify(True))
        await asyncio.sleep(0)
        assert manager.is_busy("identify") is True

        second = await manager.set_identify(False)
        assert second.status == SaveStatus.BUSY

        blocking.release.set()
        assert (await first).success is True
        assert transport.posted == [("set_identify", {"IdentifyStatus": 2})]

    @pytest.mark.asyncio
    async def test_control_released_after_dismiss(self, transport):
        """Test a control accepts saves again once its notification is gone."""
        manager = await load_manager(transport, feedback=FeedbackCenter(duration=0.01))
        await manager.set_identify(True)
        await asyncio.sleep(0.05)

        result = await manager.set_identify(False)

        assert result.success is True
        assert manager.state.identify_status == IdentifyStatus.OFF

    @pytest.mark.asyncio
    async def test_other_controls_not_busy(self, transport):
        """Test the guard is per control."""
        manager = await load_manager(transport)
        await manager.save_port(3, {"ptMode": "Output"})

        result = await manager.save_port(2, {"ptUniverse": 9})

        assert result.success is True


class TestSaveIp:
    """Tests for save_ip."""

    @pytest.mark.asyncio
    async def test_custom_address(self, transport):
        """Test custom addresses are validated and sent zero-padded."""
        manager = await load_manager(transport)

        result = await manager.save_ip("Custom IP", "10.0.0.1", "255.255.0.0")

        assert result.success is True
        assert transport.posted[0] == ("save_info", {
            "addressmode": 3,
            "ipaddress": "010.000.000.001",
            "netmask": "255.255.000.000",
        })
        assert manager.state.ip["ipaddress"] == "10.0.0.1"

    @pytest.mark.asyncio
    async def test_invalid_address(self, transport):
        """Test malformed addresses are refused."""
        manager = await load_manager(transport)

        result = await manager.save_ip(3, "256.1.1.1", "255.0.0.0")

        assert result.status == SaveStatus.VALIDATION_ERROR
        assert result.message == word("ip_address_invalid", "256.1.1.1")
        assert transport.posted == []

    @pytest.mark.asyncio
    async def test_invalid_netmask(self, transport):
        """Test a malformed netmask is refused."""
        manager = await load_manager(transport)
        result = await manager.save_ip(3, "10.0.0.1", "255.0.0")
        assert result.message == word("ip_netmask_invalid", "255.0.0")

    @pytest.mark.asyncio
    async def test_automatic_mode(self, transport):
        """Test automatic modes only send the mode."""
        manager = await load_manager(transport)
        await manager.save_ip("DHCP IP")
        assert transport.posted[0] == ("save_info", {"addressmode": 0})


class TestPresets:
    """Tests for factory and user presets."""

    @pytest.mark.asyncio
    async def test_save_preset_with_universe(self, transport):
        """Test an Art-Net preset universe is sent 0-based."""
        manager = await load_manager(transport)

        result = await manager.save_preset(0, 1)

        assert result.success is True
        assert transport.posted[0] == ("save_preset_netron", {"idx": 0, "PresetNum": 0, "universe": 0})
        assert manager.state.presets[0].universe == 0

    @pytest.mark.asyncio
    async def test_save_preset_without_universe(self, transport):
        """Test presets without a universe omit it."""
        manager = await load_manager(transport)
        await manager.save_preset(1, 5)
        assert transport.posted[0] == ("save_preset_netron", {"idx": 1, "PresetNum": 1})

    @pytest.mark.asyncio
    async def test_load_user_preset(self, transport):
        """Test user presets are loaded by id + 100."""
        manager = await load_manager(transport)
        result = await manager.load_user_preset(0)
        assert result.success is True
        assert transport.posted[0] == ("load_preset_netron", {"PresetNum": 100})

    @pytest.mark.asyncio
    async def test_locked_user_preset(self, transport):
        """Test locked user presets are refused."""
        manager = await load_manager(transport)
        result = await manager.load_user_preset(1)
        assert result.status == SaveStatus.VALIDATION_ERROR
        assert result.message == word("user_preset_locked", 2)
        assert transport.posted == []

    @pytest.mark.asyncio
    async def test_rename_user_preset(self, transport):
        """Test renaming uses id + 101 and updates the state."""
        manager = await load_manager(transport)

        result = await manager.rename_user_preset(0, "  Finale ")

        assert result.success is True
        assert transport.posted[0] == ("save_preset_netron", {"idx": 101, "name": "Finale"})
        assert manager.state.user_presets[0].name == "Finale"

    @pytest.mark.asyncio
    async def test_rename_too_long(self, transport):
        """Test names longer than 12 characters are refused."""
        manager = await load_manager(transport)
        result = await manager.rename_user_preset(0, "Thirteen chars")
        assert result.status == SaveStatus.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_rename_locked_user_preset(self, transport):
        """Test locked user presets can not be renamed."""
        manager = await load_manager(transport)

        result = await manager.rename_user_preset(1, "Mine")

        assert result.status == SaveStatus.VALIDATION_ERROR
        assert result.message == word("user_preset_locked", 2)
        assert transport.posted == []
        assert manager.state.user_presets[1].name == "Locked"


class TestCues:
    """Tests for cue operations."""

    @pytest.mark.asyncio
    async def test_run_cue(self, transport):
        """Test running a cue records it as running."""
        manager = await load_manager(transport)

        result = await manager.run_cue(2, resend=True)

        assert result.success is True
        assert transport.posted[0] == ("run_cues", {"RunCue": 2, "CuesResendEth": 1})
        assert manager.state.cues_status["CueRunningName"] == "Main"

    @pytest.mark.asyncio
    async def test_run_unknown_cue(self, transport):
        """Test running a missing cue is refused."""
        manager = await load_manager(transport)
        result = await manager.run_cue(9)
        assert result.status == SaveStatus.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_save_cue(self, transport):
        """Test saving a cue slot."""
        manager = await load_manager(transport)
        await manager.save_cue(3)
        assert transport.posted[0] == ("save_cues", {"CueNum": 3})

    @pytest.mark.asyncio
    async def test_edit_cue_with_link(self, transport):
        """Test a linked cue sends its hold time."""
        manager = await load_manager(transport)

        result = await manager.edit_cue(1, "Opening", "00:00:07", "00:01:00", 3)

        assert result.success is True
        assert transport.posted[0] == ("edit_cues", {
            "idx": 1, "Name": "Opening", "fadeTime": 7, "holdTime": 60, "linkCue": 3,
        })
        cue = manager.state.cues[0]
        assert (cue.name, cue.fade_time, cue.hold_time, cue.link) == ("Opening", 7, 60, 3)
        assert [[c["idx"] for c in chain] for chain in manager.cue_chains()] == [[1, 3], [2]]

    @pytest.mark.asyncio
    async def test_edit_cue_without_link(self, transport):
        """Test an unlinked cue omits the hold time."""
        manager = await load_manager(transport)
        await manager.edit_cue(2, "Main", 3)
        assert transport.posted[0] == ("edit_cues", {"idx": 2, "Name": "Main", "fadeTime": 3, "linkCue": 0})

    @pytest.mark.asyncio
    async def test_edit_cue_self_link(self, transport):
        """Test a cue linked to itself is refused."""
        manager = await load_manager(transport)
        result = await manager.edit_cue(2, "Main", 3, 0, 2)
        assert result.status == SaveStatus.VALIDATION_ERROR
        assert transport.posted == []

    @pytest.mark.asyncio
    async def test_edit_cue_loop_refused(self, transport):
        """Test linking cue 2 back to cue 1 is refused before posting."""
        manager = await load_manager(transport)

        result = await manager.edit_cue(2, "Main", 3, 0, 1)

        assert result.status == SaveStatus.VALIDATION_ERROR
        assert result.message == word("cue_link_loop", 2, 1)
        assert transport.posted == []
        assert manager.state.cues[1].link == 0

    @pytest.mark.asyncio
    async def test_edit_cue_shared_target_refused(self, transport):
        """Test a cue already following another cue can not be linked again."""
        manager = await load_manager(transport)

        result = await manager.edit_cue(3, "Solo", 0, 0, 2)

        assert result.status == SaveStatus.VALIDATION_ERROR
        assert result.message == word("cue_already_linked", 2, 1)
        assert transport.posted == []
        assert [[c["idx"] for c in chain] for chain in manager.cue_chains()] == [[1, 2], [3]]

    @pytest.mark.asyncio
    async def test_edit_cue_non_numeric_link(self, transport):
        """Test a link that is not a cue number is refused."""
        manager = await load_manager(transport)

        result = await manager.edit_cue(3, "Solo", 0, 0, "abc")

        assert result.status == SaveStatus.VALIDATION_ERROR
        assert result.message == word("cue_link_invalid", "abc")
        assert transport.posted == []


class TestRemoteInputs:
    """Tests for save_remote_input."""

    @pytest.mark.asyncio
    async def test_network_trigger(self, transport):
        """Test a network trigger sends its universe."""
        manager = await load_manager(transport)

        result = await manager.save_remote_input(0, {
            "rmTriggerSource": "Art-Net",
            "rmSourceUniverse": 1,
            "rmSourceChannel": 10,
            "rmAction": "Run cue",
            "rmActionValue": 2,
        })

        assert result.success is True
        assert transport.posted[0] == ("save_remote_input", {
            "idx": 0,
            "rmTriggerSource": 1,
            "rmSourceChannel": 10,
            "rmAction": 0,
            "rmActionValue": 2,
            "rmSourceUniverse": 0,
        })
        assert manager.state.remote_inputs[0].source_channel == 10

    @pytest.mark.asyncio
    async def test_dmx_trigger_omits_universe(self, transport):
        """Test a DMX trigger does not send a universe."""
        manager = await load_manager(transport)
        await manager.save_remote_input(0, {"rmSourceChannel": 5})
        assert "rmSourceUniverse" not in transport.posted[0][1]

    @pytest.mark.asyncio
    async def test_invalid_channel(self, transport):
        """Test the trigger channel must be a DMX channel."""
        manager = await load_manager(transport)
        result = await manager.save_remote_input(0, {"rmSourceChannel": 0})
        assert result.message == word("remote_channel")

    @pytest.mark.asyncio
    async def test_invalid_action_value(self, transport):
        """Test the action value is checked against the action."""
        manager = await load_manager(transport)
        result = await manager.save_remote_input(0, {"rmAction": "Send value", "rmActionValue": 300})
        assert result.status == SaveStatus.VALIDATION_ERROR


class TestIdentify:
    """Tests for identify."""

    @pytest.mark.asyncio
    async def test_set_identify_emits_event(self, transport):
        """Test turning identify on posts status 2 and emits identify_on."""
        manager = await load_manager(transport)
        handler = Mock()
        manager.on("identify_on", handler)

        result = await manager.set_identify(True)

        assert result.message == word("identify_on")
        assert transport.posted[0] == ("set_identify", {"IdentifyStatus": 2})
        handler.assert_called_once_with(IdentifyStatus.ON)

    @pytest.mark.asyncio
    async def test_toggle_identify(self, transport, documents):
        """Test toggling turns an identifying device off."""
        documents["Identify.json"] = {"IdentifyStatus": 2}
        manager = await load_manager(transport)

        await manager.toggle_identify()

        assert transport.posted[0] == ("set_identify", {"IdentifyStatus": 0})
        assert manager.state.is_identified is False


class TestLifecycle:
    """Tests for loading, polling and settings."""

    @pytest.mark.asyncio
    async def test_load_records_preferences(self, transport):
        """Test the last device is remembered."""
        preferences = MemoryPreferenceStore()
        await load_manager(transport, preferences=preferences)

        assert preferences.get("last_device_type") == "NETRON EN12"
        assert preferences.get("last_device_name") == "Stage Left"

    @pytest.mark.asyncio
    async def test_status_polling(self, transport, documents):
        """Test polling refreshes the cue status."""
        manager = await load_manager(transport)
        documents["CuesStatus.json"] = {"CueRunning": 1, "CueRunningName": "Intro"}

        poller = manager.start_status_polling(interval=0.01)
        await asyncio.sleep(0.05)
        await manager.close()

        assert poller.applied >= 1
        assert poller.running is False
        assert manager.state.cues_status["CueRunningName"] == "Intro"
        assert transport.closed is True

    @pytest.mark.asyncio
    async def test_custom_endpoints(self, transport):
        """Test injected endpoint names are used."""
        manager = await load_manager(transport, endpoints={Endpoint.SAVE_CUES: "store_cue"})
        await manager.save_cue(1)
        assert transport.posted[0][0] == "store_cue"

    def test_from_settings(self, tmp_path):
        """Test settings select the transport and timings."""
        settings = Settings(transport="fixture", fixture_dir=str(tmp_path), notification_duration=0.5)
        manager = DeviceManager.from_settings(settings)

        assert isinstance(manager.transport, FixtureTransport)
        assert manager.feedback.duration == 0.5

    @pytest.mark.asyncio
    async def test_home_summary(self, transport):
        """Test the overview rows are available after load."""
        manager = await load_manager(transport)
        summary = manager.home_summary()
        assert len(summary["ports"]) == 4
        assert manager.status_summary()["DeviceName"] == "Stage Left"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
