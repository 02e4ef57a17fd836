"""
Shared fixtures for the Netron unit tests.

The sample device has four ports:
    Port 1: Art-Net output, universe 0 (shown as 1)
    Port 2: output cloning Port 1
    Port 3: sACN input, universe 7
    Port 4: disabled
"""

import copy
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

import pytest

from netron.config import BASE_DOCUMENTS, DEFAULT_DOCUMENTS, VARIANT_DOCUMENTS, VARIANT_MODEL
from netron.device import DeviceState, with_document
from netron.transport import DeviceTransport, TransportConnectionError, TransportHttpError


def _port(**fields):
    line = {
        "ptMode": 0,
        "ptProtocol": 0,
        "ptUniverse": 0,
        "ptRDM": 1,
        "ptFramerate": 5,
        "ptMergeMode": 0,
        "ptMergeUniverse": 0,
        "ptResendProtocol": 2,
        "ptResendUniverse": 0,
        "ptSendValue": 0,
        "ptRangeFrom": 1,
        "ptRangeTo": 512,
        "ptOffsetAddr": 0,
    }
    line.update(fields)
    return line


def sample_documents():
    return {
        "Setting.json": {
            "DeviceType": "NETRON EN12",
            "DeviceName": "Stage Left",
            "UniverseMode": 0,
            "MACAddress": "00:50:C2:00:00:01",
            "RDMUID": "4F4E:00000001",
            "OnTime": "1200h",
        },
        "IP.json": {
            "addressmode": 3,
            "ipaddress": "002.143.056.006",
            "netmask": "255.000.000.000",
        },
        "index.json": {"FirmwareVer": "V1.2.A", "BootVer": "B1.0", "WebVer": "W2.0"},
        "DMXPorts.json": [
            _port(ptMode=2, ptClonePort=0),
            _port(ptMode=2, ptClonePort=0),
            _port(ptMode=1, ptClonePort=2, ptProtocol=1, ptUniverse=7),
            _port(ptMode=0, ptClonePort=3),
        ],
        "Identify.json": {"IdentifyStatus": 0},
        "Presets.json": [
            {"name": "All Art-Net", "universe": 0},
            {"name": "All sACN"},
        ],
        "UserPresets.json": [
            {"name": "Show A ", "Owner": 0},
            {"name": "Locked", "Owner": 1},
        ],
        "Cues.json": [
            {"idx": 1, "Name": "Intro", "fadeTime": 5, "holdTime": 10, "linkCue": 2},
            {"idx": 2, "Name": "Main", "fadeTime": 3, "holdTime": 0, "linkCue": 0},
            {"idx": 3, "Name": "Solo", "fadeTime": 0, "holdTime": 0, "linkCue": 0},
        ],
        "CuesSetting.json": {"CuesResendEth": 0},
        "CuesStatus.json": {"CueRunning": 0, "CueRunningName": "No Cue"},
        "RemoteInputs.json": [
            {
                "rmTriggerSource": 0,
                "rmSourceUniverse": 0,
                "rmSourceChannel": 1,
                "rmAction": 0,
                "rmActionValue": 1,
            },
        ],
    }


def sample_variant_documents():
    documents = sample_documents()
    documents["Setting.json"]["DeviceType"] = VARIANT_MODEL
    documents["DMXInputab.json"] = [
        {"InputSource": 1, "InputProtocol": 0, "InputUniverse": 0, "InputFrameRate": 5, "InputRDM": 1},
        {"InputSource": 0, "InputProtocol": 1, "InputUniverse": 3, "InputFrameRate": 5, "InputRDM": 0},
    ]
    documents["DMXInputmerger.json"] = {"MergerMode": 1, "MergerFrameRate": 3}
    return documents


def build_state(documents, keys):
    state = DeviceState()
    for key in keys:
        state = with_document(state, key, documents[DEFAULT_DOCUMENTS[key]])
    return state


class MemoryTransport(DeviceTransport):
    """Serves documents from a dict and records posts."""

    def __init__(self, documents):
        self.documents = documents
        self.requested = []
        self.posted = []
        self.fail_posts = False
        self.closed = False

    async def get_json(self, name):
        self.requested.append(name)
        if name not in self.documents:
            raise TransportHttpError("HTTP error! status: 404", 404)
        return copy.deepcopy(self.documents[name])

    async def post_form(self, endpoint, fields):
        if self.fail_posts:
            raise TransportConnectionError("Failed to reach device")
        self.posted.append((endpoint, dict(fields)))
        return {}

    async def close(self):
        self.closed = True


@pytest.fixture
def documents():
    return sample_documents()


@pytest.fixture
def variant_documents():
    return sample_variant_documents()


@pytest.fixture
def transport(documents):
    return MemoryTransport(documents)


@pytest.fixture
def variant_transport(variant_documents):
    return MemoryTransport(variant_documents)


@pytest.fixture
def state(documents):
    return build_state(documents, BASE_DOCUMENTS)


@pytest.fixture
def variant_state(variant_documents):
    return build_state(variant_documents, BASE_DOCUMENTS + VARIANT_DOCUMENTS)
