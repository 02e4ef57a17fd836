"""
Operator-facing wording.

Every message the core produces is a template here, with ``%1``-style
placeholders filled by format_template(). Kept in one table so the text
can be translated without touching the rules that use it.
"""

import re
from typing import Any

ARTNET = "Art-Net"
SACN = "sACN"
LOCKED = "\U0001F6C7"

WORDS = {
    # Ports
    "port_label": "Port %1",
    "port_cloning_short": "P%1",
    "port_cloning_summary": "Cloning P%1",
    "clone_none": "None",
    "clone_free": "Port %1",
    "clone_free_desc": "The port %1 can be cloned",
    "clone_not_outputting": LOCKED + " Port %1 mode is: %2",
    "clone_not_outputting_desc": "The port %1 mode is set to %2, it can not be cloned",
    "clone_local": LOCKED + " Port %1 clones: Port %2",
    "clone_local_desc": "The port %1 is cloning the current Port %2 (dependancy loop)",
    "clone_distant": LOCKED + " Port %1 clones: Port %2",
    "clone_distant_desc": "The port %1 is cloning the Port %2 (dependancy loop)",
    "port_unknown": "The port %1 does not exist",
    "port_cloned_by": "Port %1 is cloned by Port%2: %3",
    "port_range_order": "The From/To DMX is incorrect (From DMX > To DMX or To DMX < From DMX)",
    "port_range_bounds": "The From/To DMX must be between 1 and 512",
    "port_offset_negative": "The Offset DMX can not be negative",
    "port_offset_from": "The Offset DMX is exceeding the From DMX limit of 512",
    "port_offset_to": "The Offset DMX is exceeding the To DMX limit of 512",
    "port_send_value": "The send value must be between 0 and 255",
    "port_value_invalid": "The %1 value %2 is incorrect",
    "port_success": "Port %1 updated successfully!",
    # IP
    "ip_address_invalid": "The IP address %1 is incorrect",
    "ip_netmask_invalid": "The Net mask %1 is incorrect",
    "ip_success": "IP settings have been successfully updated!",
    # Presets
    "preset_unknown": "The preset %1 does not exist",
    "preset_success": "Netron preset loaded successfully!",
    "user_preset_locked": "The user preset %1 is locked",
    "user_preset_name": "The user preset name must be between 1 and 12 characters",
    "user_preset_load_success": "User preset loaded successfully!",
    "user_preset_rename_success": "User preset renamed successfully!",
    # Cues
    "cue_none": "No Cue",
    "cue_unknown": "The cue %1 does not exist",
    "cue_self_link": "The cue %1 can not be linked to itself",
    "cue_link_invalid": "The next cue %1 is incorrect",
    "cue_already_linked": "The cue %1 already follows the cue %2",
    "cue_link_loop": "Linking the cue %1 to the cue %2 would create a loop",
    "cue_name": "The cue name must be between 1 and 12 characters",
    "cue_time": "The cue timing can not be negative",
    "cue_run_success": "Run cues set successfully!",
    "cue_save_success": "Cue successfully saved!",
    "cue_edit_success": "Cue options modified successfully!",
    # Remote inputs
    "remote_unknown": "The remote input %1 does not exist",
    "remote_channel": "The trigger channel must be between 1 and 512",
    "remote_value": "The action value %1 is incorrect",
    "remote_success": "Remote input %1 updated successfully!",
    # Identify
    "identify_on": "Identify is on",
    "identify_off": "Identify is off",
    # Generic
    "save_failed": "An error occurred while saving, please try again",
    "save_busy": "A save is already in progress",
    "status_on_time": "%1h (%2 week%3, or %4 day%5)",
}


def format_template(text: str, *values: Any) -> str:
    """Replace %1, %2, ... with the given values. Unknown placeholders stay as is."""
    def replace(match):
        position = int(match.group(1)) - 1
        if 0 <= position < len(values):
            return str(values[position])
        return match.group(0)

    return re.sub(r"%(\d+)", replace, text)


def word(key: str, *values: Any) -> str:
    """Look up a template and fill it."""
    return format_template(WORDS[key], *values)
