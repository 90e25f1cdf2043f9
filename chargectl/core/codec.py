"""Command encoding for SwitchBot Plug Mini class outlets."""

from __future__ import annotations

from chargectl.core.model import EncodedCommand, OutletState

SERVICE_UUID = "cba20d00-224d-11e6-9fb8-0002a5d5c51b"
WRITE_CHAR_UUID = "cba20002-224d-11e6-9fb8-0002a5d5c51b"

_OPCODE = 0x57
_SET_RELAY = 0x01
_STATE_BYTES = {
    OutletState.ON: 0x01,
    OutletState.OFF: 0x02,
}


def encode(target: OutletState) -> EncodedCommand:
    return EncodedCommand(
        service_uuid=SERVICE_UUID,
        characteristic_uuid=WRITE_CHAR_UUID,
        payload=bytes((_OPCODE, _SET_RELAY, _STATE_BYTES[target])),
    )
