from chargectl.core.codec import SERVICE_UUID, WRITE_CHAR_UUID, encode
from chargectl.core.model import OutletState


def test_on_and_off_payloads() -> None:
    assert encode(OutletState.ON).payload.hex() == "570101"
    assert encode(OutletState.OFF).payload.hex() == "570102"


def test_targets_plug_mini_endpoint() -> None:
    command = encode(OutletState.ON)
    assert command.service_uuid == SERVICE_UUID == "cba20d00-224d-11e6-9fb8-0002a5d5c51b"
    assert command.characteristic_uuid == WRITE_CHAR_UUID == "cba20002-224d-11e6-9fb8-0002a5d5c51b"
