"""Unit tests — SPIDevice and I2CDevice wrappers."""

from __future__ import annotations

import pytest
from conftest import FakePi

from gpio_bridge import GPIOBridge, I2CDevice, SPIDevice
from gpio_bridge.codes import ErrorCode
from gpio_bridge.controllers.interfaces import MockController
from gpio_bridge.exceptions import HandleError, ParameterError


@pytest.fixture(params=["direct", "daemon"])
def any_bridge(request: pytest.FixtureRequest) -> GPIOBridge:
    name = "bridge" if request.param == "direct" else "daemon_bridge"
    return request.getfixturevalue(name)


@pytest.mark.unit
class TestSPIDevice:
    def test_open_and_transfer(self, any_bridge: GPIOBridge) -> None:
        device = any_bridge.open_spi(0, baud=50_000)
        assert isinstance(device, SPIDevice)
        assert (device.channel, device.baud, device.flags) == (0, 50_000, 0)
        assert device.transfer([0x01, 0x80, 0x00]) == b"\x01\x80\x00"
        assert device.write(b"\xaa") == 1
        assert device.read(2) == b"\x00\x00"
        device.close()

    def test_close_is_idempotent(self, any_bridge: GPIOBridge) -> None:
        device = any_bridge.open_spi(1, baud=50_000)
        device.close()
        device.close()
        assert device.closed

        with pytest.raises(HandleError) as info:
            device.transfer(b"\x00")
        assert info.value.code is ErrorCode.BAD_HANDLE

    def test_context_manager(self, bridge: GPIOBridge, controller: MockController) -> None:
        with bridge.open_spi(0, baud=50_000) as device:
            device.write([1, 2, 3])
        assert device.closed
        assert controller.spi_devices[0].is_open is False

    def test_daemon_context_manager(self, daemon_bridge: GPIOBridge, fake_pis: list[FakePi]) -> None:
        with daemon_bridge.open_spi(0, baud=50_000):
            pass
        assert fake_pis[0].called("spi_close") == [(0,)]

    def test_repr(self, bridge: GPIOBridge) -> None:
        device = bridge.open_spi(0, baud=250_000)
        assert repr(device) == f"SPIDevice(handle={device.handle}, channel=0, baud=250000)"


@pytest.mark.unit
class TestI2CDevice:
    def test_register_helpers(self, any_bridge: GPIOBridge, controller: MockController) -> None:
        controller.attach_i2c_device(1, 0x48)
        with any_bridge.open_i2c(1, 0x48) as sensor:
            assert isinstance(sensor, I2CDevice)
            sensor.write_register(0x01, 0x7F)
            assert sensor.read_register(0x01) == 0x7F
            sensor.write_word(0x02, 0x1234)
            assert sensor.read_word(0x02) == 0x1234
            sensor.write_i2c_block(0x10, b"\x01\x02\x03\x04")
            assert sensor.read_i2c_block(0x10, 4) == b"\x01\x02\x03\x04"
            sensor.write_block(0x20, [9, 8, 7])
            assert sensor.read_block(0x20) == b"\x09\x08\x07"
        assert sensor.closed

    def test_raw_transfers(self, bridge: GPIOBridge, controller: MockController) -> None:
        controller.attach_i2c_device(1, 0x50, registers=b"\x11\x22\x33")
        sensor = bridge.open_i2c(1, 0x50)
        sensor.write_byte(0x00)
        assert sensor.read_byte() == 0x11
        assert sensor.read_device(2) == b"\x22\x33"
        sensor.write_byte(0x00)
        assert sensor.read_device(3) == b"\x11\x22\x33"
        sensor.write_device(b"\x04\xaa")
        assert sensor.read_register(0x04) == 0xAA

    def test_block_limit(self, any_bridge: GPIOBridge) -> None:
        sensor = any_bridge.open_i2c(1, 0x48)
        with pytest.raises(ParameterError):
            sensor.read_i2c_block(0x00, 33)

    def test_calls_after_close(self, any_bridge: GPIOBridge) -> None:
        sensor = any_bridge.open_i2c(1, 0x48)
        sensor.close()
        sensor.close()
        with pytest.raises(HandleError):
            sensor.read_word(0x00)

    def test_closing_the_bridge_invalidates_devices(self, daemon_bridge: GPIOBridge) -> None:
        sensor = daemon_bridge.open_i2c(1, 0x48)
        daemon_bridge.close()
        with pytest.raises(HandleError):
            sensor.read_byte()

    def test_repr(self, bridge: GPIOBridge) -> None:
        sensor = bridge.open_i2c(1, 0x48)
        assert repr(sensor) == f"I2CDevice(handle={sensor.handle}, bus=1, address=0x48)"
