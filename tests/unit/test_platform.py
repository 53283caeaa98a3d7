"""Unit tests — platform detection, header pin map and controller selection."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from gpio_bridge.controllers import create_controller
from gpio_bridge.controllers.interfaces import MockController, RaspberryPiController
from gpio_bridge.pins import HARDWARE_PWM_PINS, RaspberryPin
from gpio_bridge.platform import PlatformInfo


@pytest.fixture(autouse=True)
def _fresh_platform_cache():
    PlatformInfo.reset_cache()
    yield
    PlatformInfo.reset_cache()


@pytest.mark.unit
class TestPlatformInfo:
    def test_detect_is_cached(self) -> None:
        with patch("gpio_bridge.platform._read_pi_model", return_value=None) as read:
            first = PlatformInfo.detect()
            second = PlatformInfo.detect()
        assert first is second
        read.assert_called_once()
        assert first.is_raspberry_pi is False

    def test_detect_pi(self) -> None:
        model = "Raspberry Pi 4 Model B Rev 1.4"
        with patch("gpio_bridge.platform._read_pi_model", return_value=model):
            info = PlatformInfo.detect()
        assert info.is_raspberry_pi is True
        assert info.model == model

    def test_instances_are_frozen(self) -> None:
        info = PlatformInfo(os_name="Linux", architecture="x86_64", is_raspberry_pi=False, model=None)
        with pytest.raises(AttributeError):
            info.model = "x"  # type: ignore[misc]


@pytest.mark.unit
class TestCreateController:
    def test_explicit_kinds(self) -> None:
        assert isinstance(create_controller("mock"), MockController)
        assert isinstance(create_controller("rpi"), RaspberryPiController)

    def test_auto_falls_back_to_mock_off_pi(self) -> None:
        with patch("gpio_bridge.platform._read_pi_model", return_value=None):
            assert isinstance(create_controller("auto"), MockController)

    def test_auto_picks_rpi_on_pi(self) -> None:
        with patch("gpio_bridge.platform._read_pi_model", return_value="Raspberry Pi 3"):
            assert isinstance(create_controller("auto"), RaspberryPiController)


@pytest.mark.unit
class TestRaspberryPin:
    def test_bcm_and_physical(self) -> None:
        assert RaspberryPin.PHYSICAL_12.bcm == 18
        assert RaspberryPin.PHYSICAL_12.physical == 12
        assert RaspberryPin.PHYSICAL_3 == 2

    def test_from_physical(self) -> None:
        assert RaspberryPin.from_physical(40) is RaspberryPin.PHYSICAL_40
        with pytest.raises(ValueError):
            RaspberryPin.from_physical(1)

    def test_header_has_26_gpios_with_unique_bcm(self) -> None:
        assert len(RaspberryPin) == 26
        assert len({pin.bcm for pin in RaspberryPin}) == 26

    def test_hardware_pwm_pins(self) -> None:
        assert {pin.bcm for pin in HARDWARE_PWM_PINS} == {12, 13, 18, 19}
