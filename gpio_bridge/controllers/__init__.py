"""Local controllers — in-process access to the GPIO peripherals.

Provides:
  - :class:`~gpio_bridge.controllers.interfaces.GPIOInterface` — abstract controller API
  - :class:`~gpio_bridge.controllers.interfaces.RaspberryPiController` — RPi.GPIO/spidev/smbus2
  - :class:`~gpio_bridge.controllers.interfaces.MockController` — deterministic test controller
  - :func:`create_controller` — pick one from ``DirectConfig.controller``
"""

from __future__ import annotations

from gpio_bridge.controllers.interfaces import (
    GPIOInterface,
    MockController,
    RaspberryPiController,
)
from gpio_bridge.logging import get_logger
from gpio_bridge.platform import PlatformInfo

log = get_logger(__name__)


def create_controller(kind: str = "auto") -> GPIOInterface:
    """Build the local controller named by *kind* (``auto``, ``rpi`` or ``mock``)."""
    if kind == "rpi":
        return RaspberryPiController()
    if kind == "mock":
        return MockController()

    info = PlatformInfo.detect()
    if info.is_raspberry_pi:
        log.debug("controller_selected", controller="rpi", model=info.model)
        return RaspberryPiController()
    log.warning(
        "controller_fallback_to_mock",
        reason="not running on a Raspberry Pi",
        os_name=info.os_name,
        architecture=info.architecture,
    )
    return MockController()


__all__ = [
    "GPIOInterface",
    "MockController",
    "RaspberryPiController",
    "create_controller",
]
