"""GPIO Bridge — One GPIO/PWM/SPI/I2C API over two transports.

GPIO Bridge drives single-board-computer peripherals either in-process through
the local GPIO libraries or remotely through a ``pigpiod`` daemon, with the
same operations, numeric semantics and error codes on both paths.

Architecture layers (bottom to top):
    1. Taxonomy   — ErrorCode values, exception family, constant tables
    2. Registry   — generation-counted handles for controllers, sessions, SPI, I2C
    3. Backends   — Direct (RPi.GPIO/spidev/smbus2) and Daemon (pigpio client)
    4. Façade     — GPIOBridge, SPIDevice, I2CDevice
"""

__version__ = "0.1.0"
__author__ = "GPIO Bridge Contributors"
__license__ = "Apache-2.0"

from gpio_bridge.bridge import GPIOBridge
from gpio_bridge.codes import ErrorCode
from gpio_bridge.constants import BackendKind, ControllerLimits, Level, PinMode, Pull
from gpio_bridge.devices import I2CDevice, SPIDevice
from gpio_bridge.exceptions import (
    GPIOBridgeError,
    HandleError,
    HardwarePWMError,
    I2CError,
    InitialisationError,
    ParameterError,
    PinError,
    PWMError,
    SessionError,
    SPIError,
    TransportError,
)
from gpio_bridge.pins import HARDWARE_PWM_PINS, RaspberryPin

__all__ = [
    "__version__",
    "GPIOBridge",
    "SPIDevice",
    "I2CDevice",
    "ErrorCode",
    "BackendKind",
    "ControllerLimits",
    "Level",
    "PinMode",
    "Pull",
    "RaspberryPin",
    "HARDWARE_PWM_PINS",
    "GPIOBridgeError",
    "InitialisationError",
    "TransportError",
    "PinError",
    "PWMError",
    "HardwarePWMError",
    "HandleError",
    "SessionError",
    "SPIError",
    "I2CError",
    "ParameterError",
]
