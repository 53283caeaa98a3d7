"""GPIO Bridge — Exception hierarchy.

Backends report failures as negative :class:`~gpio_bridge.codes.ErrorCode`
values; the façade turns each one into exactly one exception below.  Every
instance carries the originating ``code`` so callers can branch on the precise
kind while still catching whole families.

Hierarchy:
    GPIOBridgeError
    ├── InitialisationError
    ├── TransportError
    ├── PinError
    ├── PWMError
    │   └── HardwarePWMError
    ├── HandleError
    │   └── SessionError
    ├── SPIError
    ├── I2CError
    └── ParameterError
"""

from __future__ import annotations

from typing import Any

from gpio_bridge.codes import ErrorCode
from gpio_bridge.logging import get_logger

log = get_logger(__name__)


class GPIOBridgeError(Exception):
    """Base exception for all GPIO Bridge errors."""

    default_code: ErrorCode = ErrorCode.BAD_PARAM

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code: ErrorCode = code if code is not None else self.default_code
        self.context: dict[str, Any] = context or {}

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}({self.message!r}, "
            f"code={self.code.name}, context={self.context})"
        )


class InitialisationError(GPIOBridgeError):
    """The local controller could not be initialised or is not running."""

    default_code = ErrorCode.INIT_FAILED


class TransportError(GPIOBridgeError):
    """The daemon could not be reached, or a request/response was lost."""

    default_code = ErrorCode.CONNECT_FAILED


class PinError(GPIOBridgeError):
    """Bad GPIO number, mode, level or pull setting."""

    default_code = ErrorCode.BAD_GPIO


class PWMError(GPIOBridgeError):
    """Bad software PWM or servo parameter, or PWM not active on the pin."""

    default_code = ErrorCode.BAD_DUTYCYCLE


class HardwarePWMError(PWMError):
    """Hardware PWM unavailable on the pin, or bad frequency/duty."""

    default_code = ErrorCode.NOT_HPWM_GPIO


class HandleError(GPIOBridgeError):
    """Handle unknown, closed, stale, or owned by another backend/session."""

    default_code = ErrorCode.BAD_HANDLE


class SessionError(HandleError):
    """The daemon session has been disconnected (or never existed)."""

    default_code = ErrorCode.UNCONNECTED


class SPIError(GPIOBridgeError):
    """SPI open or transfer failure, or bad SPI channel/speed/count."""

    default_code = ErrorCode.SPI_XFER_FAILED


class I2CError(GPIOBridgeError):
    """I2C open, read or write failure, or bad bus/address."""

    default_code = ErrorCode.I2C_READ_FAILED


class ParameterError(GPIOBridgeError):
    """Generic parameter error: flags, register, byte/word value, block size."""

    default_code = ErrorCode.BAD_PARAM


_EXCEPTION_FOR_CODE: dict[ErrorCode, type[GPIOBridgeError]] = {
    ErrorCode.INIT_FAILED: InitialisationError,
    ErrorCode.BAD_USER_GPIO: PinError,
    ErrorCode.BAD_GPIO: PinError,
    ErrorCode.BAD_MODE: PinError,
    ErrorCode.BAD_LEVEL: PinError,
    ErrorCode.BAD_PUD: PinError,
    ErrorCode.BAD_PULSEWIDTH: PWMError,
    ErrorCode.BAD_DUTYCYCLE: PWMError,
    ErrorCode.BAD_DUTYRANGE: PWMError,
    ErrorCode.NOT_PWM_GPIO: PWMError,
    ErrorCode.NOT_SERVO_GPIO: PWMError,
    ErrorCode.NOT_HPWM_GPIO: HardwarePWMError,
    ErrorCode.BAD_HPWM_FREQ: HardwarePWMError,
    ErrorCode.BAD_HPWM_DUTY: HardwarePWMError,
    ErrorCode.HPWM_ILLEGAL: HardwarePWMError,
    ErrorCode.NO_HANDLE: HandleError,
    ErrorCode.BAD_HANDLE: HandleError,
    ErrorCode.UNCONNECTED: SessionError,
    ErrorCode.SPI_OPEN_FAILED: SPIError,
    ErrorCode.BAD_SPI_CHANNEL: SPIError,
    ErrorCode.BAD_SPI_SPEED: SPIError,
    ErrorCode.BAD_SPI_COUNT: SPIError,
    ErrorCode.SPI_XFER_FAILED: SPIError,
    ErrorCode.NO_AUX_SPI: SPIError,
    ErrorCode.I2C_OPEN_FAILED: I2CError,
    ErrorCode.BAD_I2C_BUS: I2CError,
    ErrorCode.BAD_I2C_ADDR: I2CError,
    ErrorCode.I2C_WRITE_FAILED: I2CError,
    ErrorCode.I2C_READ_FAILED: I2CError,
    ErrorCode.BAD_FLAGS: ParameterError,
    ErrorCode.BAD_PARAM: ParameterError,
    ErrorCode.SEND_FAILED: TransportError,
    ErrorCode.RECV_FAILED: TransportError,
    ErrorCode.BAD_ADDRESS: TransportError,
    ErrorCode.CONNECT_FAILED: TransportError,
}


def error_for_code(
    code: ErrorCode, message: str | None = None, **context: Any
) -> GPIOBridgeError:
    """Build the exception matching *code*.

    Usage::

        raise error_for_code(ErrorCode.BAD_HANDLE, handle=h, operation="spi_read")
    """
    exc_class = _EXCEPTION_FOR_CODE[code]
    log.debug("gpio_error", code=code.name, error=exc_class.__name__, **context)
    return exc_class(message or code.description, code=code, context=context)
