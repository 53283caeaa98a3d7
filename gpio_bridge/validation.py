"""GPIO Bridge — Argument normalisation.

Callers may pass plain ints, bools, IntEnum members or any object implementing
``__index__`` (numpy integers included).  Everything is coerced with
``operator.index`` and range-checked here, before a backend sees it.  Values
outside the valid range raise the taxonomy member for that parameter; nothing
is masked or wrapped, except that byte and word values accept both their
signed and unsigned spelling (``-1`` and ``255`` are the same byte).
"""

from __future__ import annotations

import operator
from collections.abc import Iterable
from typing import Any

from gpio_bridge.codes import ErrorCode
from gpio_bridge.constants import SPI_FLAG_AUX, ControllerLimits, Level, PinMode, Pull
from gpio_bridge.exceptions import error_for_code


def as_int(value: Any, code: ErrorCode, name: str) -> int:
    """Coerce *value* to ``int`` or raise the error for *code*."""
    if isinstance(value, (str, bytes, bytearray)):
        raise error_for_code(
            code,
            f"{name} must be an integer, got {type(value).__name__}",
            parameter=name,
            value=value,
        )
    try:
        return operator.index(value)
    except TypeError:
        raise error_for_code(
            code,
            f"{name} must be an integer, got {type(value).__name__}",
            parameter=name,
            value=value,
        ) from None


def in_range(value: Any, low: int, high: int, code: ErrorCode, name: str) -> int:
    number = as_int(value, code, name)
    if not low <= number <= high:
        raise error_for_code(
            code,
            f"{name} {number} outside {low}..{high}",
            parameter=name,
            value=number,
        )
    return number


def non_negative(value: Any, code: ErrorCode, name: str) -> int:
    number = as_int(value, code, name)
    if number < 0:
        raise error_for_code(code, f"{name} must not be negative", parameter=name, value=number)
    return number


# ---------------------------------------------------------------------------
# Pins
# ---------------------------------------------------------------------------


def gpio(value: Any, limits: ControllerLimits) -> int:
    return in_range(value, 0, limits.max_gpio, ErrorCode.BAD_GPIO, "gpio")


def user_gpio(value: Any, limits: ControllerLimits) -> int:
    return in_range(value, 0, limits.max_user_gpio, ErrorCode.BAD_USER_GPIO, "gpio")


def pin_mode(value: Any) -> PinMode:
    number = as_int(value, ErrorCode.BAD_MODE, "mode")
    try:
        return PinMode(number)
    except ValueError:
        raise error_for_code(ErrorCode.BAD_MODE, parameter="mode", value=number) from None


def pull(value: Any) -> Pull:
    number = as_int(value, ErrorCode.BAD_PUD, "pud")
    try:
        return Pull(number)
    except ValueError:
        raise error_for_code(ErrorCode.BAD_PUD, parameter="pud", value=number) from None


def level(value: Any) -> Level:
    number = as_int(value, ErrorCode.BAD_LEVEL, "level")
    try:
        return Level(number)
    except ValueError:
        raise error_for_code(ErrorCode.BAD_LEVEL, parameter="level", value=number) from None


# ---------------------------------------------------------------------------
# PWM / servo
# ---------------------------------------------------------------------------


def dutycycle(value: Any, limits: ControllerLimits) -> int:
    # Upper bound depends on the pin's current range; the backend checks it.
    return in_range(value, 0, limits.max_dutycycle_range, ErrorCode.BAD_DUTYCYCLE, "dutycycle")


def dutycycle_range(value: Any, limits: ControllerLimits) -> int:
    return in_range(
        value,
        limits.min_dutycycle_range,
        limits.max_dutycycle_range,
        ErrorCode.BAD_DUTYRANGE,
        "range",
    )


def frequency(value: Any) -> int:
    return non_negative(value, ErrorCode.BAD_PARAM, "frequency")


def pulsewidth(value: Any, limits: ControllerLimits) -> int:
    number = as_int(value, ErrorCode.BAD_PULSEWIDTH, "pulsewidth")
    if number != 0 and not (
        limits.min_servo_pulsewidth <= number <= limits.max_servo_pulsewidth
    ):
        raise error_for_code(ErrorCode.BAD_PULSEWIDTH, parameter="pulsewidth", value=number)
    return number


def hardware_pwm(
    gpio_value: Any, frequency_value: Any, duty_value: Any, limits: ControllerLimits
) -> tuple[int, int, int]:
    pin = gpio(gpio_value, limits)
    if pin not in limits.hardware_pwm_gpios:
        raise error_for_code(ErrorCode.NOT_HPWM_GPIO, gpio=pin)
    freq = as_int(frequency_value, ErrorCode.BAD_HPWM_FREQ, "frequency")
    if freq != 0 and not 1 <= freq <= limits.hardware_pwm_max_frequency:
        raise error_for_code(ErrorCode.BAD_HPWM_FREQ, gpio=pin, value=freq)
    duty = in_range(duty_value, 0, limits.hardware_pwm_range, ErrorCode.BAD_HPWM_DUTY, "duty")
    return pin, freq, duty


# ---------------------------------------------------------------------------
# SPI
# ---------------------------------------------------------------------------


def spi_open(
    channel: Any, baud: Any, flags: Any, limits: ControllerLimits
) -> tuple[int, int, int]:
    spi_flags = in_range(flags, 0, limits.spi_max_flags, ErrorCode.BAD_FLAGS, "flags")
    channels = limits.spi_aux_channels if spi_flags & SPI_FLAG_AUX else limits.spi_main_channels
    spi_channel = in_range(channel, 0, channels - 1, ErrorCode.BAD_SPI_CHANNEL, "channel")
    spi_baud = in_range(
        baud, limits.spi_min_baud, limits.spi_max_baud, ErrorCode.BAD_SPI_SPEED, "baud"
    )
    return spi_channel, spi_baud, spi_flags


def spi_count(value: Any, limits: ControllerLimits) -> int:
    return in_range(value, 1, limits.spi_max_count, ErrorCode.BAD_SPI_COUNT, "count")


# ---------------------------------------------------------------------------
# I2C
# ---------------------------------------------------------------------------


def i2c_open(
    bus: Any, address: Any, flags: Any, limits: ControllerLimits
) -> tuple[int, int, int]:
    i2c_bus = in_range(bus, 0, limits.i2c_bus_count - 1, ErrorCode.BAD_I2C_BUS, "bus")
    i2c_address = in_range(address, 0, limits.i2c_max_address, ErrorCode.BAD_I2C_ADDR, "address")
    # No I2C flags are defined; anything but zero is rejected.
    i2c_flags = in_range(flags, 0, 0, ErrorCode.BAD_FLAGS, "flags")
    return i2c_bus, i2c_address, i2c_flags


def register(value: Any) -> int:
    return in_range(value, 0, 0xFF, ErrorCode.BAD_PARAM, "register")


def byte_value(value: Any, name: str = "byte") -> int:
    return in_range(value, -0x80, 0xFF, ErrorCode.BAD_PARAM, name) & 0xFF


def word_value(value: Any) -> int:
    return in_range(value, -0x8000, 0xFFFF, ErrorCode.BAD_PARAM, "word") & 0xFFFF


def block_count(value: Any, limits: ControllerLimits) -> int:
    return in_range(value, 1, limits.smbus_block_max, ErrorCode.BAD_PARAM, "count")


def device_count(value: Any, limits: ControllerLimits) -> int:
    return in_range(value, 1, limits.i2c_max_device_count, ErrorCode.BAD_PARAM, "count")


# ---------------------------------------------------------------------------
# Buffers
# ---------------------------------------------------------------------------


def buffer(
    data: Any,
    code: ErrorCode = ErrorCode.BAD_PARAM,
    max_length: int | None = None,
    name: str = "data",
) -> bytes:
    """Marshal *data* into ``bytes`` of exactly the same length.

    Accepts ``bytes``, ``bytearray``, ``memoryview`` and iterables of ints in
    the signed or unsigned byte range.  Empty buffers and buffers longer than
    *max_length* raise the error for *code*.
    """
    if isinstance(data, (bytes, bytearray, memoryview)):
        payload = bytes(data)
    elif isinstance(data, str):
        raise error_for_code(code, f"{name} must be bytes or a sequence of ints",
                             parameter=name)
    elif isinstance(data, Iterable):
        payload = bytes(byte_value(item, name) for item in data)
    else:
        raise error_for_code(code, f"{name} must be bytes or a sequence of ints",
                             parameter=name)

    if not payload:
        raise error_for_code(code, f"{name} must not be empty", parameter=name, length=0)
    if max_length is not None and len(payload) > max_length:
        raise error_for_code(
            code,
            f"{name} length {len(payload)} exceeds {max_length}",
            parameter=name,
            length=len(payload),
        )
    return payload
