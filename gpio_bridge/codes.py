"""GPIO Bridge — Error taxonomy.

Both backends report failures as negative status codes.  The closed set of
codes below is shared by the direct and daemon paths; the numeric values are
pigpio's, so a status returned by ``pigpiod`` needs no translation and the
direct backend produces exactly the same numbers for the same fault.

Values outside the enumeration are never passed on to callers:
:meth:`ErrorCode.normalize` folds them into the fallback member chosen by the
operation that produced them.
"""

from __future__ import annotations

from enum import IntEnum

from gpio_bridge.logging import get_logger

log = get_logger(__name__)


class ErrorCode(IntEnum):
    # Initialisation
    INIT_FAILED = -1

    # Pins
    BAD_USER_GPIO = -2
    BAD_GPIO = -3
    BAD_MODE = -4
    BAD_LEVEL = -5
    BAD_PUD = -6

    # PWM / servo
    BAD_PULSEWIDTH = -7
    BAD_DUTYCYCLE = -8
    BAD_DUTYRANGE = -21

    # Handles
    NO_HANDLE = -24
    BAD_HANDLE = -25

    # SPI / I2C
    I2C_OPEN_FAILED = -71
    SPI_OPEN_FAILED = -73
    BAD_I2C_BUS = -74
    BAD_I2C_ADDR = -75
    BAD_SPI_CHANNEL = -76
    BAD_FLAGS = -77
    BAD_SPI_SPEED = -78
    BAD_PARAM = -81
    I2C_WRITE_FAILED = -82
    I2C_READ_FAILED = -83
    BAD_SPI_COUNT = -84
    SPI_XFER_FAILED = -89
    NO_AUX_SPI = -91

    # PWM availability and hardware PWM
    NOT_PWM_GPIO = -92
    NOT_SERVO_GPIO = -93
    NOT_HPWM_GPIO = -95
    BAD_HPWM_FREQ = -96
    BAD_HPWM_DUTY = -97
    HPWM_ILLEGAL = -100

    # Daemon transport (pigpiod_if2 numbering)
    SEND_FAILED = -2000
    RECV_FAILED = -2001
    BAD_ADDRESS = -2002
    CONNECT_FAILED = -2003
    UNCONNECTED = -2011

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @classmethod
    def normalize(cls, rc: int, fallback: "ErrorCode") -> "ErrorCode":
        """Return the member for a negative status *rc*.

        Unknown negative values map onto *fallback* so that no raw backend
        code leaks past the façade.
        """
        try:
            return cls(rc)
        except ValueError:
            log.warning("unmapped_error_code", rc=rc, mapped_to=fallback.name)
            return fallback


_DESCRIPTIONS: dict[ErrorCode, str] = {
    ErrorCode.INIT_FAILED: "peripheral controller not initialised",
    ErrorCode.BAD_USER_GPIO: "GPIO not 0-31",
    ErrorCode.BAD_GPIO: "GPIO not 0-53",
    ErrorCode.BAD_MODE: "mode not 0-7 or not supported by the controller",
    ErrorCode.BAD_LEVEL: "level not 0-1",
    ErrorCode.BAD_PUD: "pud not 0-2",
    ErrorCode.BAD_PULSEWIDTH: "pulsewidth not 0 or 500-2500",
    ErrorCode.BAD_DUTYCYCLE: "dutycycle outside set range",
    ErrorCode.BAD_DUTYRANGE: "dutycycle range not 25-40000",
    ErrorCode.NO_HANDLE: "no handle available",
    ErrorCode.BAD_HANDLE: "unknown, closed or foreign handle",
    ErrorCode.I2C_OPEN_FAILED: "can't open I2C device",
    ErrorCode.SPI_OPEN_FAILED: "can't open SPI device",
    ErrorCode.BAD_I2C_BUS: "bad I2C bus",
    ErrorCode.BAD_I2C_ADDR: "bad I2C address",
    ErrorCode.BAD_SPI_CHANNEL: "bad SPI channel",
    ErrorCode.BAD_FLAGS: "bad i2c/spi flags",
    ErrorCode.BAD_SPI_SPEED: "bad SPI speed",
    ErrorCode.BAD_PARAM: "bad parameter",
    ErrorCode.I2C_WRITE_FAILED: "I2C write failed",
    ErrorCode.I2C_READ_FAILED: "I2C read failed",
    ErrorCode.BAD_SPI_COUNT: "bad SPI count",
    ErrorCode.SPI_XFER_FAILED: "SPI xfer/read/write failed",
    ErrorCode.NO_AUX_SPI: "no auxiliary SPI on this Pi",
    ErrorCode.NOT_PWM_GPIO: "GPIO is not in use for PWM",
    ErrorCode.NOT_SERVO_GPIO: "GPIO is not in use for servo pulses",
    ErrorCode.NOT_HPWM_GPIO: "GPIO has no hardware PWM",
    ErrorCode.BAD_HPWM_FREQ: "invalid hardware PWM frequency",
    ErrorCode.BAD_HPWM_DUTY: "hardware PWM dutycycle not 0-1M",
    ErrorCode.HPWM_ILLEGAL: "illegal hardware PWM combination on channel",
    ErrorCode.SEND_FAILED: "failed to send to pigpiod",
    ErrorCode.RECV_FAILED: "failed to receive from pigpiod",
    ErrorCode.BAD_ADDRESS: "failed to find address of pigpiod",
    ErrorCode.CONNECT_FAILED: "failed to connect to pigpiod",
    ErrorCode.UNCONNECTED: "session is not connected",
}
