"""GPIO Bridge — Constant tables.

Immutable enumerations and limits shared by both backends.  Numeric values
match pigpio so that a mode or pull read back from ``pigpiod`` compares equal
to the member a caller passed in, and the direct backend reports the same
numbers.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Type definitions
# ---------------------------------------------------------------------------


class PinMode(IntEnum):
    INPUT = 0
    OUTPUT = 1
    ALT5 = 2
    ALT4 = 3
    ALT0 = 4
    ALT1 = 5
    ALT2 = 6
    ALT3 = 7


class Pull(IntEnum):
    OFF = 0
    DOWN = 1
    UP = 2


class Level(IntEnum):
    LOW = 0
    HIGH = 1


class BackendKind(str, Enum):
    DIRECT = "direct"
    DAEMON = "daemon"


class ResourceKind(str, Enum):
    """Kinds of record held by the handle registry."""

    CONTROLLER = "controller"
    SESSION = "session"
    SPI = "spi"
    I2C = "i2c"


# Selectable software PWM frequencies at the default 5 µs sample rate,
# highest first.  Requests snap to the closest entry.
PWM_FREQUENCIES: tuple[int, ...] = (
    8000, 4000, 2000, 1600, 1000, 800, 500, 400, 320,
    250, 200, 160, 100, 80, 50, 40, 20, 10,
)
PWM_REAL_RANGE_BASE = 200_000  # real range = base // frequency
HARDWARE_PWM_CLOCK = 250_000_000  # real range = clock // frequency
SERVO_FREQUENCY = 50
SERVO_PERIOD_US = 1_000_000 // SERVO_FREQUENCY

# Hardware PWM channel driving each capable GPIO.
HARDWARE_PWM_CHANNELS: dict[int, int] = {
    12: 0, 18: 0, 40: 0, 52: 0,
    13: 1, 19: 1, 41: 1, 45: 1, 53: 1,
}

# SPI flag bits (pigpio layout).
SPI_FLAG_MODE_MASK = 0x3
SPI_FLAG_CE_ACTIVE_HIGH_SHIFT = 2
SPI_FLAG_AUX = 1 << 8
SPI_FLAG_3WIRE = 1 << 9
SPI_FLAG_TX_LSB_FIRST = 1 << 14
SPI_FLAG_RX_LSB_FIRST = 1 << 15
SPI_FLAG_WORD_SIZE_SHIFT = 16
SPI_FLAG_WORD_SIZE_MASK = 0x3F


# ---------------------------------------------------------------------------
# Limits
# ---------------------------------------------------------------------------


class ControllerLimits(BaseModel):
    """Valid numeric ranges for one peripheral controller.

    Defaults are pigpio's.  A deployment on hardware with a different
    peripheral set (more I2C buses, a faster PWM clock) overrides them through
    :class:`~gpio_bridge.config.Settings`.
    """

    model_config = ConfigDict(frozen=True)

    max_gpio: Annotated[int, Field(ge=0, le=255)] = 53
    max_user_gpio: Annotated[int, Field(ge=0, le=255)] = 31

    min_dutycycle_range: int = 25
    max_dutycycle_range: int = 40_000
    default_dutycycle_range: int = 255
    default_pwm_frequency: int = 800
    min_servo_pulsewidth: int = 500
    max_servo_pulsewidth: int = 2500

    hardware_pwm_gpios: frozenset[int] = Field(
        default_factory=lambda: frozenset(HARDWARE_PWM_CHANNELS),
        description="GPIOs that can output hardware PWM.",
    )
    hardware_pwm_max_frequency: int = Field(
        default=125_000_000,
        description="Upper hardware PWM frequency (187_500_000 on a Pi 4).",
    )
    hardware_pwm_range: int = 1_000_000

    spi_min_baud: int = 32_000
    spi_max_baud: int = 125_000_000
    spi_max_flags: int = (1 << 22) - 1
    spi_main_channels: Annotated[int, Field(ge=0, le=8)] = 2
    spi_aux_channels: Annotated[int, Field(ge=0, le=8)] = 3
    spi_max_count: int = 65_536

    i2c_bus_count: Annotated[int, Field(ge=1, le=32)] = 2
    i2c_max_address: int = 0x7F
    smbus_block_max: int = 32
    i2c_max_device_count: int = 65_536
