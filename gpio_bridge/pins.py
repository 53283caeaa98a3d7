"""GPIO Bridge — 40-pin header map.

Physical header positions of the GPIO-capable pins on a 40-pin Raspberry Pi
header, valued by their BCM number.  Every bridge operation takes BCM numbers;
``RaspberryPin.PHYSICAL_12`` can be passed anywhere a pin is expected.
"""

from __future__ import annotations

from enum import IntEnum


class RaspberryPin(IntEnum):
    PHYSICAL_3 = 2    # SDA1
    PHYSICAL_5 = 3    # SCL1
    PHYSICAL_7 = 4
    PHYSICAL_8 = 14   # TXD
    PHYSICAL_10 = 15  # RXD
    PHYSICAL_11 = 17
    PHYSICAL_12 = 18  # PWM0
    PHYSICAL_13 = 27
    PHYSICAL_15 = 22
    PHYSICAL_16 = 23
    PHYSICAL_18 = 24
    PHYSICAL_19 = 10  # MOSI
    PHYSICAL_21 = 9   # MISO
    PHYSICAL_22 = 25
    PHYSICAL_23 = 11  # SCLK
    PHYSICAL_24 = 8   # CE0
    PHYSICAL_26 = 7   # CE1
    PHYSICAL_29 = 5
    PHYSICAL_31 = 6
    PHYSICAL_32 = 12  # PWM0
    PHYSICAL_33 = 13  # PWM1
    PHYSICAL_35 = 19  # PWM1
    PHYSICAL_36 = 16
    PHYSICAL_37 = 26
    PHYSICAL_38 = 20
    PHYSICAL_40 = 21

    @property
    def bcm(self) -> int:
        return int(self)

    @property
    def physical(self) -> int:
        """Header position, e.g. ``12`` for ``PHYSICAL_12``."""
        return int(self.name.rsplit("_", 1)[1])

    @classmethod
    def from_physical(cls, position: int) -> "RaspberryPin":
        """Return the member for header *position*.

        Raises:
            ValueError: the position is a power, ground or ID-EEPROM pin.
        """
        try:
            return cls[f"PHYSICAL_{position}"]
        except KeyError:
            raise ValueError(f"Header pin {position} is not a GPIO") from None


# Header pins wired to a hardware PWM channel.
HARDWARE_PWM_PINS: frozenset[RaspberryPin] = frozenset({
    RaspberryPin.PHYSICAL_12,
    RaspberryPin.PHYSICAL_32,
    RaspberryPin.PHYSICAL_33,
    RaspberryPin.PHYSICAL_35,
})
