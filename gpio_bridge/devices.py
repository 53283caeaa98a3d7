"""GPIO Bridge — SPI and I2C device objects.

Thin wrappers that carry a handle together with the bridge that opened it, so
callers do not thread raw handles through their code::

    with bridge.open_i2c(1, 0x48) as sensor:
        raw = sensor.read_word(0x00)

Closing is idempotent; every other call on a closed device raises the
bad-handle error from the bridge.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from gpio_bridge.bridge import GPIOBridge


class SPIDevice:
    """An open SPI channel."""

    def __init__(self, bridge: GPIOBridge, handle: int, channel: int, baud: int, flags: int) -> None:
        self._bridge = bridge
        self.handle = handle
        self.channel = channel
        self.baud = baud
        self.flags = flags
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def read(self, count: int) -> bytes:
        return self._bridge.spi_read(self.handle, count)

    def write(self, data: Any) -> int:
        return self._bridge.spi_write(self.handle, data)

    def transfer(self, data: Any) -> bytes:
        return self._bridge.spi_xfer(self.handle, data)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._bridge.spi_close(self.handle)

    def __enter__(self) -> SPIDevice:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"SPIDevice(handle={self.handle}, channel={self.channel}, baud={self.baud})"


class I2CDevice:
    """An open I2C slave.

    Register helpers map onto the SMBus transactions:
    ``read_register``/``write_register`` are byte-data, ``read_word``/
    ``write_word`` word-data, ``read_block``/``write_block`` SMBus block and
    ``read_i2c_block``/``write_i2c_block`` plain I2C block transfers.
    """

    def __init__(self, bridge: GPIOBridge, handle: int, bus: int, address: int) -> None:
        self._bridge = bridge
        self.handle = handle
        self.bus = bus
        self.address = address
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def read_device(self, count: int) -> bytes:
        return self._bridge.i2c_read_device(self.handle, count)

    def write_device(self, data: Any) -> None:
        self._bridge.i2c_write_device(self.handle, data)

    def read_byte(self) -> int:
        return self._bridge.i2c_read_byte(self.handle)

    def write_byte(self, value: int) -> None:
        self._bridge.i2c_write_byte(self.handle, value)

    def read_register(self, register: int) -> int:
        return self._bridge.i2c_read_byte_data(self.handle, register)

    def write_register(self, register: int, value: int) -> None:
        self._bridge.i2c_write_byte_data(self.handle, register, value)

    def read_word(self, register: int) -> int:
        return self._bridge.i2c_read_word_data(self.handle, register)

    def write_word(self, register: int, value: int) -> None:
        self._bridge.i2c_write_word_data(self.handle, register, value)

    def read_block(self, register: int) -> bytes:
        return self._bridge.i2c_read_block_data(self.handle, register)

    def write_block(self, register: int, data: Any) -> None:
        self._bridge.i2c_write_block_data(self.handle, register, data)

    def read_i2c_block(self, register: int, count: int) -> bytes:
        return self._bridge.i2c_read_i2c_block_data(self.handle, register, count)

    def write_i2c_block(self, register: int, data: Any) -> None:
        self._bridge.i2c_write_i2c_block_data(self.handle, register, data)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._bridge.i2c_close(self.handle)

    def __enter__(self) -> I2CDevice:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"I2CDevice(handle={self.handle}, bus={self.bus}, address={self.address:#04x})"
