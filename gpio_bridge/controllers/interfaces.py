"""Local controllers — Abstract contract and concrete implementations.

Architecture:
  - :class:`GPIOInterface` is the abstract contract.  The direct backend talks
    to this interface only.
  - :class:`RaspberryPiController` wraps ``RPi.GPIO`` (pins, PWM), ``spidev``
    (SPI) and ``smbus2`` (I2C).
  - :class:`MockController` is a fully deterministic in-memory implementation
    for tests and for hosts without GPIO hardware.

Design decisions:
  - Pin numbering is BCM.  BCM 18 = physical pin 12 on a 40-pin header.
  - The interface uses plain ints/floats/bytes plus :class:`PinMode` and
    :class:`Pull`; no library constants leak across the boundary.
  - PWM duty cycles cross the boundary as percentages (0.0–100.0), the unit
    ``RPi.GPIO`` works in.  The direct backend owns pigpio's range arithmetic.
  - Controllers raise on failure (``OSError``, ``RuntimeError``,
    ``ValueError`` or a :class:`~gpio_bridge.exceptions.GPIOBridgeError`);
    the direct backend turns exceptions into status codes.
  - SPI/I2C opens return an opaque device object that is passed back to every
    later call on that device.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from types import ModuleType
from typing import Any

from gpio_bridge.codes import ErrorCode
from gpio_bridge.constants import (
    SPI_FLAG_3WIRE,
    SPI_FLAG_AUX,
    SPI_FLAG_CE_ACTIVE_HIGH_SHIFT,
    SPI_FLAG_MODE_MASK,
    SPI_FLAG_RX_LSB_FIRST,
    SPI_FLAG_TX_LSB_FIRST,
    SPI_FLAG_WORD_SIZE_MASK,
    SPI_FLAG_WORD_SIZE_SHIFT,
    PinMode,
    Pull,
)
from gpio_bridge.exceptions import InitialisationError, error_for_code


@dataclass
class PWMChannel:
    """Represents an active PWM channel."""

    pin: int
    frequency_hz: float
    duty_cycle: float  # 0.0–100.0


# ---------------------------------------------------------------------------
# Abstract interface
# ---------------------------------------------------------------------------


class GPIOInterface(ABC):
    """Abstract local controller.

    All concrete implementations must fulfil this contract: lifecycle,
    digital I/O, PWM, SPI and SMBus/I2C primitives.
    """

    name: str = "controller"

    @abstractmethod
    def initialise(self) -> None:
        """Acquire the underlying libraries.  Raise InitialisationError on failure."""

    @abstractmethod
    def terminate(self) -> None:
        """Stop all PWM and release every pin."""

    # -- pins ----------------------------------------------------------

    @abstractmethod
    def setup(self, pin: int, mode: PinMode) -> None:
        """Configure *pin* with *mode*."""

    @abstractmethod
    def get_function(self, pin: int) -> PinMode:
        """Return the current mode of *pin*."""

    @abstractmethod
    def set_pull(self, pin: int, pull: Pull) -> None:
        """Set the pull resistor of *pin*."""

    @abstractmethod
    def digital_read(self, pin: int) -> int:
        """Return the digital value of *pin* (0 or 1)."""

    @abstractmethod
    def digital_write(self, pin: int, value: int) -> None:
        """Set the digital output of *pin* to *value* (0 or 1)."""

    # -- PWM -----------------------------------------------------------

    @abstractmethod
    def pwm_start(self, pin: int, frequency_hz: float, duty_cycle: float) -> None:
        """Start PWM on *pin* with the given frequency and duty cycle (0–100)."""

    @abstractmethod
    def pwm_set_duty_cycle(self, pin: int, duty_cycle: float) -> None:
        """Update the duty cycle on an active PWM channel."""

    @abstractmethod
    def pwm_set_frequency(self, pin: int, frequency_hz: float) -> None:
        """Update the frequency on an active PWM channel."""

    @abstractmethod
    def pwm_stop(self, pin: int) -> None:
        """Stop PWM on *pin*.  A pin without PWM is ignored."""

    # -- SPI -----------------------------------------------------------

    @abstractmethod
    def spi_open(self, channel: int, baud: int, flags: int) -> Any: ...

    @abstractmethod
    def spi_close(self, device: Any) -> None: ...

    @abstractmethod
    def spi_read(self, device: Any, count: int) -> bytes: ...

    @abstractmethod
    def spi_write(self, device: Any, data: bytes) -> int:
        """Write *data*; return the number of bytes sent."""

    @abstractmethod
    def spi_xfer(self, device: Any, data: bytes) -> bytes: ...

    # -- I2C / SMBus ---------------------------------------------------

    @abstractmethod
    def i2c_open(self, bus: int, address: int, flags: int) -> Any: ...

    @abstractmethod
    def i2c_close(self, device: Any) -> None: ...

    @abstractmethod
    def i2c_read_device(self, device: Any, count: int) -> bytes: ...

    @abstractmethod
    def i2c_write_device(self, device: Any, data: bytes) -> None: ...

    @abstractmethod
    def i2c_read_byte(self, device: Any) -> int: ...

    @abstractmethod
    def i2c_write_byte(self, device: Any, value: int) -> None: ...

    @abstractmethod
    def i2c_read_byte_data(self, device: Any, register: int) -> int: ...

    @abstractmethod
    def i2c_write_byte_data(self, device: Any, register: int, value: int) -> None: ...

    @abstractmethod
    def i2c_read_word_data(self, device: Any, register: int) -> int: ...

    @abstractmethod
    def i2c_write_word_data(self, device: Any, register: int, value: int) -> None: ...

    @abstractmethod
    def i2c_read_block_data(self, device: Any, register: int) -> bytes: ...

    @abstractmethod
    def i2c_write_block_data(self, device: Any, register: int, data: bytes) -> None: ...

    @abstractmethod
    def i2c_read_i2c_block_data(self, device: Any, register: int, count: int) -> bytes: ...

    @abstractmethod
    def i2c_write_i2c_block_data(self, device: Any, register: int, data: bytes) -> None: ...

    @abstractmethod
    def cleanup(self) -> None:
        """Release every pin the controller has configured."""


# ---------------------------------------------------------------------------
# Raspberry Pi implementation
# ---------------------------------------------------------------------------


@dataclass
class I2CTarget:
    """An open ``smbus2.SMBus`` bound to one slave address."""

    bus: Any
    address: int


class RaspberryPiController(GPIOInterface):
    """Controller backed by ``RPi.GPIO``, ``spidev`` and ``smbus2``.

    The library modules may be injected (tests pass ``MagicMock`` objects);
    otherwise they are imported on :meth:`initialise` (``RPi.GPIO``) or on the
    first SPI/I2C open (``spidev``/``smbus2``), so a Pi without the SPI or I2C
    bindings can still drive pins.

    ``RPi.GPIO`` only switches pins between input and output; requesting an
    ALT function raises ``BAD_MODE``.
    """

    name = "rpi"

    def __init__(
        self,
        gpio_module: ModuleType | Any | None = None,
        spidev_module: ModuleType | Any | None = None,
        smbus_module: ModuleType | Any | None = None,
    ) -> None:
        self._gpio = gpio_module
        self._spidev = spidev_module
        self._smbus = smbus_module
        self._pwm_channels: dict[int, Any] = {}
        self._pulls: dict[int, Pull] = {}

    def initialise(self) -> None:
        if self._gpio is None:
            try:
                import RPi.GPIO as GPIO  # type: ignore[import]
            except ImportError as exc:
                raise InitialisationError(
                    "RPi.GPIO is not installed.  "
                    "Install it with: pip install 'gpio-bridge[rpi]'  "
                    "(requires running on a Raspberry Pi with GPIO hardware).",
                    context={"controller": self.name},
                ) from exc
            self._gpio = GPIO
        try:
            self._gpio.setmode(self._gpio.BCM)
        except RuntimeError as exc:
            raise InitialisationError(str(exc), context={"controller": self.name}) from exc
        self._gpio.setwarnings(False)

    def terminate(self) -> None:
        for pin in list(self._pwm_channels):
            self.pwm_stop(pin)
        self.cleanup()

    # -- pins ----------------------------------------------------------

    def _pull_constant(self, pull: Pull) -> Any:
        return {
            Pull.OFF: self._gpio.PUD_OFF,
            Pull.UP: self._gpio.PUD_UP,
            Pull.DOWN: self._gpio.PUD_DOWN,
        }[pull]

    def setup(self, pin: int, mode: PinMode) -> None:
        if mode is PinMode.OUTPUT:
            self._gpio.setup(pin, self._gpio.OUT)
        elif mode is PinMode.INPUT:
            pull = self._pulls.get(pin, Pull.OFF)
            self._gpio.setup(pin, self._gpio.IN, pull_up_down=self._pull_constant(pull))
        else:
            raise error_for_code(
                ErrorCode.BAD_MODE,
                f"RPi.GPIO cannot select {mode.name}",
                gpio=pin,
                mode=mode.name,
            )

    def get_function(self, pin: int) -> PinMode:
        function = self._gpio.gpio_function(pin)
        if function == self._gpio.OUT:
            return PinMode.OUTPUT
        if function == self._gpio.IN:
            return PinMode.INPUT
        if function == self._gpio.HARD_PWM and pin in (18, 19):
            return PinMode.ALT5
        if function in (self._gpio.SPI, self._gpio.I2C, self._gpio.SERIAL, self._gpio.HARD_PWM):
            return PinMode.ALT0
        return PinMode.INPUT

    def set_pull(self, pin: int, pull: Pull) -> None:
        # RPi.GPIO applies pulls through setup(); re-apply on input pins.
        self._pulls[pin] = pull
        if self._gpio.gpio_function(pin) == self._gpio.IN:
            self._gpio.setup(pin, self._gpio.IN, pull_up_down=self._pull_constant(pull))

    def digital_read(self, pin: int) -> int:
        return int(self._gpio.input(pin))

    def digital_write(self, pin: int, value: int) -> None:
        self._gpio.output(pin, bool(value))

    # -- PWM -----------------------------------------------------------

    def pwm_start(self, pin: int, frequency_hz: float, duty_cycle: float) -> None:
        self.pwm_stop(pin)
        self.setup(pin, PinMode.OUTPUT)
        pwm = self._gpio.PWM(pin, frequency_hz)
        pwm.start(duty_cycle)
        self._pwm_channels[pin] = pwm

    def pwm_set_duty_cycle(self, pin: int, duty_cycle: float) -> None:
        if pin not in self._pwm_channels:
            raise ValueError(f"No active PWM channel on pin {pin}.")
        self._pwm_channels[pin].ChangeDutyCycle(duty_cycle)

    def pwm_set_frequency(self, pin: int, frequency_hz: float) -> None:
        if pin not in self._pwm_channels:
            raise ValueError(f"No active PWM channel on pin {pin}.")
        self._pwm_channels[pin].ChangeFrequency(frequency_hz)

    def pwm_stop(self, pin: int) -> None:
        if pin in self._pwm_channels:
            self._pwm_channels[pin].stop()
            del self._pwm_channels[pin]

    # -- SPI -----------------------------------------------------------

    def _spidev_module(self) -> Any:
        if self._spidev is None:
            try:
                import spidev  # type: ignore[import]
            except ImportError as exc:
                raise error_for_code(
                    ErrorCode.SPI_OPEN_FAILED,
                    "spidev is not installed.  Install it with: pip install 'gpio-bridge[rpi]'",
                ) from exc
            self._spidev = spidev
        return self._spidev

    def spi_open(self, channel: int, baud: int, flags: int) -> Any:
        aux = bool(flags & SPI_FLAG_AUX)
        device = self._spidev_module().SpiDev()
        try:
            device.open(1 if aux else 0, channel)
        except FileNotFoundError as exc:
            if aux:
                raise error_for_code(ErrorCode.NO_AUX_SPI, channel=channel) from exc
            raise
        word_size = (flags >> SPI_FLAG_WORD_SIZE_SHIFT) & SPI_FLAG_WORD_SIZE_MASK
        try:
            device.max_speed_hz = baud
            device.mode = flags & SPI_FLAG_MODE_MASK
            device.cshigh = bool((flags >> (SPI_FLAG_CE_ACTIVE_HIGH_SHIFT + channel)) & 1)
            device.threewire = bool(flags & SPI_FLAG_3WIRE)
            device.lsbfirst = bool(flags & (SPI_FLAG_TX_LSB_FIRST | SPI_FLAG_RX_LSB_FIRST))
            device.bits_per_word = word_size or 8
        except Exception:
            device.close()
            raise
        return device

    def spi_close(self, device: Any) -> None:
        device.close()

    def spi_read(self, device: Any, count: int) -> bytes:
        return bytes(device.readbytes(count))

    def spi_write(self, device: Any, data: bytes) -> int:
        device.writebytes2(data)
        return len(data)

    def spi_xfer(self, device: Any, data: bytes) -> bytes:
        return bytes(device.xfer2(list(data)))

    # -- I2C / SMBus ---------------------------------------------------

    def _smbus_module(self) -> Any:
        if self._smbus is None:
            try:
                import smbus2
            except ImportError as exc:
                raise error_for_code(
                    ErrorCode.I2C_OPEN_FAILED,
                    "smbus2 is not installed.  Install it with: pip install 'gpio-bridge[rpi]'",
                ) from exc
            self._smbus = smbus2
        return self._smbus

    def i2c_open(self, bus: int, address: int, flags: int) -> Any:
        return I2CTarget(bus=self._smbus_module().SMBus(bus), address=address)

    def i2c_close(self, device: I2CTarget) -> None:
        device.bus.close()

    def i2c_read_device(self, device: I2CTarget, count: int) -> bytes:
        msg = self._smbus_module().i2c_msg.read(device.address, count)
        device.bus.i2c_rdwr(msg)
        return bytes(list(msg))

    def i2c_write_device(self, device: I2CTarget, data: bytes) -> None:
        msg = self._smbus_module().i2c_msg.write(device.address, data)
        device.bus.i2c_rdwr(msg)

    def i2c_read_byte(self, device: I2CTarget) -> int:
        return device.bus.read_byte(device.address)

    def i2c_write_byte(self, device: I2CTarget, value: int) -> None:
        device.bus.write_byte(device.address, value)

    def i2c_read_byte_data(self, device: I2CTarget, register: int) -> int:
        return device.bus.read_byte_data(device.address, register)

    def i2c_write_byte_data(self, device: I2CTarget, register: int, value: int) -> None:
        device.bus.write_byte_data(device.address, register, value)

    def i2c_read_word_data(self, device: I2CTarget, register: int) -> int:
        return device.bus.read_word_data(device.address, register)

    def i2c_write_word_data(self, device: I2CTarget, register: int, value: int) -> None:
        device.bus.write_word_data(device.address, register, value)

    def i2c_read_block_data(self, device: I2CTarget, register: int) -> bytes:
        return bytes(device.bus.read_block_data(device.address, register))

    def i2c_write_block_data(self, device: I2CTarget, register: int, data: bytes) -> None:
        device.bus.write_block_data(device.address, register, list(data))

    def i2c_read_i2c_block_data(self, device: I2CTarget, register: int, count: int) -> bytes:
        return bytes(device.bus.read_i2c_block_data(device.address, register, count))

    def i2c_write_i2c_block_data(self, device: I2CTarget, register: int, data: bytes) -> None:
        device.bus.write_i2c_block_data(device.address, register, list(data))

    def cleanup(self) -> None:
        self._gpio.cleanup()
        self._pulls.clear()


# ---------------------------------------------------------------------------
# Mock implementation (tests + non-Pi environments)
# ---------------------------------------------------------------------------


@dataclass
class ControllerCall:
    """A recorded controller method call for test assertions."""

    method: str
    args: tuple[Any, ...]
    kwargs: dict[str, Any]


@dataclass
class MockSPIDevice:
    channel: int
    baud: int
    flags: int
    written: list[bytes] = field(default_factory=list)
    is_open: bool = True


@dataclass
class MockI2CDevice:
    """A slave on the simulated bus: a 256-byte register map plus a pointer.

    Raw device reads/writes follow the common register-pointer convention:
    the first byte written selects the register, later bytes fill it
    sequentially; reads continue from the pointer.
    """

    bus: int
    address: int
    registers: bytearray = field(default_factory=lambda: bytearray(256))
    blocks: dict[int, bytes] = field(default_factory=dict)
    pointer: int = 0

    def read_sequential(self, count: int) -> bytes:
        data = bytes(self.registers[(self.pointer + i) % 256] for i in range(count))
        self.pointer = (self.pointer + count) % 256
        return data

    def write_sequential(self, register: int, data: bytes) -> None:
        for offset, value in enumerate(data):
            self.registers[(register + offset) % 256] = value
        self.pointer = (register + len(data)) % 256


@dataclass
class MockI2CHandle:
    bus: int
    address: int
    is_open: bool = True


class MockController(GPIOInterface):
    """Fully deterministic in-memory controller for tests and non-Pi hosts.

    All state is stored in plain dicts:
      - ``pin_modes``    — {pin: PinMode}
      - ``pin_values``   — {pin: int (0 or 1)}
      - ``pin_pulls``    — {pin: Pull}
      - ``pwm_channels`` — {pin: PWMChannel}
      - ``i2c_devices``  — {(bus, address): MockI2CDevice}
      - ``call_log``     — list[ControllerCall]

    Usage::

        controller = MockController()
        controller.setup(18, PinMode.OUTPUT)
        controller.digital_write(18, 1)
        assert controller.pin_values[18] == 1
        assert controller.call_log[-1].method == "digital_write"

    SPI is a loopback: ``spi_xfer`` echoes what it sends and ``spi_read``
    returns zeros, unless responses were queued with :meth:`queue_spi_response`.
    I2C reads fail with ``OSError`` (EREMOTEIO) until a device is attached at
    the address with :meth:`attach_i2c_device`.

    To make the next call fail::

        controller.fail_next(OSError(5, "Input/output error"))
    """

    name = "mock"

    def __init__(self, has_aux_spi: bool = True) -> None:
        self.has_aux_spi = has_aux_spi
        self.initialised = False
        self.pin_modes: dict[int, PinMode] = {}
        self.pin_values: dict[int, int] = {}
        self.pin_pulls: dict[int, Pull] = {}
        self.pwm_channels: dict[int, PWMChannel] = {}
        self.spi_devices: list[MockSPIDevice] = []
        self.spi_responses: deque[bytes] = deque()
        self.i2c_devices: dict[tuple[int, int], MockI2CDevice] = {}
        self.call_log: list[ControllerCall] = []
        self._pending_failure: BaseException | None = None

    def _record(self, method: str, *args: Any, **kwargs: Any) -> None:
        self.call_log.append(ControllerCall(method=method, args=args, kwargs=kwargs))
        if self._pending_failure is not None:
            failure, self._pending_failure = self._pending_failure, None
            raise failure

    # -- test helpers --------------------------------------------------

    def fail_next(self, exc: BaseException) -> None:
        """Raise *exc* from the next controller call."""
        self._pending_failure = exc

    def queue_spi_response(self, data: bytes) -> None:
        """Return *data* from the next ``spi_read``/``spi_xfer`` call."""
        self.spi_responses.append(bytes(data))

    def attach_i2c_device(
        self, bus: int, address: int, registers: bytes | None = None
    ) -> MockI2CDevice:
        device = MockI2CDevice(bus=bus, address=address)
        if registers:
            device.registers[: len(registers)] = registers
        self.i2c_devices[(bus, address)] = device
        return device

    def calls(self, method: str) -> list[ControllerCall]:
        return [call for call in self.call_log if call.method == method]

    # -- lifecycle -----------------------------------------------------

    def initialise(self) -> None:
        self._record("initialise")
        self.initialised = True

    def terminate(self) -> None:
        self._record("terminate")
        self.cleanup()
        self.initialised = False

    # -- pins ----------------------------------------------------------

    def setup(self, pin: int, mode: PinMode) -> None:
        self._record("setup", pin, mode)
        self.pin_modes[pin] = mode
        if pin not in self.pin_values:
            self.pin_values[pin] = 0

    def get_function(self, pin: int) -> PinMode:
        self._record("get_function", pin)
        return self.pin_modes.get(pin, PinMode.INPUT)

    def set_pull(self, pin: int, pull: Pull) -> None:
        self._record("set_pull", pin, pull)
        self.pin_pulls[pin] = pull
        if self.pin_modes.get(pin, PinMode.INPUT) is PinMode.INPUT and pull is not Pull.OFF:
            self.pin_values[pin] = 1 if pull is Pull.UP else 0

    def digital_read(self, pin: int) -> int:
        self._record("digital_read", pin)
        return self.pin_values.get(pin, 0)

    def digital_write(self, pin: int, value: int) -> None:
        self._record("digital_write", pin, value)
        self.pin_values[pin] = int(bool(value))

    # -- PWM -----------------------------------------------------------

    def pwm_start(self, pin: int, frequency_hz: float, duty_cycle: float) -> None:
        self._record("pwm_start", pin, frequency_hz, duty_cycle)
        self.pin_modes[pin] = PinMode.OUTPUT
        self.pwm_channels[pin] = PWMChannel(
            pin=pin, frequency_hz=frequency_hz, duty_cycle=duty_cycle
        )

    def pwm_set_duty_cycle(self, pin: int, duty_cycle: float) -> None:
        self._record("pwm_set_duty_cycle", pin, duty_cycle)
        if pin not in self.pwm_channels:
            raise ValueError(f"No active PWM channel on pin {pin}.")
        self.pwm_channels[pin].duty_cycle = duty_cycle

    def pwm_set_frequency(self, pin: int, frequency_hz: float) -> None:
        self._record("pwm_set_frequency", pin, frequency_hz)
        if pin not in self.pwm_channels:
            raise ValueError(f"No active PWM channel on pin {pin}.")
        self.pwm_channels[pin].frequency_hz = frequency_hz

    def pwm_stop(self, pin: int) -> None:
        self._record("pwm_stop", pin)
        self.pwm_channels.pop(pin, None)

    # -- SPI -----------------------------------------------------------

    def spi_open(self, channel: int, baud: int, flags: int) -> MockSPIDevice:
        self._record("spi_open", channel, baud, flags)
        if flags & SPI_FLAG_AUX and not self.has_aux_spi:
            raise error_for_code(ErrorCode.NO_AUX_SPI, channel=channel)
        device = MockSPIDevice(channel=channel, baud=baud, flags=flags)
        self.spi_devices.append(device)
        return device

    def spi_close(self, device: MockSPIDevice) -> None:
        self._record("spi_close", device.channel)
        device.is_open = False

    def spi_read(self, device: MockSPIDevice, count: int) -> bytes:
        self._record("spi_read", device.channel, count)
        if self.spi_responses:
            return self.spi_responses.popleft()
        return bytes(count)

    def spi_write(self, device: MockSPIDevice, data: bytes) -> int:
        self._record("spi_write", device.channel, data)
        device.written.append(bytes(data))
        return len(data)

    def spi_xfer(self, device: MockSPIDevice, data: bytes) -> bytes:
        self._record("spi_xfer", device.channel, data)
        device.written.append(bytes(data))
        if self.spi_responses:
            return self.spi_responses.popleft()
        return bytes(data)

    # -- I2C / SMBus ---------------------------------------------------

    def _device(self, handle: MockI2CHandle) -> MockI2CDevice:
        device = self.i2c_devices.get((handle.bus, handle.address))
        if device is None:
            raise OSError(121, "Remote I/O error")
        return device

    def i2c_open(self, bus: int, address: int, flags: int) -> MockI2CHandle:
        self._record("i2c_open", bus, address, flags)
        return MockI2CHandle(bus=bus, address=address)

    def i2c_close(self, device: MockI2CHandle) -> None:
        self._record("i2c_close", device.bus, device.address)
        device.is_open = False

    def i2c_read_device(self, device: MockI2CHandle, count: int) -> bytes:
        self._record("i2c_read_device", device.address, count)
        return self._device(device).read_sequential(count)

    def i2c_write_device(self, device: MockI2CHandle, data: bytes) -> None:
        self._record("i2c_write_device", device.address, data)
        target = self._device(device)
        target.write_sequential(data[0], data[1:])

    def i2c_read_byte(self, device: MockI2CHandle) -> int:
        self._record("i2c_read_byte", device.address)
        return self._device(device).read_sequential(1)[0]

    def i2c_write_byte(self, device: MockI2CHandle, value: int) -> None:
        self._record("i2c_write_byte", device.address, value)
        self._device(device).pointer = value

    def i2c_read_byte_data(self, device: MockI2CHandle, register: int) -> int:
        self._record("i2c_read_byte_data", device.address, register)
        return self._device(device).registers[register]

    def i2c_write_byte_data(self, device: MockI2CHandle, register: int, value: int) -> None:
        self._record("i2c_write_byte_data", device.address, register, value)
        self._device(device).registers[register] = value

    def i2c_read_word_data(self, device: MockI2CHandle, register: int) -> int:
        self._record("i2c_read_word_data", device.address, register)
        registers = self._device(device).registers
        return registers[register] | registers[(register + 1) % 256] << 8

    def i2c_write_word_data(self, device: MockI2CHandle, register: int, value: int) -> None:
        self._record("i2c_write_word_data", device.address, register, value)
        registers = self._device(device).registers
        registers[register] = value & 0xFF
        registers[(register + 1) % 256] = value >> 8

    def i2c_read_block_data(self, device: MockI2CHandle, register: int) -> bytes:
        self._record("i2c_read_block_data", device.address, register)
        return self._device(device).blocks.get(register, b"")

    def i2c_write_block_data(self, device: MockI2CHandle, register: int, data: bytes) -> None:
        self._record("i2c_write_block_data", device.address, register, data)
        self._device(device).blocks[register] = bytes(data)

    def i2c_read_i2c_block_data(self, device: MockI2CHandle, register: int, count: int) -> bytes:
        self._record("i2c_read_i2c_block_data", device.address, register, count)
        target = self._device(device)
        target.pointer = register
        return target.read_sequential(count)

    def i2c_write_i2c_block_data(self, device: MockI2CHandle, register: int, data: bytes) -> None:
        self._record("i2c_write_i2c_block_data", device.address, register, data)
        self._device(device).write_sequential(register, data)

    def cleanup(self) -> None:
        self._record("cleanup")
        self.pin_modes.clear()
        self.pin_values.clear()
        self.pin_pulls.clear()
        self.pwm_channels.clear()
