"""Shared pytest fixtures for the gpio-bridge test suite."""

from __future__ import annotations

import socket
from collections.abc import Generator
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock

import pytest

from gpio_bridge.backends.daemon import DaemonBackend
from gpio_bridge.backends.direct import DirectBackend
from gpio_bridge.bridge import GPIOBridge
from gpio_bridge.config import Settings, override_settings
from gpio_bridge.controllers.interfaces import MockController
from gpio_bridge.registry import HandleRegistry

# pigpio status codes used by the fake daemon.
PI_BAD_USER_GPIO = -2
PI_BAD_GPIO = -3
PI_BAD_MODE = -4
PI_BAD_DUTYCYCLE = -8
PI_BAD_DUTYRANGE = -21
PI_BAD_HANDLE = -25
PI_NOT_PWM_GPIO = -92
PI_NOT_SERVO_GPIO = -93
PI_NOT_HPWM_GPIO = -95


# ---------------------------------------------------------------------------
# Fake pigpio client
# ---------------------------------------------------------------------------


class FakePi:
    """In-memory stand-in for ``pigpio.pi`` with ``pigpio.exceptions = False``.

    Every method returns pigpiod's status semantics: a non-negative value on
    success, a negative pigpio error code otherwise, and ``(count, bytearray)``
    for reads.  Handles are numbered per connection from 0, like the daemon.

    Knobs for tests:
      - ``raise_next``    — OSError or struct.error raised by the next call
      - ``short_by``      — bytes dropped from every SPI/I2C read
      - ``spi_written``   — value returned by ``spi_write`` instead of len(data)
      - ``status``        — {method: rc} forced return codes
    """

    def __init__(self, host: str = "localhost", port: int = 8888, connected: bool = True) -> None:
        self.host = host
        self.port = port
        self.connected = connected
        self.stopped = False
        self.connect_timeout: float | None = None
        self.sl = SimpleNamespace(s=MagicMock(name="socket"))
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.raise_next: Exception | None = None
        self.short_by = 0
        self.spi_written: int | None = None
        self.status: dict[str, int] = {}

        self.modes: dict[int, int] = {}
        self.levels: dict[int, int] = {}
        self.pulls: dict[int, int] = {}
        self.pwm: dict[int, int] = {}
        self.ranges: dict[int, int] = {}
        self.frequencies: dict[int, int] = {}
        self.servo: dict[int, int] = {}
        self.hardware: dict[int, tuple[int, int]] = {}
        self.spi: dict[int, tuple[int, int, int]] = {}
        self.i2c: dict[int, tuple[int, int]] = {}
        self.registers: dict[tuple[int, int], bytearray] = {}
        self.blocks: dict[tuple[int, int, int], bytes] = {}
        self._next_handle = 0

    def _enter(self, method: str, *args: Any) -> int | None:
        self.calls.append((method, args))
        if self.raise_next is not None:
            exc, self.raise_next = self.raise_next, None
            raise exc
        return self.status.get(method)

    def called(self, method: str) -> list[tuple[Any, ...]]:
        return [args for name, args in self.calls if name == method]

    def _new_handle(self) -> int:
        handle = self._next_handle
        self._next_handle += 1
        return handle

    def _short(self, data: bytes) -> bytearray:
        return bytearray(data[: max(len(data) - self.short_by, 0)])

    def stop(self) -> None:
        self.calls.append(("stop", ()))
        self.connected = False
        self.stopped = True

    # -- pins ----------------------------------------------------------

    def set_mode(self, gpio: int, mode: int) -> int:
        if (rc := self._enter("set_mode", gpio, mode)) is not None:
            return rc
        if not 0 <= gpio <= 53:
            return PI_BAD_GPIO
        if not 0 <= mode <= 7:
            return PI_BAD_MODE
        self.modes[gpio] = mode
        return 0

    def get_mode(self, gpio: int) -> int:
        if (rc := self._enter("get_mode", gpio)) is not None:
            return rc
        return self.modes.get(gpio, 0)

    def set_pull_up_down(self, gpio: int, pud: int) -> int:
        if (rc := self._enter("set_pull_up_down", gpio, pud)) is not None:
            return rc
        self.pulls[gpio] = pud
        return 0

    def read(self, gpio: int) -> int:
        if (rc := self._enter("read", gpio)) is not None:
            return rc
        return self.levels.get(gpio, 0)

    def write(self, gpio: int, level: int) -> int:
        if (rc := self._enter("write", gpio, level)) is not None:
            return rc
        self.modes[gpio] = 1
        self.levels[gpio] = level
        return 0

    # -- PWM / servo ---------------------------------------------------

    def set_PWM_dutycycle(self, gpio: int, dutycycle: int) -> int:
        if (rc := self._enter("set_PWM_dutycycle", gpio, dutycycle)) is not None:
            return rc
        if gpio > 31:
            return PI_BAD_USER_GPIO
        if dutycycle > self.ranges.get(gpio, 255):
            return PI_BAD_DUTYCYCLE
        self.pwm[gpio] = dutycycle
        return 0

    def get_PWM_dutycycle(self, gpio: int) -> int:
        if (rc := self._enter("get_PWM_dutycycle", gpio)) is not None:
            return rc
        return self.pwm.get(gpio, PI_NOT_PWM_GPIO)

    def set_PWM_frequency(self, gpio: int, frequency: int) -> int:
        if (rc := self._enter("set_PWM_frequency", gpio, frequency)) is not None:
            return rc
        self.frequencies[gpio] = frequency
        return frequency

    def get_PWM_frequency(self, gpio: int) -> int:
        if (rc := self._enter("get_PWM_frequency", gpio)) is not None:
            return rc
        return self.frequencies.get(gpio, 800)

    def set_PWM_range(self, gpio: int, range_: int) -> int:
        if (rc := self._enter("set_PWM_range", gpio, range_)) is not None:
            return rc
        if not 25 <= range_ <= 40000:
            return PI_BAD_DUTYRANGE
        self.ranges[gpio] = range_
        return 200_000 // self.frequencies.get(gpio, 800)

    def get_PWM_range(self, gpio: int) -> int:
        if (rc := self._enter("get_PWM_range", gpio)) is not None:
            return rc
        return self.ranges.get(gpio, 255)

    def get_PWM_real_range(self, gpio: int) -> int:
        if (rc := self._enter("get_PWM_real_range", gpio)) is not None:
            return rc
        return 200_000 // self.frequencies.get(gpio, 800)

    def hardware_PWM(self, gpio: int, frequency: int, dutycycle: int) -> int:
        if (rc := self._enter("hardware_PWM", gpio, frequency, dutycycle)) is not None:
            return rc
        if gpio not in (12, 13, 18, 19):
            return PI_NOT_HPWM_GPIO
        self.hardware[gpio] = (frequency, dutycycle)
        return 0

    def set_servo_pulsewidth(self, gpio: int, pulsewidth: int) -> int:
        if (rc := self._enter("set_servo_pulsewidth", gpio, pulsewidth)) is not None:
            return rc
        self.servo[gpio] = pulsewidth
        return 0

    def get_servo_pulsewidth(self, gpio: int) -> int:
        if (rc := self._enter("get_servo_pulsewidth", gpio)) is not None:
            return rc
        return self.servo.get(gpio, PI_NOT_SERVO_GPIO)

    # -- SPI -----------------------------------------------------------

    def spi_open(self, channel: int, baud: int, flags: int = 0) -> int:
        if (rc := self._enter("spi_open", channel, baud, flags)) is not None:
            return rc
        handle = self._new_handle()
        self.spi[handle] = (channel, baud, flags)
        return handle

    def spi_close(self, handle: int) -> int:
        if (rc := self._enter("spi_close", handle)) is not None:
            return rc
        if self.spi.pop(handle, None) is None:
            return PI_BAD_HANDLE
        return 0

    def spi_read(self, handle: int, count: int) -> tuple[int, bytearray]:
        if (rc := self._enter("spi_read", handle, count)) is not None:
            return rc, bytearray()
        if handle not in self.spi:
            return PI_BAD_HANDLE, bytearray()
        data = self._short(bytes(count))
        return len(data), data

    def spi_write(self, handle: int, data: bytes) -> int:
        if (rc := self._enter("spi_write", handle, data)) is not None:
            return rc
        if handle not in self.spi:
            return PI_BAD_HANDLE
        return len(data) if self.spi_written is None else self.spi_written

    def spi_xfer(self, handle: int, data: bytes) -> tuple[int, bytearray]:
        if (rc := self._enter("spi_xfer", handle, data)) is not None:
            return rc, bytearray()
        if handle not in self.spi:
            return PI_BAD_HANDLE, bytearray()
        echoed = self._short(bytes(data))
        return len(echoed), echoed

    # -- I2C -----------------------------------------------------------

    def _regs(self, handle: int) -> bytearray:
        return self.registers.setdefault(self.i2c[handle], bytearray(256))

    def i2c_open(self, bus: int, address: int, flags: int = 0) -> int:
        if (rc := self._enter("i2c_open", bus, address, flags)) is not None:
            return rc
        handle = self._new_handle()
        self.i2c[handle] = (bus, address)
        return handle

    def i2c_close(self, handle: int) -> int:
        if (rc := self._enter("i2c_close", handle)) is not None:
            return rc
        if self.i2c.pop(handle, None) is None:
            return PI_BAD_HANDLE
        return 0

    def i2c_read_device(self, handle: int, count: int) -> tuple[int, bytearray]:
        if (rc := self._enter("i2c_read_device", handle, count)) is not None:
            return rc, bytearray()
        data = self._short(bytes(self._regs(handle)[:count]))
        return len(data), data

    def i2c_write_device(self, handle: int, data: bytes) -> int:
        if (rc := self._enter("i2c_write_device", handle, data)) is not None:
            return rc
        regs = self._regs(handle)
        regs[data[0]: data[0] + len(data) - 1] = data[1:]
        return 0

    def i2c_read_byte(self, handle: int) -> int:
        if (rc := self._enter("i2c_read_byte", handle)) is not None:
            return rc
        return self._regs(handle)[0]

    def i2c_write_byte(self, handle: int, value: int) -> int:
        if (rc := self._enter("i2c_write_byte", handle, value)) is not None:
            return rc
        self._regs(handle)[0] = value
        return 0

    def i2c_read_byte_data(self, handle: int, register: int) -> int:
        if (rc := self._enter("i2c_read_byte_data", handle, register)) is not None:
            return rc
        return self._regs(handle)[register]

    def i2c_write_byte_data(self, handle: int, register: int, value: int) -> int:
        if (rc := self._enter("i2c_write_byte_data", handle, register, value)) is not None:
            return rc
        self._regs(handle)[register] = value
        return 0

    def i2c_read_word_data(self, handle: int, register: int) -> int:
        if (rc := self._enter("i2c_read_word_data", handle, register)) is not None:
            return rc
        regs = self._regs(handle)
        return regs[register] | regs[register + 1] << 8

    def i2c_write_word_data(self, handle: int, register: int, value: int) -> int:
        if (rc := self._enter("i2c_write_word_data", handle, register, value)) is not None:
            return rc
        regs = self._regs(handle)
        regs[register] = value & 0xFF
        regs[register + 1] = value >> 8
        return 0

    def i2c_read_block_data(self, handle: int, register: int) -> tuple[int, bytearray]:
        if (rc := self._enter("i2c_read_block_data", handle, register)) is not None:
            return rc, bytearray()
        data = bytearray(self.blocks.get((*self.i2c[handle], register), b""))
        return len(data), data

    def i2c_write_block_data(self, handle: int, register: int, data: bytes) -> int:
        if (rc := self._enter("i2c_write_block_data", handle, register, data)) is not None:
            return rc
        self.blocks[(*self.i2c[handle], register)] = bytes(data)
        return 0

    def i2c_read_i2c_block_data(
        self, handle: int, register: int, count: int
    ) -> tuple[int, bytearray]:
        if (rc := self._enter("i2c_read_i2c_block_data", handle, register, count)) is not None:
            return rc, bytearray()
        data = self._short(bytes(self._regs(handle)[register: register + count]))
        return len(data), data

    def i2c_write_i2c_block_data(self, handle: int, register: int, data: bytes) -> int:
        if (rc := self._enter("i2c_write_i2c_block_data", handle, register, data)) is not None:
            return rc
        self._regs(handle)[register: register + len(data)] = data
        return 0


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings() -> Generator[Settings, None, None]:
    settings = Settings(
        backend="direct",
        direct={"controller": "mock"},
        logging={"level": "debug", "format": "console"},
    )
    override_settings(settings)
    yield settings
    override_settings(None)


# ---------------------------------------------------------------------------
# Registry + direct backend
# ---------------------------------------------------------------------------


@pytest.fixture
def registry() -> HandleRegistry:
    return HandleRegistry()


@pytest.fixture
def controller() -> MockController:
    return MockController()


@pytest.fixture
def direct_backend(
    controller: MockController, registry: HandleRegistry
) -> Generator[DirectBackend, None, None]:
    backend = DirectBackend(controller, registry)
    assert backend.acquire() == 0
    yield backend
    backend.release()


@pytest.fixture
def bridge(
    controller: MockController, registry: HandleRegistry, test_settings: Settings
) -> Generator[GPIOBridge, None, None]:
    backend = DirectBackend(controller, registry, test_settings.limits)
    gpio = GPIOBridge.direct(settings=test_settings, backend=backend)
    yield gpio
    gpio.close()


# ---------------------------------------------------------------------------
# Daemon backend
# ---------------------------------------------------------------------------


@pytest.fixture
def resolver(monkeypatch: pytest.MonkeyPatch) -> None:
    """Resolve every host offline; ``*.invalid`` hosts fail like DNS would."""

    def getaddrinfo(host: str, port: Any, *args: Any, **kwargs: Any) -> list[Any]:
        if str(host).endswith(".invalid"):
            raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")
        int(port)
        return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", ("127.0.0.1", int(port)))]

    monkeypatch.setattr(socket, "getaddrinfo", getaddrinfo)


@pytest.fixture
def fake_pis() -> list[FakePi]:
    """Every FakePi created by ``pi_factory``, in creation order."""
    return []


@pytest.fixture
def pi_factory(fake_pis: list[FakePi]) -> Any:
    def factory(host: str, port: int, timeout: float | None = None) -> FakePi:
        pi = FakePi(host, port)
        pi.connect_timeout = timeout
        fake_pis.append(pi)
        return pi

    return factory


@pytest.fixture
def daemon_backend(
    registry: HandleRegistry, pi_factory: Any, resolver: None
) -> DaemonBackend:
    return DaemonBackend(registry=registry, pi_factory=pi_factory)


@pytest.fixture
def daemon_bridge(
    daemon_backend: DaemonBackend, test_settings: Settings
) -> Generator[GPIOBridge, None, None]:
    gpio = GPIOBridge.connect("", "", settings=test_settings, backend=daemon_backend)
    yield gpio
    gpio.close()
