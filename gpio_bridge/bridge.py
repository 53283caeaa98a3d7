"""GPIO Bridge — Unified façade.

:class:`GPIOBridge` binds to exactly one backend at construction and exposes
one set of operations for digital I/O, PWM/servo, SPI and I2C, whichever path
the calls take.

For every call the façade:
  1. refuses to run on a closed bridge (``SessionError`` for daemon bridges,
     ``InitialisationError`` for direct ones);
  2. coerces and range-checks arguments (see :mod:`gpio_bridge.validation`);
  3. checks handles against the registry: right backend, right session or
     controller scope, right peripheral class, still open;
  4. forwards to the backend, prepending the session id on the daemon path;
  5. turns a negative status into the matching
     :class:`~gpio_bridge.exceptions.GPIOBridgeError`, and a short transfer
     into ``SPI_XFER_FAILED`` / ``I2C_READ_FAILED``.

Usage::

    with GPIOBridge.connect("raspberrypi.local") as gpio:
        gpio.set_mode(17, PinMode.OUTPUT)
        gpio.write(17, Level.HIGH)
        with gpio.open_spi(0, baud=1_000_000) as adc:
            raw = adc.transfer([0x01, 0x80, 0x00])
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from gpio_bridge import validation
from gpio_bridge.backends.daemon import DaemonBackend
from gpio_bridge.backends.direct import DirectBackend
from gpio_bridge.codes import ErrorCode
from gpio_bridge.config import Settings, get_settings
from gpio_bridge.constants import BackendKind, ControllerLimits, Level, PinMode, Pull, ResourceKind
from gpio_bridge.controllers import GPIOInterface, create_controller
from gpio_bridge.devices import I2CDevice, SPIDevice
from gpio_bridge.exceptions import error_for_code
from gpio_bridge.logging import (
    bind_session_context,
    clear_session_context,
    configure_from_settings,
    get_logger,
)
from gpio_bridge.registry import Owner

log = get_logger(__name__)


class GPIOBridge:
    """One bound backend plus the checks that make both backends behave alike.

    Build instances with :meth:`direct`, :meth:`connect` or
    :meth:`from_settings`; the constructor expects a backend that is already
    initialised (direct) or a live session id (daemon).
    """

    def __init__(
        self,
        backend: DirectBackend | DaemonBackend,
        session: int | None = None,
        settings: Settings | None = None,
    ) -> None:
        if backend.kind is BackendKind.DAEMON and session is None:
            raise ValueError("A daemon bridge needs a session id.")
        self._backend = backend
        self._kind: BackendKind = backend.kind
        self._session = session
        self._settings = settings
        self._registry = backend.registry
        self._limits: ControllerLimits = backend.limits
        self._closed = False
        self._close_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def direct(
        cls,
        controller: GPIOInterface | None = None,
        settings: Settings | None = None,
        backend: DirectBackend | None = None,
    ) -> "GPIOBridge":
        """Bind to a local controller.

        Args:
            controller: Controller to use; defaults to ``settings.direct.controller``.
            settings:   Defaults to :func:`~gpio_bridge.config.get_settings`.
            backend:    Share an existing :class:`DirectBackend` (reference counted).

        Raises:
            InitialisationError: The controller could not be initialised.
        """
        if settings is None:
            settings = get_settings()
        if backend is None:
            if controller is None:
                controller = create_controller(settings.direct.controller)
            backend = DirectBackend(controller, limits=settings.limits)
        rc = backend.acquire()
        if rc < 0:
            raise error_for_code(
                ErrorCode.normalize(rc, ErrorCode.INIT_FAILED),
                controller=backend.controller.name,
            )
        return cls(backend, settings=settings)

    @classmethod
    def connect(
        cls,
        host: str = "",
        port: int | str = "",
        timeout: float | None = None,
        settings: Settings | None = None,
        backend: DaemonBackend | None = None,
    ) -> "GPIOBridge":
        """Open a session on a ``pigpiod`` daemon.

        Empty *host*/*port* fall back to ``settings.daemon``.

        Raises:
            TransportError: The daemon could not be resolved or reached.
        """
        if settings is None:
            settings = get_settings()
        if backend is None:
            backend = DaemonBackend(config=settings.daemon, limits=settings.limits)
        rc = backend.connect(host, port, timeout)
        if rc < 0:
            raise error_for_code(
                ErrorCode.normalize(rc, ErrorCode.CONNECT_FAILED),
                host=host or settings.daemon.host,
                port=port or settings.daemon.port,
            )
        return cls(backend, session=rc, settings=settings)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "GPIOBridge":
        """Pick the backend named by ``settings.backend``.

        Also installs ``settings.logging`` when nothing configured logging yet.
        """
        if settings is None:
            settings = get_settings()
        configure_from_settings(settings.logging)
        if settings.backend == "daemon":
            return cls.connect(settings=settings)
        return cls.direct(settings=settings)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def backend(self) -> BackendKind:
        return self._kind

    @property
    def session(self) -> int | None:
        return self._session

    @property
    def limits(self) -> ControllerLimits:
        return self._limits

    @property
    def connected(self) -> bool:
        if self._closed:
            return False
        if self._kind is BackendKind.DAEMON:
            return self._backend.is_connected(self._session)
        return self._backend.initialised

    def close(self) -> None:
        """Release the backend.  Every handle this bridge's owner holds is closed."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        if self._kind is BackendKind.DAEMON:
            self._backend.disconnect(self._session)
        else:
            self._backend.release()

    def disconnect(self) -> None:
        self.close()

    def __enter__(self) -> "GPIOBridge":
        bind_session_context(backend=self._kind.value, session_id=self._session)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        try:
            self.close()
        finally:
            clear_session_context()

    def __repr__(self) -> str:
        state = "open" if not self._closed else "closed"
        if self._kind is BackendKind.DAEMON:
            return f"GPIOBridge(backend=daemon, session={self._session}, {state})"
        return f"GPIOBridge(backend=direct, controller={self._backend.controller.name}, {state})"

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if not self._closed:
            return
        if self._kind is BackendKind.DAEMON:
            raise error_for_code(ErrorCode.UNCONNECTED, session_id=self._session)
        raise error_for_code(ErrorCode.INIT_FAILED, "bridge is closed")

    def _owner(self) -> Owner:
        if self._kind is BackendKind.DAEMON:
            return DaemonBackend.owner(self._session)
        owner = self._backend.owner
        if owner is None:
            raise error_for_code(ErrorCode.INIT_FAILED)
        return owner

    def _dispatch(self, operation: str, *args: Any) -> Any:
        method = getattr(self._backend, operation)
        if self._kind is BackendKind.DAEMON:
            return method(self._session, *args)
        return method(*args)

    @staticmethod
    def _check(rc: int, fallback: ErrorCode, operation: str, **context: Any) -> int:
        if rc >= 0:
            return rc
        raise error_for_code(ErrorCode.normalize(rc, fallback), operation=operation, **context)

    def _call(self, operation: str, fallback: ErrorCode, *args: Any, **context: Any) -> int:
        return self._check(self._dispatch(operation, *args), fallback, operation, **context)

    def _call_data(
        self,
        operation: str,
        fallback: ErrorCode,
        expected: int | None,
        *args: Any,
        **context: Any,
    ) -> bytes:
        """Forward a read; return exactly *expected* bytes or raise *fallback*."""
        rc, data = self._dispatch(operation, *args)
        self._check(rc, fallback, operation, **context)
        wanted = rc if expected is None else expected
        if len(data) != rc or rc != wanted:
            raise error_for_code(
                fallback,
                f"{operation} transferred {len(data)} of {wanted} bytes",
                operation=operation,
                transferred=len(data),
                expected=wanted,
                **context,
            )
        return bytes(data)

    def _pin(self, gpio: Any) -> int:
        self._ensure_open()
        return validation.gpio(gpio, self._limits)

    def _user_pin(self, gpio: Any) -> int:
        self._ensure_open()
        return validation.user_gpio(gpio, self._limits)

    @contextmanager
    def _checkout(self, handle: Any, kind: ResourceKind) -> Iterator[int]:
        """Hold *handle* for one call; raise BAD_HANDLE unless it is ours."""
        self._ensure_open()
        number = validation.as_int(handle, ErrorCode.BAD_HANDLE, "handle")
        with self._registry.checkout(number, kind, self._owner()):
            yield number

    def _verify(self, handle: Any, kind: ResourceKind) -> int:
        self._ensure_open()
        number = validation.as_int(handle, ErrorCode.BAD_HANDLE, "handle")
        if self._registry.get(number, kind, self._owner()) is None:
            raise error_for_code(ErrorCode.BAD_HANDLE, handle=number, kind=kind.value)
        return number

    # ------------------------------------------------------------------
    # Pins
    # ------------------------------------------------------------------

    def set_mode(self, gpio: int, mode: PinMode | int) -> None:
        pin = self._pin(gpio)
        pin_mode = validation.pin_mode(mode)
        self._call("set_mode", ErrorCode.BAD_MODE, pin, int(pin_mode), gpio=pin)

    def get_mode(self, gpio: int) -> PinMode:
        pin = self._pin(gpio)
        return PinMode(self._call("get_mode", ErrorCode.BAD_GPIO, pin, gpio=pin))

    def set_pull_up_down(self, gpio: int, pud: Pull | int) -> None:
        pin = self._pin(gpio)
        pull = validation.pull(pud)
        self._call("set_pull_up_down", ErrorCode.BAD_PUD, pin, int(pull), gpio=pin)

    def read(self, gpio: int) -> int:
        pin = self._pin(gpio)
        return self._call("read", ErrorCode.BAD_GPIO, pin, gpio=pin)

    def write(self, gpio: int, level: Level | int) -> None:
        pin = self._pin(gpio)
        value = validation.level(level)
        self._call("write", ErrorCode.BAD_LEVEL, pin, int(value), gpio=pin)

    # ------------------------------------------------------------------
    # Software PWM
    # ------------------------------------------------------------------

    def set_pwm_dutycycle(self, gpio: int, dutycycle: int) -> None:
        pin = self._user_pin(gpio)
        duty = validation.dutycycle(dutycycle, self._limits)
        self._call("set_pwm_dutycycle", ErrorCode.BAD_DUTYCYCLE, pin, duty, gpio=pin)

    def get_pwm_dutycycle(self, gpio: int) -> int:
        pin = self._user_pin(gpio)
        return self._call("get_pwm_dutycycle", ErrorCode.NOT_PWM_GPIO, pin, gpio=pin)

    def set_pwm_frequency(self, gpio: int, frequency: int) -> int:
        """Select the closest available frequency and return it."""
        pin = self._user_pin(gpio)
        freq = validation.frequency(frequency)
        return self._call("set_pwm_frequency", ErrorCode.BAD_PARAM, pin, freq, gpio=pin)

    def get_pwm_frequency(self, gpio: int) -> int:
        pin = self._user_pin(gpio)
        return self._call("get_pwm_frequency", ErrorCode.BAD_USER_GPIO, pin, gpio=pin)

    def set_pwm_range(self, gpio: int, range_: int) -> int:
        """Set the dutycycle range and return the real range."""
        pin = self._user_pin(gpio)
        value = validation.dutycycle_range(range_, self._limits)
        return self._call("set_pwm_range", ErrorCode.BAD_DUTYRANGE, pin, value, gpio=pin)

    def get_pwm_range(self, gpio: int) -> int:
        pin = self._user_pin(gpio)
        return self._call("get_pwm_range", ErrorCode.BAD_USER_GPIO, pin, gpio=pin)

    def get_pwm_real_range(self, gpio: int) -> int:
        pin = self._user_pin(gpio)
        return self._call("get_pwm_real_range", ErrorCode.BAD_USER_GPIO, pin, gpio=pin)

    def hardware_pwm(self, gpio: int, frequency: int, dutycycle: int) -> None:
        """Start (frequency > 0) or stop (frequency 0) hardware PWM; duty is 0-1M."""
        self._ensure_open()
        pin, freq, duty = validation.hardware_pwm(gpio, frequency, dutycycle, self._limits)
        self._call("hardware_pwm", ErrorCode.HPWM_ILLEGAL, pin, freq, duty, gpio=pin)

    # ------------------------------------------------------------------
    # Servo
    # ------------------------------------------------------------------

    def set_servo_pulsewidth(self, gpio: int, pulsewidth: int) -> None:
        pin = self._user_pin(gpio)
        width = validation.pulsewidth(pulsewidth, self._limits)
        self._call("set_servo_pulsewidth", ErrorCode.BAD_PULSEWIDTH, pin, width, gpio=pin)

    def get_servo_pulsewidth(self, gpio: int) -> int:
        pin = self._user_pin(gpio)
        return self._call("get_servo_pulsewidth", ErrorCode.NOT_SERVO_GPIO, pin, gpio=pin)

    # ------------------------------------------------------------------
    # Pin helpers
    # ------------------------------------------------------------------

    def configure(self, gpio: int, mode: PinMode | int, pull: Pull | int = Pull.OFF) -> None:
        """Set the mode and pull of *gpio* in one call."""
        self.set_mode(gpio, mode)
        self.set_pull_up_down(gpio, pull)

    def start_software_pwm(self, gpio: int, frequency: int, dutycycle: int) -> int:
        """Select a PWM frequency then start PWM; returns the chosen frequency."""
        chosen = self.set_pwm_frequency(gpio, frequency)
        self.set_pwm_dutycycle(gpio, dutycycle)
        return chosen

    def toggle(self, gpio: int) -> int:
        """Invert the level of *gpio* and return the new level."""
        level = 1 - self.read(gpio)
        self.write(gpio, level)
        return level

    def pulse(self, gpio: int, duration_us: int) -> None:
        """Drive *gpio* high for *duration_us* microseconds, then low."""
        duration = validation.non_negative(duration_us, ErrorCode.BAD_PARAM, "duration_us")
        self.write(gpio, Level.HIGH)
        time.sleep(duration / 1_000_000)
        self.write(gpio, Level.LOW)

    def blink(self, gpio: int, on_us: int, off_us: int, count: int) -> None:
        on = validation.non_negative(on_us, ErrorCode.BAD_PARAM, "on_us")
        off = validation.non_negative(off_us, ErrorCode.BAD_PARAM, "off_us")
        for _ in range(validation.non_negative(count, ErrorCode.BAD_PARAM, "count")):
            self.write(gpio, Level.HIGH)
            time.sleep(on / 1_000_000)
            self.write(gpio, Level.LOW)
            time.sleep(off / 1_000_000)

    # ------------------------------------------------------------------
    # SPI
    # ------------------------------------------------------------------

    def spi_open(self, channel: int, baud: int, flags: int = 0) -> int:
        """Open an SPI channel and return its handle."""
        self._ensure_open()
        spi_channel, spi_baud, spi_flags = validation.spi_open(channel, baud, flags, self._limits)
        handle = self._call(
            "spi_open", ErrorCode.SPI_OPEN_FAILED, spi_channel, spi_baud, spi_flags,
            channel=spi_channel,
        )
        log.debug("handle_opened", kind="spi", handle=handle, channel=spi_channel)
        return handle

    def spi_close(self, handle: int) -> None:
        number = self._verify(handle, ResourceKind.SPI)
        self._call("spi_close", ErrorCode.BAD_HANDLE, number, handle=number)
        log.debug("handle_closed", kind="spi", handle=number)

    def spi_read(self, handle: int, count: int) -> bytes:
        with self._checkout(handle, ResourceKind.SPI) as number:
            size = validation.spi_count(count, self._limits)
            return self._call_data(
                "spi_read", ErrorCode.SPI_XFER_FAILED, size, number, size, handle=number
            )

    def spi_write(self, handle: int, data: Any) -> int:
        with self._checkout(handle, ResourceKind.SPI) as number:
            payload = validation.buffer(data, ErrorCode.BAD_SPI_COUNT, self._limits.spi_max_count)
            written = self._call("spi_write", ErrorCode.SPI_XFER_FAILED, number, payload, handle=number)
            if written != len(payload):
                raise error_for_code(
                    ErrorCode.SPI_XFER_FAILED,
                    f"spi_write transferred {written} of {len(payload)} bytes",
                    operation="spi_write",
                    handle=number,
                    transferred=written,
                    expected=len(payload),
                )
            return written

    def spi_xfer(self, handle: int, data: Any) -> bytes:
        """Full-duplex transfer; returns exactly ``len(data)`` bytes."""
        with self._checkout(handle, ResourceKind.SPI) as number:
            payload = validation.buffer(data, ErrorCode.BAD_SPI_COUNT, self._limits.spi_max_count)
            return self._call_data(
                "spi_xfer", ErrorCode.SPI_XFER_FAILED, len(payload), number, payload, handle=number
            )

    def open_spi(self, channel: int, baud: int = 1_000_000, flags: int = 0) -> SPIDevice:
        handle = self.spi_open(channel, baud, flags)
        return SPIDevice(self, handle, channel=int(channel), baud=int(baud), flags=int(flags))

    # ------------------------------------------------------------------
    # I2C
    # ------------------------------------------------------------------

    def i2c_open(self, bus: int, address: int, flags: int = 0) -> int:
        """Open the device at *address* on *bus* and return its handle."""
        self._ensure_open()
        i2c_bus, i2c_address, i2c_flags = validation.i2c_open(bus, address, flags, self._limits)
        handle = self._call(
            "i2c_open", ErrorCode.I2C_OPEN_FAILED, i2c_bus, i2c_address, i2c_flags,
            bus=i2c_bus, address=i2c_address,
        )
        log.debug("handle_opened", kind="i2c", handle=handle, bus=i2c_bus, address=i2c_address)
        return handle

    def i2c_close(self, handle: int) -> None:
        number = self._verify(handle, ResourceKind.I2C)
        self._call("i2c_close", ErrorCode.BAD_HANDLE, number, handle=number)
        log.debug("handle_closed", kind="i2c", handle=number)

    def i2c_read_device(self, handle: int, count: int) -> bytes:
        with self._checkout(handle, ResourceKind.I2C) as number:
            size = validation.device_count(count, self._limits)
            return self._call_data(
                "i2c_read_device", ErrorCode.I2C_READ_FAILED, size, number, size, handle=number
            )

    def i2c_write_device(self, handle: int, data: Any) -> None:
        with self._checkout(handle, ResourceKind.I2C) as number:
            payload = validation.buffer(data, max_length=self._limits.i2c_max_device_count)
            self._call("i2c_write_device", ErrorCode.I2C_WRITE_FAILED, number, payload, handle=number)

    def i2c_read_byte(self, handle: int) -> int:
        with self._checkout(handle, ResourceKind.I2C) as number:
            return self._call("i2c_read_byte", ErrorCode.I2C_READ_FAILED, number, handle=number)

    def i2c_write_byte(self, handle: int, value: int) -> None:
        with self._checkout(handle, ResourceKind.I2C) as number:
            byte = validation.byte_value(value)
            self._call("i2c_write_byte", ErrorCode.I2C_WRITE_FAILED, number, byte, handle=number)

    def i2c_read_byte_data(self, handle: int, register: int) -> int:
        with self._checkout(handle, ResourceKind.I2C) as number:
            reg = validation.register(register)
            return self._call(
                "i2c_read_byte_data", ErrorCode.I2C_READ_FAILED, number, reg,
                handle=number, register=reg,
            )

    def i2c_write_byte_data(self, handle: int, register: int, value: int) -> None:
        with self._checkout(handle, ResourceKind.I2C) as number:
            reg = validation.register(register)
            byte = validation.byte_value(value)
            self._call(
                "i2c_write_byte_data", ErrorCode.I2C_WRITE_FAILED, number, reg, byte,
                handle=number, register=reg,
            )

    def i2c_read_word_data(self, handle: int, register: int) -> int:
        with self._checkout(handle, ResourceKind.I2C) as number:
            reg = validation.register(register)
            return self._call(
                "i2c_read_word_data", ErrorCode.I2C_READ_FAILED, number, reg,
                handle=number, register=reg,
            )

    def i2c_write_word_data(self, handle: int, register: int, value: int) -> None:
        with self._checkout(handle, ResourceKind.I2C) as number:
            reg = validation.register(register)
            word = validation.word_value(value)
            self._call(
                "i2c_write_word_data", ErrorCode.I2C_WRITE_FAILED, number, reg, word,
                handle=number, register=reg,
            )

    def i2c_read_block_data(self, handle: int, register: int) -> bytes:
        """SMBus block read; the device chooses the length (at most 32)."""
        with self._checkout(handle, ResourceKind.I2C) as number:
            reg = validation.register(register)
            return self._call_data(
                "i2c_read_block_data", ErrorCode.I2C_READ_FAILED, None, number, reg,
                handle=number, register=reg,
            )

    def i2c_write_block_data(self, handle: int, register: int, data: Any) -> None:
        with self._checkout(handle, ResourceKind.I2C) as number:
            reg = validation.register(register)
            payload = validation.buffer(data, max_length=self._limits.smbus_block_max)
            self._call(
                "i2c_write_block_data", ErrorCode.I2C_WRITE_FAILED, number, reg, payload,
                handle=number, register=reg,
            )

    def i2c_read_i2c_block_data(self, handle: int, register: int, count: int) -> bytes:
        with self._checkout(handle, ResourceKind.I2C) as number:
            reg = validation.register(register)
            size = validation.block_count(count, self._limits)
            return self._call_data(
                "i2c_read_i2c_block_data", ErrorCode.I2C_READ_FAILED, size, number, reg, size,
                handle=number, register=reg,
            )

    def i2c_write_i2c_block_data(self, handle: int, register: int, data: Any) -> None:
        with self._checkout(handle, ResourceKind.I2C) as number:
            reg = validation.register(register)
            payload = validation.buffer(data, max_length=self._limits.smbus_block_max)
            self._call(
                "i2c_write_i2c_block_data", ErrorCode.I2C_WRITE_FAILED, number, reg, payload,
                handle=number, register=reg,
            )

    def open_i2c(self, bus: int, address: int, flags: int = 0) -> I2CDevice:
        handle = self.i2c_open(bus, address, flags)
        return I2CDevice(self, handle, bus=int(bus), address=int(address))
