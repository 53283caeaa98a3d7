"""Backends — Direct (in-process) access through a local controller.

Every public method returns a pigpio-style status: a non-negative success
value, or a negative error code.  Reads that carry data return
``(status, bytes)`` where *status* is the byte count on success.

The backend reproduces pigpiod's bookkeeping that the local libraries do not
provide themselves:
  - per-pin PWM frequency (snapped to the 5 µs sample table), range and duty
    cycle, with range changes rescaling the duty cycle;
  - servo pulses as 50 Hz PWM;
  - hardware PWM emulated on the controller's PWM, with pigpio's reported
    range, real range and channel-conflict rules;
  - PWM, servo and hardware PWM are mutually exclusive on a pin; a level write
    or mode change stops all three.

Controller exceptions never escape: ``OSError``, ``RuntimeError`` and
``ValueError`` become the operation's fallback code; a
:class:`~gpio_bridge.exceptions.GPIOBridgeError` contributes its own code.
"""

from __future__ import annotations

import functools
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from gpio_bridge import validation
from gpio_bridge.codes import ErrorCode
from gpio_bridge.constants import (
    HARDWARE_PWM_CHANNELS,
    HARDWARE_PWM_CLOCK,
    PWM_FREQUENCIES,
    PWM_REAL_RANGE_BASE,
    SERVO_FREQUENCY,
    SERVO_PERIOD_US,
    BackendKind,
    ControllerLimits,
    PinMode,
    ResourceKind,
)
from gpio_bridge.controllers.interfaces import GPIOInterface
from gpio_bridge.exceptions import GPIOBridgeError, error_for_code
from gpio_bridge.logging import get_logger
from gpio_bridge.registry import HandleRegistry, Owner, get_registry

log = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_CONTROLLER_FAULTS = (OSError, RuntimeError, ValueError)


def _status(fallback: ErrorCode, payload: bool = False) -> Callable[[F], F]:
    """Turn a method that raises into one that returns pigpio status codes.

    Also rejects every call made while the controller is not initialised.
    """

    def decorator(method: F) -> F:
        @functools.wraps(method)
        def wrapper(self: DirectBackend, *args: Any) -> Any:
            if self._scope is None:
                rc = int(ErrorCode.INIT_FAILED)
            else:
                try:
                    return method(self, *args)
                except GPIOBridgeError as exc:
                    rc = int(exc.code)
                except _CONTROLLER_FAULTS as exc:
                    log.warning(
                        "controller_fault",
                        operation=method.__name__,
                        controller=self._controller.name,
                        error=str(exc),
                        mapped_to=fallback.name,
                    )
                    rc = int(fallback)
            return (rc, b"") if payload else rc

        return wrapper  # type: ignore[return-value]

    return decorator


def snap_frequency(frequency: int) -> int:
    """Return the sample-table frequency closest to *frequency*."""
    return min(PWM_FREQUENCIES, key=lambda candidate: abs(candidate - frequency))


@dataclass
class PinPWMState:
    """pigpiod's per-pin PWM bookkeeping."""

    frequency: int
    range: int
    dutycycle: int = 0
    pwm_active: bool = False
    servo_active: bool = False
    pulsewidth: int = 0
    hw_frequency: int = 0
    hw_dutycycle: int = 0

    @property
    def hw_active(self) -> bool:
        return self.hw_frequency > 0

    @property
    def driven(self) -> bool:
        return self.pwm_active or self.servo_active or self.hw_active


class DirectBackend:
    """pigpio semantics on top of a :class:`GPIOInterface` controller.

    Usage::

        backend = DirectBackend(MockController())
        backend.acquire()
        backend.set_mode(17, PinMode.OUTPUT)
        handle = backend.spi_open(0, 1_000_000, 0)
        count, rx = backend.spi_xfer(handle, b"\\x9f\\x00\\x00")
        backend.release()

    ``acquire``/``release`` are reference counted so several bridges can share
    one controller; the last ``release`` closes the scope's handles and
    terminates the controller.
    """

    kind = BackendKind.DIRECT

    def __init__(
        self,
        controller: GPIOInterface,
        registry: HandleRegistry | None = None,
        limits: ControllerLimits | None = None,
    ) -> None:
        self._controller = controller
        self._registry = registry if registry is not None else get_registry()
        self._limits = limits or ControllerLimits()
        self._pins: dict[int, PinPWMState] = {}
        self._pin_lock = threading.Lock()
        self._lifecycle_lock = threading.Lock()
        self._users = 0
        self._scope: int | None = None

    @property
    def controller(self) -> GPIOInterface:
        return self._controller

    @property
    def limits(self) -> ControllerLimits:
        return self._limits

    @property
    def registry(self) -> HandleRegistry:
        return self._registry

    @property
    def owner(self) -> Owner | None:
        """Owner of this backend's handles, or None when not initialised."""
        if self._scope is None:
            return None
        return Owner(BackendKind.DIRECT, self._scope)

    @property
    def initialised(self) -> bool:
        return self._scope is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def acquire(self) -> int:
        """Initialise the controller on first use.  Returns 0 or INIT_FAILED."""
        with self._lifecycle_lock:
            if self._users == 0:
                try:
                    self._controller.initialise()
                except (GPIOBridgeError, *_CONTROLLER_FAULTS) as exc:
                    log.error(
                        "controller_init_failed",
                        controller=self._controller.name,
                        error=str(exc),
                    )
                    return int(ErrorCode.INIT_FAILED)
                self._scope = self._registry.register(
                    ResourceKind.CONTROLLER,
                    Owner(BackendKind.DIRECT),
                    self._controller,
                    controller=self._controller.name,
                )
                log.info("controller_initialised", controller=self._controller.name, scope=self._scope)
            self._users += 1
            return 0

    def release(self) -> int:
        """Drop one user; the last one closes all handles and terminates."""
        with self._lifecycle_lock:
            if self._users == 0:
                return 0
            self._users -= 1
            if self._users > 0:
                return 0

            scope = self._scope
            if scope is None:
                raise error_for_code(ErrorCode.INIT_FAILED, controller=self._controller.name)
            for handle, record in self._registry.drain(Owner(BackendKind.DIRECT, scope)):
                self._close_device(record.kind, record.resource, handle)
            self._registry.release(scope, ResourceKind.CONTROLLER, Owner(BackendKind.DIRECT))
            self._scope = None
            with self._pin_lock:
                self._pins.clear()
            try:
                self._controller.terminate()
            except _CONTROLLER_FAULTS as exc:
                log.warning("controller_fault", operation="terminate", error=str(exc))
            log.info("controller_terminated", controller=self._controller.name, scope=scope)
            return 0

    def _close_device(self, kind: ResourceKind, device: Any, handle: int) -> None:
        try:
            if kind is ResourceKind.SPI:
                self._controller.spi_close(device)
            else:
                self._controller.i2c_close(device)
        except _CONTROLLER_FAULTS as exc:
            log.warning("handle_close_failed", kind=kind.value, handle=handle, error=str(exc))

    # ------------------------------------------------------------------
    # Pin state helpers
    # ------------------------------------------------------------------

    def _state(self, gpio: int) -> PinPWMState:
        state = self._pins.get(gpio)
        if state is None:
            state = PinPWMState(
                frequency=self._limits.default_pwm_frequency,
                range=self._limits.default_dutycycle_range,
            )
            self._pins[gpio] = state
        return state

    def _stop_outputs(self, gpio: int, state: PinPWMState) -> None:
        if state.driven:
            self._controller.pwm_stop(gpio)
        state.pwm_active = False
        state.servo_active = False
        state.pulsewidth = 0
        state.hw_frequency = 0
        state.hw_dutycycle = 0

    # ------------------------------------------------------------------
    # Pins
    # ------------------------------------------------------------------

    @_status(ErrorCode.BAD_MODE)
    def set_mode(self, gpio: int, mode: int) -> int:
        pin = validation.gpio(gpio, self._limits)
        pin_mode = validation.pin_mode(mode)
        with self._pin_lock:
            self._stop_outputs(pin, self._state(pin))
            self._controller.setup(pin, pin_mode)
        return 0

    @_status(ErrorCode.BAD_GPIO)
    def get_mode(self, gpio: int) -> int:
        pin = validation.gpio(gpio, self._limits)
        with self._pin_lock:
            return int(self._controller.get_function(pin))

    @_status(ErrorCode.BAD_PUD)
    def set_pull_up_down(self, gpio: int, pud: int) -> int:
        pin = validation.gpio(gpio, self._limits)
        pull = validation.pull(pud)
        with self._pin_lock:
            self._controller.set_pull(pin, pull)
        return 0

    @_status(ErrorCode.BAD_GPIO)
    def read(self, gpio: int) -> int:
        pin = validation.gpio(gpio, self._limits)
        with self._pin_lock:
            return int(self._controller.digital_read(pin))

    @_status(ErrorCode.BAD_LEVEL)
    def write(self, gpio: int, level: int) -> int:
        pin = validation.gpio(gpio, self._limits)
        value = validation.level(level)
        with self._pin_lock:
            self._stop_outputs(pin, self._state(pin))
            if self._controller.get_function(pin) is not PinMode.OUTPUT:
                self._controller.setup(pin, PinMode.OUTPUT)
            self._controller.digital_write(pin, int(value))
        return 0

    # ------------------------------------------------------------------
    # Software PWM
    # ------------------------------------------------------------------

    @_status(ErrorCode.BAD_DUTYCYCLE)
    def set_pwm_dutycycle(self, gpio: int, dutycycle: int) -> int:
        pin = validation.user_gpio(gpio, self._limits)
        duty = validation.as_int(dutycycle, ErrorCode.BAD_DUTYCYCLE, "dutycycle")
        with self._pin_lock:
            state = self._state(pin)
            validation.in_range(duty, 0, state.range, ErrorCode.BAD_DUTYCYCLE, "dutycycle")
            percent = duty * 100.0 / state.range
            if state.pwm_active:
                self._controller.pwm_set_duty_cycle(pin, percent)
            else:
                self._stop_outputs(pin, state)
                self._controller.pwm_start(pin, state.frequency, percent)
                state.pwm_active = True
            state.dutycycle = duty
        return 0

    @_status(ErrorCode.NOT_PWM_GPIO)
    def get_pwm_dutycycle(self, gpio: int) -> int:
        pin = validation.user_gpio(gpio, self._limits)
        with self._pin_lock:
            state = self._state(pin)
            if state.hw_active:
                return state.hw_dutycycle
            if state.pwm_active:
                return state.dutycycle
        return int(ErrorCode.NOT_PWM_GPIO)

    @_status(ErrorCode.BAD_PARAM)
    def set_pwm_frequency(self, gpio: int, frequency: int) -> int:
        pin = validation.user_gpio(gpio, self._limits)
        chosen = snap_frequency(validation.frequency(frequency))
        with self._pin_lock:
            state = self._state(pin)
            if state.pwm_active and chosen != state.frequency:
                self._controller.pwm_set_frequency(pin, chosen)
            state.frequency = chosen
        return chosen

    @_status(ErrorCode.BAD_USER_GPIO)
    def get_pwm_frequency(self, gpio: int) -> int:
        pin = validation.user_gpio(gpio, self._limits)
        with self._pin_lock:
            state = self._state(pin)
            if state.hw_active:
                return state.hw_frequency
            if state.servo_active:
                return SERVO_FREQUENCY
            return state.frequency

    @_status(ErrorCode.BAD_DUTYRANGE)
    def set_pwm_range(self, gpio: int, range_: int) -> int:
        pin = validation.user_gpio(gpio, self._limits)
        new_range = validation.dutycycle_range(range_, self._limits)
        with self._pin_lock:
            state = self._state(pin)
            # Keep the on-fraction: only the reported dutycycle changes.
            state.dutycycle = state.dutycycle * new_range // state.range
            state.range = new_range
            return PWM_REAL_RANGE_BASE // state.frequency

    @_status(ErrorCode.BAD_USER_GPIO)
    def get_pwm_range(self, gpio: int) -> int:
        pin = validation.user_gpio(gpio, self._limits)
        with self._pin_lock:
            state = self._state(pin)
            if state.hw_active:
                return self._limits.hardware_pwm_range
            return state.range

    @_status(ErrorCode.BAD_USER_GPIO)
    def get_pwm_real_range(self, gpio: int) -> int:
        pin = validation.user_gpio(gpio, self._limits)
        with self._pin_lock:
            state = self._state(pin)
            if state.hw_active:
                return HARDWARE_PWM_CLOCK // state.hw_frequency
            return PWM_REAL_RANGE_BASE // state.frequency

    # ------------------------------------------------------------------
    # Hardware PWM
    # ------------------------------------------------------------------

    @_status(ErrorCode.HPWM_ILLEGAL)
    def hardware_pwm(self, gpio: int, frequency: int, dutycycle: int) -> int:
        pin, freq, duty = validation.hardware_pwm(gpio, frequency, dutycycle, self._limits)
        channel = HARDWARE_PWM_CHANNELS.get(pin)
        with self._pin_lock:
            state = self._state(pin)
            if freq == 0:
                self._stop_outputs(pin, state)
                return 0

            for other, other_state in self._pins.items():
                if (
                    other != pin
                    and other_state.hw_active
                    and HARDWARE_PWM_CHANNELS.get(other) == channel
                    and (other_state.hw_frequency, other_state.hw_dutycycle) != (freq, duty)
                ):
                    return int(ErrorCode.HPWM_ILLEGAL)

            percent = duty * 100.0 / self._limits.hardware_pwm_range
            if state.hw_active:
                if freq != state.hw_frequency:
                    self._controller.pwm_set_frequency(pin, freq)
                self._controller.pwm_set_duty_cycle(pin, percent)
            else:
                self._stop_outputs(pin, state)
                self._controller.pwm_start(pin, freq, percent)
            state.hw_frequency = freq
            state.hw_dutycycle = duty
        return 0

    # ------------------------------------------------------------------
    # Servo
    # ------------------------------------------------------------------

    @_status(ErrorCode.BAD_PULSEWIDTH)
    def set_servo_pulsewidth(self, gpio: int, pulsewidth: int) -> int:
        pin = validation.user_gpio(gpio, self._limits)
        width = validation.pulsewidth(pulsewidth, self._limits)
        with self._pin_lock:
            state = self._state(pin)
            if not state.servo_active:
                self._stop_outputs(pin, state)
                state.servo_active = True

            percent = width * 100.0 / SERVO_PERIOD_US
            if width == 0:
                if state.pulsewidth:
                    self._controller.pwm_stop(pin)
            elif state.pulsewidth:
                self._controller.pwm_set_duty_cycle(pin, percent)
            else:
                self._controller.pwm_start(pin, SERVO_FREQUENCY, percent)
            state.pulsewidth = width
        return 0

    @_status(ErrorCode.NOT_SERVO_GPIO)
    def get_servo_pulsewidth(self, gpio: int) -> int:
        pin = validation.user_gpio(gpio, self._limits)
        with self._pin_lock:
            state = self._state(pin)
            if state.servo_active:
                return state.pulsewidth
        return int(ErrorCode.NOT_SERVO_GPIO)

    # ------------------------------------------------------------------
    # Handles
    # ------------------------------------------------------------------

    def _device(self, handle: int, kind: ResourceKind) -> Any:
        owner = self.owner
        record = self._registry.get(handle, kind, owner) if owner else None
        if record is None:
            raise error_for_code(ErrorCode.BAD_HANDLE, handle=handle, kind=kind.value)
        return record.resource

    def _register(self, kind: ResourceKind, device: Any, **info: Any) -> int:
        owner = self.owner
        if owner is None:
            self._close_device(kind, device, -1)
            raise error_for_code(ErrorCode.INIT_FAILED, controller=self._controller.name)
        try:
            return self._registry.register(kind, owner, device, **info)
        except GPIOBridgeError:
            self._close_device(kind, device, -1)
            raise

    def _release(self, handle: int, kind: ResourceKind) -> int:
        owner = self.owner
        record = self._registry.release(handle, kind, owner) if owner else None
        if record is None:
            return int(ErrorCode.BAD_HANDLE)
        self._close_device(kind, record.resource, handle)
        return 0

    # ------------------------------------------------------------------
    # SPI
    # ------------------------------------------------------------------

    @_status(ErrorCode.SPI_OPEN_FAILED)
    def spi_open(self, channel: int, baud: int, flags: int) -> int:
        spi_channel, spi_baud, spi_flags = validation.spi_open(channel, baud, flags, self._limits)
        device = self._controller.spi_open(spi_channel, spi_baud, spi_flags)
        return self._register(
            ResourceKind.SPI, device, channel=spi_channel, baud=spi_baud, flags=spi_flags
        )

    @_status(ErrorCode.BAD_HANDLE)
    def spi_close(self, handle: int) -> int:
        return self._release(handle, ResourceKind.SPI)

    @_status(ErrorCode.SPI_XFER_FAILED, payload=True)
    def spi_read(self, handle: int, count: int) -> tuple[int, bytes]:
        device = self._device(handle, ResourceKind.SPI)
        size = validation.spi_count(count, self._limits)
        data = self._controller.spi_read(device, size)
        return len(data), data

    @_status(ErrorCode.SPI_XFER_FAILED)
    def spi_write(self, handle: int, data: bytes) -> int:
        device = self._device(handle, ResourceKind.SPI)
        payload = validation.buffer(data, ErrorCode.BAD_SPI_COUNT, self._limits.spi_max_count)
        return self._controller.spi_write(device, payload)

    @_status(ErrorCode.SPI_XFER_FAILED, payload=True)
    def spi_xfer(self, handle: int, data: bytes) -> tuple[int, bytes]:
        device = self._device(handle, ResourceKind.SPI)
        payload = validation.buffer(data, ErrorCode.BAD_SPI_COUNT, self._limits.spi_max_count)
        received = self._controller.spi_xfer(device, payload)
        return len(received), received

    # ------------------------------------------------------------------
    # I2C
    # ------------------------------------------------------------------

    @_status(ErrorCode.I2C_OPEN_FAILED)
    def i2c_open(self, bus: int, address: int, flags: int) -> int:
        i2c_bus, i2c_address, i2c_flags = validation.i2c_open(bus, address, flags, self._limits)
        device = self._controller.i2c_open(i2c_bus, i2c_address, i2c_flags)
        return self._register(ResourceKind.I2C, device, bus=i2c_bus, address=i2c_address)

    @_status(ErrorCode.BAD_HANDLE)
    def i2c_close(self, handle: int) -> int:
        return self._release(handle, ResourceKind.I2C)

    @_status(ErrorCode.I2C_READ_FAILED, payload=True)
    def i2c_read_device(self, handle: int, count: int) -> tuple[int, bytes]:
        device = self._device(handle, ResourceKind.I2C)
        size = validation.device_count(count, self._limits)
        data = self._controller.i2c_read_device(device, size)
        return len(data), data

    @_status(ErrorCode.I2C_WRITE_FAILED)
    def i2c_write_device(self, handle: int, data: bytes) -> int:
        device = self._device(handle, ResourceKind.I2C)
        payload = validation.buffer(data, max_length=self._limits.i2c_max_device_count)
        self._controller.i2c_write_device(device, payload)
        return 0

    @_status(ErrorCode.I2C_READ_FAILED)
    def i2c_read_byte(self, handle: int) -> int:
        device = self._device(handle, ResourceKind.I2C)
        return self._controller.i2c_read_byte(device)

    @_status(ErrorCode.I2C_WRITE_FAILED)
    def i2c_write_byte(self, handle: int, value: int) -> int:
        device = self._device(handle, ResourceKind.I2C)
        self._controller.i2c_write_byte(device, validation.byte_value(value))
        return 0

    @_status(ErrorCode.I2C_READ_FAILED)
    def i2c_read_byte_data(self, handle: int, register: int) -> int:
        device = self._device(handle, ResourceKind.I2C)
        return self._controller.i2c_read_byte_data(device, validation.register(register))

    @_status(ErrorCode.I2C_WRITE_FAILED)
    def i2c_write_byte_data(self, handle: int, register: int, value: int) -> int:
        device = self._device(handle, ResourceKind.I2C)
        self._controller.i2c_write_byte_data(
            device, validation.register(register), validation.byte_value(value)
        )
        return 0

    @_status(ErrorCode.I2C_READ_FAILED)
    def i2c_read_word_data(self, handle: int, register: int) -> int:
        device = self._device(handle, ResourceKind.I2C)
        return self._controller.i2c_read_word_data(device, validation.register(register))

    @_status(ErrorCode.I2C_WRITE_FAILED)
    def i2c_write_word_data(self, handle: int, register: int, value: int) -> int:
        device = self._device(handle, ResourceKind.I2C)
        self._controller.i2c_write_word_data(
            device, validation.register(register), validation.word_value(value)
        )
        return 0

    @_status(ErrorCode.I2C_READ_FAILED, payload=True)
    def i2c_read_block_data(self, handle: int, register: int) -> tuple[int, bytes]:
        device = self._device(handle, ResourceKind.I2C)
        data = self._controller.i2c_read_block_data(device, validation.register(register))
        if len(data) > self._limits.smbus_block_max:
            return int(ErrorCode.I2C_READ_FAILED), b""
        return len(data), data

    @_status(ErrorCode.I2C_WRITE_FAILED)
    def i2c_write_block_data(self, handle: int, register: int, data: bytes) -> int:
        device = self._device(handle, ResourceKind.I2C)
        reg = validation.register(register)
        payload = validation.buffer(data, max_length=self._limits.smbus_block_max)
        self._controller.i2c_write_block_data(device, reg, payload)
        return 0

    @_status(ErrorCode.I2C_READ_FAILED, payload=True)
    def i2c_read_i2c_block_data(self, handle: int, register: int, count: int) -> tuple[int, bytes]:
        device = self._device(handle, ResourceKind.I2C)
        reg = validation.register(register)
        size = validation.block_count(count, self._limits)
        data = self._controller.i2c_read_i2c_block_data(device, reg, size)
        return len(data), data

    @_status(ErrorCode.I2C_WRITE_FAILED)
    def i2c_write_i2c_block_data(self, handle: int, register: int, data: bytes) -> int:
        device = self._device(handle, ResourceKind.I2C)
        reg = validation.register(register)
        payload = validation.buffer(data, max_length=self._limits.smbus_block_max)
        self._controller.i2c_write_i2c_block_data(device, reg, payload)
        return 0
