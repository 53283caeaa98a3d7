"""Backends — Daemon access through the ``pigpio`` client.

Each session is one ``pigpio.pi`` connection to a ``pigpiod`` daemon,
registered in the handle registry as a ``SESSION`` record.  Every operation
takes the session id first, then the same arguments as the direct backend,
and returns the daemon's status unchanged (or ``(status, bytes)`` for reads).

The client runs with ``pigpio.exceptions = False``: each response is a plain
status, never a raised ``pigpio.error``.  Socket faults are reported as
``SEND_FAILED``/``RECV_FAILED``; a timed-out request is ``RECV_FAILED``.
A socket fault ends the session: a late reply may still be queued on the
connection, so every later call on that session returns ``UNCONNECTED``.

SPI and I2C handles returned by the daemon are only unique per connection, so
callers never see them.  Each one is wrapped in a registry id owned by
``Owner(DAEMON, session)``; a handle from another session, or from the direct
backend, is rejected with ``BAD_HANDLE``.
"""

from __future__ import annotations

import socket
import struct
from collections.abc import Callable
from typing import Any

import pigpio

from gpio_bridge.codes import ErrorCode
from gpio_bridge.config import DaemonConfig
from gpio_bridge.constants import BackendKind, ControllerLimits, ResourceKind
from gpio_bridge.exceptions import GPIOBridgeError
from gpio_bridge.logging import get_logger
from gpio_bridge.registry import HandleRegistry, Owner, get_registry

log = get_logger(__name__)

SESSION_OWNER = Owner(BackendKind.DAEMON)

# pigpio unpacks short replies from a closed socket with struct.
TRANSPORT_ERRORS = (OSError, struct.error)


def _create_pi(host: str, port: int, timeout: float | None = None) -> Any:
    """Build a ``pigpio.pi``; with *timeout*, check the daemon answers first.

    ``pigpio.pi`` opens its socket without a timeout, so an unresponsive host
    would block for the OS TCP timeout.
    """
    if timeout is not None:
        socket.create_connection((host, port), timeout).close()
    pigpio.exceptions = False
    return pigpio.pi(host, port, show_errors=False)


class DaemonBackend:
    """Session-scoped calls to one or more ``pigpiod`` daemons.

    Usage::

        backend = DaemonBackend()
        session = backend.connect("raspberrypi.local", 8888, timeout=2.0)
        backend.set_mode(session, 17, PinMode.OUTPUT)
        handle = backend.spi_open(session, 0, 1_000_000, 0)
        count, rx = backend.spi_xfer(session, handle, b"\\x9f\\x00\\x00")
        backend.disconnect(session)

    Args:
        registry:   Handle registry; defaults to the process-wide one.
        config:     Default host/port/timeout for ``connect``.
        limits:     Numeric limits reported to the façade.
        pi_factory: ``(host, port, timeout) -> pigpio.pi``; injected by tests.
    """

    kind = BackendKind.DAEMON

    def __init__(
        self,
        registry: HandleRegistry | None = None,
        config: DaemonConfig | None = None,
        limits: ControllerLimits | None = None,
        pi_factory: Callable[[str, int, float | None], Any] | None = None,
    ) -> None:
        self._registry = registry if registry is not None else get_registry()
        self._config = config or DaemonConfig()
        self._limits = limits or ControllerLimits()
        self._pi_factory = pi_factory or _create_pi

    @property
    def limits(self) -> ControllerLimits:
        return self._limits

    @property
    def registry(self) -> HandleRegistry:
        return self._registry

    @staticmethod
    def owner(session: int) -> Owner:
        return Owner(BackendKind.DAEMON, session)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def connect(self, host: str = "", port: int | str = "", timeout: float | None = None) -> int:
        """Open a session.  Returns its id or a negative code."""
        host = host or self._config.host
        port = port or self._config.port
        if timeout is None:
            timeout = self._config.timeout_seconds

        try:
            socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
            port_number = int(port)
        except (socket.gaierror, ValueError) as exc:
            log.warning("daemon_address_unresolved", host=host, port=port, error=str(exc))
            return int(ErrorCode.BAD_ADDRESS)

        try:
            pi = self._pi_factory(host, port_number, timeout)
        except OSError as exc:
            log.warning("daemon_connect_failed", host=host, port=port_number, error=str(exc))
            return int(ErrorCode.CONNECT_FAILED)
        if not pi.connected:
            log.warning("daemon_connect_failed", host=host, port=port_number)
            return int(ErrorCode.CONNECT_FAILED)

        if timeout is not None:
            pi.sl.s.settimeout(timeout)

        try:
            session = self._registry.register(
                ResourceKind.SESSION, SESSION_OWNER, pi, host=host, port=port_number
            )
        except GPIOBridgeError as exc:
            pi.stop()
            return int(exc.code)
        log.info("session_connected", host=host, port=port_number, session_id=session)
        return session

    def disconnect(self, session: int) -> int:
        """Close every handle of *session* and stop its connection.

        Unknown and already-disconnected sessions are ignored.
        """
        if self._end_session(session, close_handles=True):
            log.info("session_disconnected", session_id=session)
        return 0

    def _end_session(self, session: int, close_handles: bool) -> bool:
        """Invalidate *session* and its handles, then stop its connection.

        Returns ``False`` when the session was already gone.  With
        *close_handles* the daemon-side handles are closed first; the first
        socket fault stops further close requests.
        """
        record = self._registry.release(session, ResourceKind.SESSION, SESSION_OWNER)
        if record is None:
            return False
        pi = record.resource

        for handle, owned in self._registry.drain(self.owner(session)):
            if not close_handles:
                continue
            closer = pi.spi_close if owned.kind is ResourceKind.SPI else pi.i2c_close
            try:
                rc = closer(owned.resource)
            except TRANSPORT_ERRORS as exc:
                log.warning("handle_close_failed", kind=owned.kind.value, handle=handle, error=str(exc))
                close_handles = False
                continue
            if rc < 0:
                log.warning("handle_close_failed", kind=owned.kind.value, handle=handle, rc=rc)

        try:
            pi.stop()
        except OSError as exc:
            log.warning("session_stop_failed", session_id=session, error=str(exc))
        return True

    def is_connected(self, session: int) -> bool:
        return self._registry.get(session, ResourceKind.SESSION, SESSION_OWNER) is not None

    # ------------------------------------------------------------------
    # Dispatch helpers
    # ------------------------------------------------------------------

    def _pi(self, session: int) -> Any | None:
        record = self._registry.get(session, ResourceKind.SESSION, SESSION_OWNER)
        return None if record is None else record.resource

    def _transport_failed(self, session: int, method: str, exc: Exception) -> int:
        """End *session* after a socket fault and return its status code."""
        if isinstance(exc, (TimeoutError, ConnectionResetError, struct.error)):
            code = ErrorCode.RECV_FAILED
        else:
            code = ErrorCode.SEND_FAILED
        log.warning(
            "daemon_request_failed",
            session_id=session, operation=method, code=code.name, error=str(exc),
        )
        if self._end_session(session, close_handles=False):
            log.warning("session_lost", session_id=session)
        return int(code)

    def _call(self, session: int, method: str, *args: Any) -> int:
        pi = self._pi(session)
        if pi is None:
            return int(ErrorCode.UNCONNECTED)
        try:
            return getattr(pi, method)(*args)
        except TRANSPORT_ERRORS as exc:
            return self._transport_failed(session, method, exc)

    def _call_data(self, session: int, method: str, *args: Any) -> tuple[int, bytes]:
        pi = self._pi(session)
        if pi is None:
            return int(ErrorCode.UNCONNECTED), b""
        try:
            count, data = getattr(pi, method)(*args)
        except TRANSPORT_ERRORS as exc:
            return self._transport_failed(session, method, exc), b""
        if count < 0:
            return count, b""
        return count, bytes(data)

    def _native(self, session: int, handle: int, kind: ResourceKind) -> int | None:
        record = self._registry.get(handle, kind, self.owner(session))
        return None if record is None else record.resource

    def _handle_call(self, session: int, handle: int, kind: ResourceKind, method: str, *args: Any) -> int:
        if self._pi(session) is None:
            return int(ErrorCode.UNCONNECTED)
        native = self._native(session, handle, kind)
        if native is None:
            return int(ErrorCode.BAD_HANDLE)
        return self._call(session, method, native, *args)

    def _handle_call_data(
        self, session: int, handle: int, kind: ResourceKind, method: str, *args: Any
    ) -> tuple[int, bytes]:
        if self._pi(session) is None:
            return int(ErrorCode.UNCONNECTED), b""
        native = self._native(session, handle, kind)
        if native is None:
            return int(ErrorCode.BAD_HANDLE), b""
        return self._call_data(session, method, native, *args)

    def _open(self, session: int, kind: ResourceKind, method: str, *args: Any, **info: Any) -> int:
        native = self._call(session, method, *args)
        if native < 0:
            return native
        try:
            handle = self._registry.register(kind, self.owner(session), native, native=native, **info)
        except GPIOBridgeError as exc:
            closer = "spi_close" if kind is ResourceKind.SPI else "i2c_close"
            self._call(session, closer, native)
            return int(exc.code)
        log.debug("handle_opened", kind=kind.value, handle=handle, session_id=session)
        return handle

    def _close(self, session: int, handle: int, kind: ResourceKind, method: str) -> int:
        if self._pi(session) is None:
            return int(ErrorCode.UNCONNECTED)
        record = self._registry.release(handle, kind, self.owner(session))
        if record is None:
            return int(ErrorCode.BAD_HANDLE)
        log.debug("handle_closed", kind=kind.value, handle=handle, session_id=session)
        rc = self._call(session, method, record.resource)
        if rc < 0:
            log.warning(
                "handle_close_failed",
                kind=kind.value, handle=handle, native=record.resource, session_id=session, rc=rc,
            )
        return rc

    # ------------------------------------------------------------------
    # Pins
    # ------------------------------------------------------------------

    def set_mode(self, session: int, gpio: int, mode: int) -> int:
        return self._call(session, "set_mode", gpio, mode)

    def get_mode(self, session: int, gpio: int) -> int:
        return self._call(session, "get_mode", gpio)

    def set_pull_up_down(self, session: int, gpio: int, pud: int) -> int:
        return self._call(session, "set_pull_up_down", gpio, pud)

    def read(self, session: int, gpio: int) -> int:
        return self._call(session, "read", gpio)

    def write(self, session: int, gpio: int, level: int) -> int:
        return self._call(session, "write", gpio, level)

    # ------------------------------------------------------------------
    # PWM / servo
    # ------------------------------------------------------------------

    def set_pwm_dutycycle(self, session: int, gpio: int, dutycycle: int) -> int:
        return self._call(session, "set_PWM_dutycycle", gpio, dutycycle)

    def get_pwm_dutycycle(self, session: int, gpio: int) -> int:
        return self._call(session, "get_PWM_dutycycle", gpio)

    def set_pwm_frequency(self, session: int, gpio: int, frequency: int) -> int:
        return self._call(session, "set_PWM_frequency", gpio, frequency)

    def get_pwm_frequency(self, session: int, gpio: int) -> int:
        return self._call(session, "get_PWM_frequency", gpio)

    def set_pwm_range(self, session: int, gpio: int, range_: int) -> int:
        return self._call(session, "set_PWM_range", gpio, range_)

    def get_pwm_range(self, session: int, gpio: int) -> int:
        return self._call(session, "get_PWM_range", gpio)

    def get_pwm_real_range(self, session: int, gpio: int) -> int:
        return self._call(session, "get_PWM_real_range", gpio)

    def hardware_pwm(self, session: int, gpio: int, frequency: int, dutycycle: int) -> int:
        return self._call(session, "hardware_PWM", gpio, frequency, dutycycle)

    def set_servo_pulsewidth(self, session: int, gpio: int, pulsewidth: int) -> int:
        return self._call(session, "set_servo_pulsewidth", gpio, pulsewidth)

    def get_servo_pulsewidth(self, session: int, gpio: int) -> int:
        return self._call(session, "get_servo_pulsewidth", gpio)

    # ------------------------------------------------------------------
    # SPI
    # ------------------------------------------------------------------

    def spi_open(self, session: int, channel: int, baud: int, flags: int) -> int:
        return self._open(
            session, ResourceKind.SPI, "spi_open", channel, baud, flags,
            channel=channel, baud=baud, flags=flags,
        )

    def spi_close(self, session: int, handle: int) -> int:
        return self._close(session, handle, ResourceKind.SPI, "spi_close")

    def spi_read(self, session: int, handle: int, count: int) -> tuple[int, bytes]:
        return self._handle_call_data(session, handle, ResourceKind.SPI, "spi_read", count)

    def spi_write(self, session: int, handle: int, data: bytes) -> int:
        return self._handle_call(session, handle, ResourceKind.SPI, "spi_write", data)

    def spi_xfer(self, session: int, handle: int, data: bytes) -> tuple[int, bytes]:
        return self._handle_call_data(session, handle, ResourceKind.SPI, "spi_xfer", data)

    # ------------------------------------------------------------------
    # I2C
    # ------------------------------------------------------------------

    def i2c_open(self, session: int, bus: int, address: int, flags: int) -> int:
        return self._open(
            session, ResourceKind.I2C, "i2c_open", bus, address, flags,
            bus=bus, address=address,
        )

    def i2c_close(self, session: int, handle: int) -> int:
        return self._close(session, handle, ResourceKind.I2C, "i2c_close")

    def i2c_read_device(self, session: int, handle: int, count: int) -> tuple[int, bytes]:
        return self._handle_call_data(session, handle, ResourceKind.I2C, "i2c_read_device", count)

    def i2c_write_device(self, session: int, handle: int, data: bytes) -> int:
        return self._handle_call(session, handle, ResourceKind.I2C, "i2c_write_device", data)

    def i2c_read_byte(self, session: int, handle: int) -> int:
        return self._handle_call(session, handle, ResourceKind.I2C, "i2c_read_byte")

    def i2c_write_byte(self, session: int, handle: int, value: int) -> int:
        return self._handle_call(session, handle, ResourceKind.I2C, "i2c_write_byte", value)

    def i2c_read_byte_data(self, session: int, handle: int, register: int) -> int:
        return self._handle_call(session, handle, ResourceKind.I2C, "i2c_read_byte_data", register)

    def i2c_write_byte_data(self, session: int, handle: int, register: int, value: int) -> int:
        return self._handle_call(
            session, handle, ResourceKind.I2C, "i2c_write_byte_data", register, value
        )

    def i2c_read_word_data(self, session: int, handle: int, register: int) -> int:
        return self._handle_call(session, handle, ResourceKind.I2C, "i2c_read_word_data", register)

    def i2c_write_word_data(self, session: int, handle: int, register: int, value: int) -> int:
        return self._handle_call(
            session, handle, ResourceKind.I2C, "i2c_write_word_data", register, value
        )

    def i2c_read_block_data(self, session: int, handle: int, register: int) -> tuple[int, bytes]:
        return self._handle_call_data(
            session, handle, ResourceKind.I2C, "i2c_read_block_data", register
        )

    def i2c_write_block_data(self, session: int, handle: int, register: int, data: bytes) -> int:
        return self._handle_call(
            session, handle, ResourceKind.I2C, "i2c_write_block_data", register, data
        )

    def i2c_read_i2c_block_data(
        self, session: int, handle: int, register: int, count: int
    ) -> tuple[int, bytes]:
        return self._handle_call_data(
            session, handle, ResourceKind.I2C, "i2c_read_i2c_block_data", register, count
        )

    def i2c_write_i2c_block_data(
        self, session: int, handle: int, register: int, data: bytes
    ) -> int:
        return self._handle_call(
            session, handle, ResourceKind.I2C, "i2c_write_i2c_block_data", register, data
        )
