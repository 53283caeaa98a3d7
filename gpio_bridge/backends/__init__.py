"""Backends — the two transport paths behind :class:`~gpio_bridge.bridge.GPIOBridge`.

  - :class:`~gpio_bridge.backends.direct.DirectBackend` — local controller, in-process
  - :class:`~gpio_bridge.backends.daemon.DaemonBackend` — ``pigpiod`` over its socket

The two classes share no base class: the façade dispatches on
:class:`~gpio_bridge.constants.BackendKind` and prepends the session id for
daemon calls.
"""

from gpio_bridge.backends.daemon import DaemonBackend
from gpio_bridge.backends.direct import DirectBackend

__all__ = ["DaemonBackend", "DirectBackend"]
