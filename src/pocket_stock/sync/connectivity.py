"""Connectivity monitor — online/offline signal for the sync manager."""

import logging
from typing import Optional

import httpx
from PySide6.QtCore import QObject, QTimer, Signal

from pocket_stock.config import Config

logger = logging.getLogger(__name__)


class ConnectivityMonitor(QObject):
    """Tracks whether the backend is reachable.

    The platform layer can push state with ``set_online()``; alternatively
    ``start_probing()`` polls the backend URL on a QTimer. Signals fire only
    on transitions.
    """

    became_online = Signal()
    became_offline = Signal()

    def __init__(self, probe_url: Optional[str] = None, online: bool = True,
                 transport: Optional[httpx.BaseTransport] = None,
                 parent=None):
        super().__init__(parent)
        self._online = online
        self.probe_url = probe_url if probe_url is not None else Config.SUPABASE_URL
        self._transport = transport
        self._timer: Optional[QTimer] = None

    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool):
        if online == self._online:
            return
        self._online = online
        logger.info("Connectivity changed: %s", "online" if online else "offline")
        if online:
            self.became_online.emit()
        else:
            self.became_offline.emit()

    def probe(self) -> bool:
        """Check the backend once and update the online state.

        Any HTTP response counts as reachable. Without a probe URL the
        current state is kept.
        """
        if not self.probe_url:
            return self._online
        try:
            with httpx.Client(timeout=Config.REQUEST_TIMEOUT,
                              transport=self._transport) as client:
                client.head(self.probe_url)
            reachable = True
        except httpx.HTTPError as e:
            logger.debug("Connectivity probe failed: %s", e)
            reachable = False
        self.set_online(reachable)
        return reachable

    def start_probing(self, interval_seconds: Optional[int] = None):
        """Probe now and then every *interval_seconds*."""
        self.stop_probing()
        seconds = interval_seconds or Config.CONNECTIVITY_PROBE_SECONDS
        self._timer = QTimer(self)
        self._timer.timeout.connect(self.probe)
        self._timer.start(max(seconds, 1) * 1000)
        self.probe()

    def stop_probing(self):
        if self._timer is not None:
            self._timer.stop()
            self._timer = None

    @property
    def is_probing(self) -> bool:
        return self._timer is not None
