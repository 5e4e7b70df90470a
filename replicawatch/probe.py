"""Probe transports — "is this replica answering?"

Every failure cause (timeout, refused connection, non-2xx status) collapses
to ``False``.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol

import requests

logger = logging.getLogger("replicawatch.probe")


class ProbeTransport(Protocol):
    def probe(self, endpoint: str) -> bool:
        ...


class HttpProbe:
    """GET the replica's health URL; 2xx means alive."""

    def __init__(self, timeout_s: float = 5.0, session: Optional[requests.Session] = None) -> None:
        self._timeout = timeout_s
        self._session = session or requests.Session()

    def probe(self, endpoint: str) -> bool:
        try:
            r = self._session.get(endpoint, timeout=self._timeout)
            ok = 200 <= r.status_code < 300
            if not ok:
                logger.debug("Health check for %s returned %d", endpoint, r.status_code)
            return ok
        except requests.RequestException as e:
            logger.debug("Health check failed for %s: %s", endpoint, e)
            return False

    def close(self) -> None:
        self._session.close()
