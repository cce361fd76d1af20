"""Traffic statistics polling for the running core."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum

log = logging.getLogger(__name__)

ERROR_RETURN_CODE = -1
FAILURE_THRESHOLD = 30
API_ERROR_MESSAGE = "Failed to get statistics data, please check if V2Ray is running properly"


class StatisticsType(Enum):
    """Which counter an outbound's traffic is added to."""

    PROXY = "proxy"
    DIRECT = "direct"


_PROTOCOL_TYPES: dict[StatisticsType, frozenset[str]] = {
    StatisticsType.PROXY: frozenset({"http", "shadowsocks", "socks", "vmess", "trojan"}),
    StatisticsType.DIRECT: frozenset({"freedom", "dns"}),
}


@dataclass
class Statistics:
    """Traffic counted since the previous poll, in bytes."""

    proxy_up: int = 0
    proxy_down: int = 0
    direct_up: int = 0
    direct_down: int = 0


def classify_tags(tag_protocols: Mapping[str, str]) -> dict[str, StatisticsType]:
    """Map each outbound tag whose protocol is counted to its statistics type."""
    result: dict[str, StatisticsType] = {}
    for tag, protocol in tag_protocols.items():
        for stat_type, protocols in _PROTOCOL_TYPES.items():
            if protocol in protocols:
                result[tag] = stat_type
    return result


def _stat_name(tag: str, direction: str) -> str:
    return f"outbound>>>{tag}>>>traffic>>>{direction}"


class StatsPoller:
    """Polls the core's stats service in a background thread.

    ``fetch`` is called with a counter name and returns its value, or -1 (or
    raises) when the call failed. ``on_data`` receives each :class:`Statistics`;
    ``on_error`` receives a message once the failure threshold is reached.
    """

    def __init__(
        self,
        fetch: Callable[[str], int],
        on_data: Callable[[Statistics], None] | None = None,
        on_error: Callable[[str], None] | None = None,
        interval: float = 1.0,
    ) -> None:
        self.fetch = fetch
        self.on_data = on_data
        self.on_error = on_error
        self.interval = interval
        self._lock = threading.Lock()
        self._config: dict[str, StatisticsType] = {}
        self._fail_count = 0
        self._running = threading.Event()
        self._closed = threading.Event()
        log.info("API Worker initialised.")
        self._thread = threading.Thread(target=self._run, name="stats-poller", daemon=True)
        self._thread.start()

    @property
    def running(self) -> bool:
        return self._running.is_set()

    @property
    def tag_types(self) -> dict[str, StatisticsType]:
        with self._lock:
            return dict(self._config)

    def start_api(self, tag_protocols: Mapping[str, str]) -> None:
        """Configure the outbounds to watch and start polling."""
        with self._lock:
            self._config = dict(sorted(classify_tags(tag_protocols).items()))
            self._fail_count = 0
        self._running.set()

    def stop_api(self) -> None:
        """Stop polling; the worker thread stays alive."""
        self._running.clear()

    def poll_once(self) -> Statistics | None:
        """Run one polling round; return the statistics, or None while failing."""
        with self._lock:
            if self._fail_count == FAILURE_THRESHOLD:
                log.warning("API call failure threshold reached, cancelling further API calls.")
                self._fail_count += 1
                notify_error = True
            elif self._fail_count > FAILURE_THRESHOLD:
                return None
            else:
                notify_error = False
            config = dict(self._config)

        if notify_error:
            if self.on_error is not None:
                self.on_error(API_ERROR_MESSAGE)
            return None

        result = Statistics()
        has_error = False
        for tag, stat_type in config.items():
            up = self._call(_stat_name(tag, "uplink"))
            down = self._call(_stat_name(tag, "downlink"))
            has_error = has_error or up == ERROR_RETURN_CODE or down == ERROR_RETURN_CODE
            if stat_type is StatisticsType.PROXY:
                result.proxy_up += max(up, 0)
                result.proxy_down += max(down, 0)
            elif stat_type is StatisticsType.DIRECT:
                result.direct_up += max(up, 0)
                result.direct_down += max(down, 0)

        with self._lock:
            self._fail_count = self._fail_count + 1 if has_error else 0

        if self.on_data is not None:
            self.on_data(result)
        return result

    def _call(self, name: str) -> int:
        try:
            return int(self.fetch(name))
        except Exception as exc:  # any transport failure counts as a failed call
            log.warning("API call for %s failed: %s", name, exc)
            return ERROR_RETURN_CODE

    def _run(self) -> None:
        log.info("API Worker started.")
        while not self._closed.is_set():
            if self._closed.wait(self.interval):
                break
            while self._running.is_set() and not self._closed.is_set():
                self.poll_once()
                if self._closed.wait(self.interval):
                    break
        log.info("API thread stopped")

    def close(self) -> None:
        """Stop polling and wait for the worker thread to end."""
        self.stop_api()
        self._closed.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join()

    def __enter__(self) -> StatsPoller:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()