import threading

import pytest

from v2raykit.stats import (
    API_ERROR_MESSAGE,
    FAILURE_THRESHOLD,
    Statistics,
    StatisticsType,
    StatsPoller,
    classify_tags,
)


def _fetch_from(values):
    def fetch(name):
        return values.get(name, 0)

    return fetch


@pytest.fixture
def poller_factory():
    created = []

    def make(fetch, **kwargs):
        kwargs.setdefault("interval", 60.0)
        poller = StatsPoller(fetch, **kwargs)
        created.append(poller)
        return poller

    yield make
    for poller in created:
        poller.close()


def test_classify_tags_splits_proxy_and_direct():
    result = classify_tags({"a": "vmess", "b": "freedom", "c": "blackhole", "d": "dns"})
    assert result == {
        "a": StatisticsType.PROXY,
        "b": StatisticsType.DIRECT,
        "d": StatisticsType.DIRECT,
    }


@pytest.mark.parametrize("protocol", ["http", "shadowsocks", "socks", "vmess", "trojan"])
def test_proxy_protocols(protocol):
    assert classify_tags({"t": protocol}) == {"t": StatisticsType.PROXY}


def test_poll_sums_counters(poller_factory):
    values = {
        "outbound>>>p>>>traffic>>>uplink": 10,
        "outbound>>>p>>>traffic>>>downlink": 20,
        "outbound>>>d>>>traffic>>>uplink": 3,
        "outbound>>>d>>>traffic>>>downlink": 4,
    }
    received = []
    poller = poller_factory(_fetch_from(values), on_data=received.append)
    poller.start_api({"p": "vmess", "d": "freedom"})
    stats = poller.poll_once()
    assert stats == Statistics(proxy_up=10, proxy_down=20, direct_up=3, direct_down=4)
    assert received == [stats]


def test_negative_values_are_clamped(poller_factory):
    values = {"outbound>>>p>>>traffic>>>uplink": -1, "outbound>>>p>>>traffic>>>downlink": 7}
    poller = poller_factory(_fetch_from(values))
    poller.start_api({"p": "trojan"})
    assert poller.poll_once() == Statistics(proxy_up=0, proxy_down=7)


def test_error_reported_once_after_threshold(poller_factory):
    errors = []
    poller = poller_factory(lambda name: -1, on_error=errors.append)
    poller.start_api({"p": "socks"})
    results = [poller.poll_once() for _ in range(FAILURE_THRESHOLD)]
    assert all(isinstance(r, Statistics) for r in results)
    assert errors == []
    assert poller.poll_once() is None
    assert errors == [API_ERROR_MESSAGE]
    assert poller.poll_once() is None
    assert errors == [API_ERROR_MESSAGE]


def test_exception_counts_as_failure(poller_factory):
    def fetch(name):
        raise ConnectionError("down")

    errors = []
    poller = poller_factory(fetch, on_error=errors.append)
    poller.start_api({"p": "http"})
    for _ in range(FAILURE_THRESHOLD + 1):
        poller.poll_once()
    assert errors == [API_ERROR_MESSAGE]


def test_success_resets_failure_counter(poller_factory):
    state = {"fail": True}

    def fetch(name):
        return -1 if state["fail"] else 5

    errors = []
    poller = poller_factory(fetch, on_error=errors.append)
    poller.start_api({"p": "http"})
    for _ in range(FAILURE_THRESHOLD - 1):
        poller.poll_once()
    state["fail"] = False
    assert poller.poll_once() == Statistics(proxy_up=5, proxy_down=5)
    state["fail"] = True
    for _ in range(FAILURE_THRESHOLD - 1):
        poller.poll_once()
    assert errors == []


def test_start_and_stop_api(poller_factory):
    poller = poller_factory(lambda name: 0)
    poller.start_api({"x": "vmess", "y": "blackhole"})
    assert poller.running is True
    assert poller.tag_types == {"x": StatisticsType.PROXY}
    poller.stop_api()
    assert poller.running is False


def test_background_thread_delivers_data():
    got = threading.Event()
    received = []

    def on_data(stats):
        received.append(stats)
        got.set()

    with StatsPoller(lambda name: 1, on_data=on_data, interval=0.01) as poller:
        poller.start_api({"p": "vmess"})
        assert got.wait(5.0)
    assert received[0] == Statistics(proxy_up=1, proxy_down=1)