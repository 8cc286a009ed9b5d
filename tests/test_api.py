"""Tests for the mempool.space REST client."""

import tempfile
from unittest.mock import Mock, patch
import pytest
import requests
from mempoolscope.api import MempoolAPIClient
from mempoolscope.cache import CacheStore, cache_key
from mempoolscope.errors import HTTPError, MempoolError, NetworkError, RequestTimeoutError


def _response(status_code=200, chunks=(b"{}",)):
    response = Mock()
    response.status_code = status_code
    response.iter_content.return_value = iter(chunks)
    return response


def _client(response=None, cache=None, **kwargs):
    session = Mock(spec=requests.Session)
    session.headers = {}
    if response is not None:
        session.get.return_value = response
    return MempoolAPIClient("https://mempool.space/api/", cache=cache, session=session, **kwargs), session


def test_fetch_returns_body_and_status():
    response = _response(200, [b'{"count"', b': 5}'])
    client, session = _client(response)

    data, status = client.fetch("/mempool")

    assert data == b'{"count": 5}'
    assert status == 200
    url = session.get.call_args[0][0]
    assert url == "https://mempool.space/api/mempool"
    assert session.get.call_args[1]["stream"] is True
    response.close.assert_called_once()


def test_fetch_non_2xx_raises_http_error():
    response = _response(404)
    client, _ = _client(response)

    with pytest.raises(HTTPError) as exc_info:
        client.fetch("/tx/abc")
    assert exc_info.value.status_code == 404
    response.close.assert_called_once()


def test_fetch_timeout_raises_timeout_error():
    client, session = _client()
    session.get.side_effect = requests.Timeout("read timed out")

    with pytest.raises(RequestTimeoutError) as exc_info:
        client.fetch("/tx/abc")
    # Also a builtin TimeoutError, and part of the pipeline error family
    assert isinstance(exc_info.value, TimeoutError)
    assert isinstance(exc_info.value, MempoolError)


def test_fetch_connection_error_raises_network_error():
    client, session = _client()
    session.get.side_effect = requests.ConnectionError("refused")

    with pytest.raises(NetworkError):
        client.fetch("/mempool")


def test_fetch_resource_deadline():
    response = _response(200, [b"a", b"b"])
    client, _ = _client(response, resource_timeout=60)

    with patch("mempoolscope.api.time.monotonic", side_effect=[0.0, 61.0, 62.0]):
        with pytest.raises(RequestTimeoutError):
            client.fetch("/v1/blocks")


def test_update_base_url():
    client, session = _client(_response())
    client.update_base_url("https://mempool.space/testnet/api/")
    client.update_base_url("")  # ignored

    client.fetch("/mempool")
    assert session.get.call_args[0][0] == "https://mempool.space/testnet/api/mempool"


def test_fetch_with_cache_miss_then_hit():
    with tempfile.TemporaryDirectory() as temp_dir:
        cache = CacheStore(temp_dir, 5)
        client, session = _client(_response(200, [b"[1, 2]"]), cache=cache)

        assert client.fetch_with_cache("/v1/blocks") == b"[1, 2]"
        assert cache.get(cache_key("/v1/blocks")) == b"[1, 2]"

        # Second call is served from the cache
        assert client.fetch_with_cache("/v1/blocks") == b"[1, 2]"
        assert session.get.call_count == 1


def test_fetch_with_cache_does_not_store_failures():
    with tempfile.TemporaryDirectory() as temp_dir:
        cache = CacheStore(temp_dir, 5)
        client, _ = _client(_response(503), cache=cache)

        with pytest.raises(HTTPError):
            client.fetch_with_cache("/mempool")
        assert cache.get(cache_key("/mempool")) is None


def test_fetch_text_strips_body():
    client, _ = _client(_response(200, [b"886330\n"]))
    assert client.fetch_text("/blocks/tip/height") == "886330"
