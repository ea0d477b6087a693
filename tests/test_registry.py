"""Tests for registry retrieval retries and the parse/resolve/annotate pipeline."""

import json
from unittest.mock import Mock

import pytest

from modkeeper.catalog.models import InstalledPackage
from modkeeper.catalog.registry import RegistryFetcher, build_registry
from modkeeper.catalog.resolver import VersionResolver
from modkeeper.constants import GITHUB_RAW_ACCEPT
from modkeeper.exceptions import ErrorCategory, HTTPStatusError, NetworkError

from tests.test_resolver import FakeReleaseSource

pytestmark = [pytest.mark.unit, pytest.mark.core]

REGISTRY_URL = "https://example.com/mod-registry.json"


def _network_error(is_timeout=False):
    return NetworkError(
        "Request timed out" if is_timeout else "Network error",
        url=REGISTRY_URL,
        is_timeout=is_timeout,
    )


@pytest.fixture
def sleep():
    return Mock()


@pytest.fixture
def api_request(mocker):
    return mocker.patch("modkeeper.catalog.registry.make_github_api_request")


def test_fetch_text_returns_body_on_first_attempt(api_request, sleep):
    api_request.return_value = Mock(text='{"mods": []}')
    fetcher = RegistryFetcher(REGISTRY_URL, github_token="tok", sleep=sleep)

    assert fetcher.fetch_text() == '{"mods": []}'
    assert fetcher.last_attempts == 1
    sleep.assert_not_called()

    args, kwargs = api_request.call_args
    assert args == (REGISTRY_URL, "tok")
    assert kwargs["accept"] == GITHUB_RAW_ACCEPT
    assert kwargs["timeout"] == 30


def test_fetch_text_retries_transient_failures_one_second_apart(api_request, sleep):
    api_request.side_effect = [
        _network_error(),
        _network_error(is_timeout=True),
        Mock(text="{}"),
    ]
    fetcher = RegistryFetcher(REGISTRY_URL, sleep=sleep)

    assert fetcher.fetch_text() == "{}"
    assert fetcher.last_attempts == 3
    assert api_request.call_count == 3
    assert [c.args for c in sleep.call_args_list] == [(1.0,), (1.0,)]


def test_fetch_text_raises_last_error_after_three_attempts(api_request, sleep):
    errors = [_network_error(), _network_error(), _network_error(is_timeout=True)]
    api_request.side_effect = errors
    fetcher = RegistryFetcher(REGISTRY_URL, sleep=sleep)

    with pytest.raises(NetworkError) as exc_info:
        fetcher.fetch_text()

    assert exc_info.value is errors[-1]
    assert exc_info.value.is_timeout
    assert fetcher.last_attempts == 3
    assert sleep.call_count == 2


def test_fetch_text_does_not_retry_missing_registry(api_request, sleep):
    api_request.side_effect = HTTPStatusError(
        "HTTP 404", url=REGISTRY_URL, status_code=404, category=ErrorCategory.PACKAGE
    )
    fetcher = RegistryFetcher(REGISTRY_URL, sleep=sleep)

    with pytest.raises(HTTPStatusError):
        fetcher.fetch_text()

    assert api_request.call_count == 1
    assert fetcher.last_attempts == 1
    sleep.assert_not_called()


def test_fetch_text_honours_custom_attempt_count(api_request, sleep):
    api_request.side_effect = _network_error()
    fetcher = RegistryFetcher(REGISTRY_URL, attempts=5, retry_delay=0.25, sleep=sleep)

    with pytest.raises(NetworkError):
        fetcher.fetch_text()

    assert api_request.call_count == 5
    assert sleep.call_count == 4
    sleep.assert_called_with(0.25)


def test_build_registry_runs_every_stage(sample_registry_document, sample_releases):
    source = FakeReleaseSource([sample_releases])
    installed = [InstalledPackage(file_name="foo.dll", version="2.0.0")]

    registry = build_registry(
        json.dumps(sample_registry_document),
        VersionResolver(source),
        installed,
        source_url=REGISTRY_URL,
    )

    foo = registry.get("Foo")
    bar = registry.get("Bar")
    assert foo.version == "2.3.1"
    assert foo.download_url == "https://example.com/Foo-2.3.1/Foo.dll"
    assert foo.is_installed and foo.installed_version == "2.0.0"
    assert foo.has_update
    assert bar.version == "1.1.0"
    assert bar.download_url == "https://example.com/Bar-1.1.0/Bar.zip"
    assert not bar.is_installed
    assert registry.updates == (foo,)


def test_build_registry_with_invalid_document_yields_empty_registry():
    source = FakeReleaseSource([])

    registry = build_registry("not json", VersionResolver(source), [])

    assert registry.mods == ()
    assert source.calls == []
