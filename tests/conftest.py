import json
import time
from pathlib import Path
from unittest.mock import Mock

import platformdirs
import pytest
import requests

_NETWORK_BLOCK_MSG = (
    "Network access is blocked during tests. Mock requests.* or Session.request."
)


def _block_network(*_args, **_kwargs):
    """
    Prevent network calls in tests by raising a RuntimeError.

    Raises:
        RuntimeError: with `_NETWORK_BLOCK_MSG` indicating that network access is blocked during tests.
    """
    raise RuntimeError(_NETWORK_BLOCK_MSG)


def pytest_configure(config):
    """
    Register the markers used across the test suite.

    Parameters:
        config: pytest.Config
            The pytest configuration object used to register markers.
    """
    config.addinivalue_line("markers", "unit: fast, isolated unit tests")
    config.addinivalue_line("markers", "core: catalog resolution and caching tests")
    config.addinivalue_line("markers", "install: download and install tests")
    config.addinivalue_line("markers", "cli: command-line interface tests")


@pytest.fixture(autouse=True)
def _isolate_test_environment(tmp_path_factory, monkeypatch):
    """
    Create an isolated temporary application directory layout and point platformdirs at it.

    Config, data, cache and log directories all live under a fresh temporary base, the
    GitHub token and log level environment variables are cleared, and the XDG variables
    are redirected.
    """
    base = tmp_path_factory.mktemp("modkeeper")
    cache_dir = base / "cache"
    config_dir = base / "config"
    data_dir = base / "data"
    log_dir = base / "log"

    for path in (cache_dir, config_dir, data_dir, log_dir):
        path.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("XDG_CACHE_HOME", str(cache_dir))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_dir))
    monkeypatch.setenv("XDG_DATA_HOME", str(data_dir))
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("MODKEEPER_LOG_LEVEL", raising=False)

    monkeypatch.setattr(
        platformdirs, "user_cache_dir", lambda *_args, **_kwargs: str(cache_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_config_dir", lambda *_args, **_kwargs: str(config_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_data_dir", lambda *_args, **_kwargs: str(data_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_log_dir", lambda *_args, **_kwargs: str(log_dir)
    )


def pytest_runtest_setup():
    """
    Prevent real network requests during tests by replacing HTTP entry points with blocking callables.
    """
    requests.get = _block_network
    requests.post = _block_network
    requests.put = _block_network
    requests.delete = _block_network
    requests.head = _block_network
    requests.patch = _block_network
    requests.options = _block_network
    requests.Session.request = _block_network


@pytest.fixture(autouse=True)
def _mock_time_sleep(monkeypatch):
    """
    Make time.sleep instant for all tests to prevent delays.

    Registry fetch retries sleep between attempts; tests that need real timing should
    monkeypatch sleep back within the test.
    """
    monkeypatch.setattr(time, "sleep", lambda *_args, **_kwargs: None)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def mock_response():
    """
    Provide a factory that creates configured mock `requests.Response` objects.

    The factory accepts a status code, headers, a JSON body or text body, and an iterable
    of content chunks for `iter_content`. Error statuses make `raise_for_status` raise a
    real `requests.HTTPError` carrying the mock response.
    """

    def _create_response(
        status=200, headers=None, json_data=None, text=None, content_chunks=None
    ):
        response = Mock(spec=requests.Response)
        response.status_code = status
        response.headers = headers or {}
        if json_data is not None:
            response.json.return_value = json_data
            response.text = json.dumps(json_data)
        else:
            response.json.side_effect = ValueError("No JSON object could be decoded")
            response.text = text or ""
        response.iter_content.return_value = iter(content_chunks or [])

        if status >= 400:
            response.raise_for_status.side_effect = requests.HTTPError(
                f"{status} Error", response=response
            )
        else:
            response.raise_for_status.return_value = None
        return response

    return _create_response


@pytest.fixture
def sample_registry_document():
    """A registry document with one mod per supported layout."""
    return {
        "schemaVersion": "1.0",
        "lastUpdated": "2024-06-01",
        "registryUrl": "https://example.com/mod-registry.json",
        "releasesApiUrl": "https://api.github.com/repos/owner/mods/releases",
        "categories": ["Gameplay", "Visual"],
        "mods": [
            {
                "id": "Foo",
                "name": "Foo Mod",
                "description": "Adds foo",
                "author": "someone",
                "category": "Gameplay",
                "tags": ["foo"],
                "repositoryUrl": "https://github.com/owner/mods",
                "dllName": "Foo.dll",
            },
            {
                "id": "Bar",
                "name": "Bar Mod",
                "category": "Visual",
                "repositoryUrl": "https://github.com/owner/mods",
                "dllName": "Bar.dll",
            },
        ],
    }


@pytest.fixture
def sample_releases():
    """A newest-first release list covering both registry mods."""
    return [
        {
            "tag_name": "Foo-v2.3.1",
            "draft": False,
            "prerelease": False,
            "html_url": "https://github.com/owner/mods/releases/tag/Foo-v2.3.1",
            "assets": [
                {
                    "name": "Foo.dll",
                    "browser_download_url": "https://example.com/Foo-2.3.1/Foo.dll",
                }
            ],
        },
        {
            "tag_name": "Bar-v1.1.0",
            "draft": False,
            "prerelease": False,
            "html_url": "https://github.com/owner/mods/releases/tag/Bar-v1.1.0",
            "assets": [
                {
                    "name": "Bar.zip",
                    "browser_download_url": "https://example.com/Bar-1.1.0/Bar.zip",
                }
            ],
        },
        {
            "tag_name": "Foo-v2.0.0",
            "draft": False,
            "prerelease": False,
            "html_url": "https://github.com/owner/mods/releases/tag/Foo-v2.0.0",
            "assets": [
                {
                    "name": "Foo.dll",
                    "browser_download_url": "https://example.com/Foo-2.0.0/Foo.dll",
                }
            ],
        },
    ]


@pytest.fixture
def mods_dir(tmp_path) -> Path:
    path = tmp_path / "Mods"
    path.mkdir()
    return path
