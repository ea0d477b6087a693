"""
Tests for the shared utilities: transport error classification, GitHub requests,
repository URL derivation, formatting helpers and user-facing failure messages.
"""

import pytest
import requests

from modkeeper import utils
from modkeeper.constants import (
    GITHUB_RAW_ACCEPT,
    MSG_PACKAGE,
    MSG_RATE_LIMITED,
)
from modkeeper.exceptions import (
    AssetNotFoundError,
    ErrorCategory,
    HTTPStatusError,
    InstallError,
    NetworkError,
    RateLimitError,
)

pytestmark = [pytest.mark.unit]


def _http_error(mock_response, status, headers=None):
    response = mock_response(status=status, headers=headers)
    return requests.HTTPError(f"{status} Error", response=response)


class TestClassifyRequestException:
    """Categories come from exception types and status codes, never message text."""

    def test_timeout_is_transient_and_flagged(self):
        error = utils.classify_request_exception(
            requests.Timeout("read timed out"), "https://x"
        )
        assert isinstance(error, NetworkError)
        assert error.is_timeout is True
        assert error.category is ErrorCategory.TRANSIENT

    def test_connection_error_is_transient(self):
        error = utils.classify_request_exception(
            requests.ConnectionError("refused"), "https://x"
        )
        assert isinstance(error, NetworkError)
        assert error.is_timeout is False
        assert error.category is ErrorCategory.TRANSIENT

    def test_invalid_url_is_a_package_problem(self):
        error = utils.classify_request_exception(
            requests.exceptions.MissingSchema("no schema"), "not-a-url"
        )
        assert error.category is ErrorCategory.PACKAGE

    @pytest.mark.parametrize("status", [408, 500, 502, 503, 504])
    def test_server_statuses_are_transient(self, mock_response, status):
        error = utils.classify_request_exception(
            _http_error(mock_response, status), "https://x"
        )
        assert isinstance(error, HTTPStatusError)
        assert error.status_code == status
        assert error.category is ErrorCategory.TRANSIENT

    def test_429_is_rate_limit(self, mock_response):
        error = utils.classify_request_exception(
            _http_error(mock_response, 429, {"X-RateLimit-Reset": "1700000000"}),
            "https://x",
        )
        assert isinstance(error, RateLimitError)
        assert error.reset_time == 1700000000
        assert error.category is ErrorCategory.TRANSIENT

    def test_403_with_exhausted_quota_is_rate_limit(self, mock_response):
        error = utils.classify_request_exception(
            _http_error(mock_response, 403, {"X-RateLimit-Remaining": "0"}),
            "https://x",
        )
        assert isinstance(error, RateLimitError)
        assert error.status_code == 403

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_statuses_are_environment(self, mock_response, status):
        error = utils.classify_request_exception(
            _http_error(mock_response, status, {"X-RateLimit-Remaining": "42"}),
            "https://x",
        )
        assert not isinstance(error, RateLimitError)
        assert error.category is ErrorCategory.ENVIRONMENT

    @pytest.mark.parametrize("status", [404, 410, 422])
    def test_other_client_errors_are_package_problems(self, mock_response, status):
        error = utils.classify_request_exception(
            _http_error(mock_response, status), "https://x"
        )
        assert error.category is ErrorCategory.PACKAGE


class TestMakeGithubApiRequest:
    """Test make_github_api_request."""

    def test_sends_headers_and_params(self, mocker, mock_response):
        response = mock_response(json_data=[])
        mock_get = mocker.patch("modkeeper.utils.requests.get", return_value=response)

        result = utils.make_github_api_request(
            "https://api.github.com/repos/o/r/releases",
            github_token="abc",
            params={"per_page": 100},
            timeout=5,
            accept=GITHUB_RAW_ACCEPT,
        )

        assert result is response
        _, kwargs = mock_get.call_args
        assert kwargs["params"] == {"per_page": 100}
        assert kwargs["timeout"] == 5
        assert kwargs["headers"]["Accept"] == GITHUB_RAW_ACCEPT
        assert kwargs["headers"]["Authorization"] == "token abc"
        assert kwargs["headers"]["User-Agent"].startswith("modkeeper/")

    def test_no_authorization_without_token(self, mocker, mock_response):
        mock_get = mocker.patch(
            "modkeeper.utils.requests.get", return_value=mock_response(json_data=[])
        )

        utils.make_github_api_request("https://api.github.com/x", allow_env_token=False)

        assert "Authorization" not in mock_get.call_args.kwargs["headers"]

    def test_env_token_used_when_allowed(self, mocker, mock_response, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "from-env")
        mock_get = mocker.patch(
            "modkeeper.utils.requests.get", return_value=mock_response(json_data=[])
        )

        utils.make_github_api_request("https://api.github.com/x")

        assert mock_get.call_args.kwargs["headers"]["Authorization"] == "token from-env"

    def test_401_with_token_retries_without_token(self, mocker, mock_response):
        rejected = mock_response(status=401)
        accepted = mock_response(json_data=[])
        mock_get = mocker.patch(
            "modkeeper.utils.requests.get", side_effect=[rejected, accepted]
        )

        result = utils.make_github_api_request("https://api.github.com/x", "bad")

        assert result is accepted
        assert mock_get.call_count == 2
        assert "Authorization" not in mock_get.call_args_list[1].kwargs["headers"]

    def test_http_error_is_classified(self, mocker, mock_response):
        mocker.patch(
            "modkeeper.utils.requests.get", return_value=mock_response(status=404)
        )

        with pytest.raises(HTTPStatusError) as exc_info:
            utils.make_github_api_request("https://api.github.com/x")

        assert exc_info.value.status_code == 404
        assert exc_info.value.category is ErrorCategory.PACKAGE
        assert isinstance(exc_info.value.__cause__, requests.HTTPError)

    def test_timeout_is_classified(self, mocker):
        mocker.patch(
            "modkeeper.utils.requests.get", side_effect=requests.Timeout("slow")
        )

        with pytest.raises(NetworkError) as exc_info:
            utils.make_github_api_request("https://api.github.com/x")

        assert exc_info.value.is_timeout is True


class TestEffectiveToken:
    """Test get_effective_github_token."""

    def test_explicit_token_wins(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "env")
        assert utils.get_effective_github_token(" explicit ") == "explicit"

    def test_env_token_respects_flag(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "env")
        assert utils.get_effective_github_token(None) == "env"
        assert utils.get_effective_github_token(None, allow_env_token=False) is None

    def test_blank_token_is_absent(self):
        assert utils.get_effective_github_token("   ", allow_env_token=False) is None


class TestReleasesApiUrl:
    """Test releases_api_url_from_repository."""

    @pytest.mark.parametrize(
        "repo_url",
        [
            "https://github.com/owner/repo",
            "https://github.com/owner/repo/",
            "https://github.com/owner/repo.git",
            "https://github.com/owner/repo/tree/main",
        ],
    )
    def test_github_urls(self, repo_url):
        assert (
            utils.releases_api_url_from_repository(repo_url)
            == "https://api.github.com/repos/owner/repo/releases"
        )

    @pytest.mark.parametrize(
        "repo_url",
        [None, "", "https://gitlab.com/owner/repo", "https://github.com/owner"],
    )
    def test_non_github_urls(self, repo_url):
        assert utils.releases_api_url_from_repository(repo_url) is None


class TestFormatting:
    """Test byte and duration formatting."""

    @pytest.mark.parametrize(
        "size,expected",
        [
            (0, "0 B"),
            (512, "512 B"),
            (1536, "1.5 KB"),
            (3 * 1024 * 1024, "3 MB"),
            (5 * 1024**3, "5 GB"),
        ],
    )
    def test_format_file_size(self, size, expected):
        assert utils.format_file_size(size) == expected

    def test_format_eta(self):
        assert utils.format_eta(3) == "00:03"
        assert utils.format_eta(125.7) == "02:05"
        assert utils.format_eta(-1) == "00:00"

    def test_format_reset_time(self):
        assert utils.format_reset_time(None) == "unknown"
        assert utils.format_reset_time(0) == "unknown"
        assert utils.format_reset_time(1700000000) == "2023-11-14 22:13:20 UTC"


class TestDescribeFailure:
    """User-facing messages come from the error category."""

    def test_rate_limit(self):
        assert utils.describe_failure(RateLimitError()) == MSG_RATE_LIMITED

    def test_transient(self):
        message = utils.describe_failure(NetworkError("down"), subject="The mod registry")
        assert message.startswith("The mod registry is temporarily unavailable")

    def test_auth(self):
        error = HTTPStatusError(
            "denied", status_code=403, category=ErrorCategory.ENVIRONMENT
        )
        assert "403" in utils.describe_failure(error)

    def test_environment_hint(self):
        error = InstallError("Could not write Foo.dll", path="/mods/Foo.dll")
        assert (
            utils.describe_failure(error)
            == "Could not write Foo.dll. Close the running game and try again."
        )

    def test_package_transport_error(self):
        error = HTTPStatusError("404", status_code=404, category=ErrorCategory.PACKAGE)
        assert utils.describe_failure(error) == MSG_PACKAGE

    def test_package_error_includes_reason(self):
        message = utils.describe_failure(AssetNotFoundError("No release for Foo"))
        assert message == f"{MSG_PACKAGE} No release for Foo"


def test_user_agent_is_cached(mocker):
    mocker.patch.object(utils, "_USER_AGENT_CACHE", None)
    version_mock = mocker.patch(
        "modkeeper.utils.importlib.metadata.version", return_value="9.9.9"
    )

    assert utils.get_user_agent() == "modkeeper/9.9.9"
    assert utils.get_user_agent() == "modkeeper/9.9.9"
    assert version_mock.call_count == 1
