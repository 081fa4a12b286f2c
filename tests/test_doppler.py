# ABOUTME: Tests for the Doppler env source
# ABOUTME: The CLI is mocked; every failure mode degrades to an empty result
import json
import subprocess
from unittest.mock import MagicMock, patch

from mcpp.doppler import DopplerSource


def _completed(stdout):
    result = MagicMock()
    result.stdout = stdout
    return result


class TestDopplerSource:
    """Tests for DopplerSource.try_resolve()."""

    def test_build_command(self):
        source = DopplerSource(project="web", config="dev")
        assert source.build_command() == [
            "doppler", "secrets", "download", "--no-file", "--format", "json",
            "--project", "web", "--config", "dev",
        ]

    def test_cli_missing(self):
        with patch("mcpp.doppler.shutil.which", return_value=None), \
             patch("mcpp.doppler.subprocess.run") as mock_run:
            assert DopplerSource().try_resolve(["GITHUB_TOKEN"]) == {}
        mock_run.assert_not_called()

    def test_no_keys_requested(self):
        with patch("mcpp.doppler.subprocess.run") as mock_run:
            assert DopplerSource().try_resolve([]) == {}
        mock_run.assert_not_called()

    def test_returns_only_requested_keys(self):
        secrets = {"GITHUB_TOKEN": "ghp", "OTHER": "x", "EMPTY": ""}
        with patch("mcpp.doppler.shutil.which", return_value="/usr/bin/doppler"), \
             patch("mcpp.doppler.subprocess.run", return_value=_completed(json.dumps(secrets))):
            result = DopplerSource().try_resolve(["GITHUB_TOKEN", "EMPTY", "MISSING"])
        assert result == {"GITHUB_TOKEN": "ghp"}

    def test_cli_error(self):
        error = subprocess.CalledProcessError(1, ["doppler"], stderr="Unauthorized")
        with patch("mcpp.doppler.shutil.which", return_value="/usr/bin/doppler"), \
             patch("mcpp.doppler.subprocess.run", side_effect=error):
            assert DopplerSource().try_resolve(["GITHUB_TOKEN"]) == {}

    def test_cli_timeout(self):
        error = subprocess.TimeoutExpired(["doppler"], 15)
        with patch("mcpp.doppler.shutil.which", return_value="/usr/bin/doppler"), \
             patch("mcpp.doppler.subprocess.run", side_effect=error):
            assert DopplerSource().try_resolve(["GITHUB_TOKEN"]) == {}

    def test_invalid_json(self):
        with patch("mcpp.doppler.shutil.which", return_value="/usr/bin/doppler"), \
             patch("mcpp.doppler.subprocess.run", return_value=_completed("not json")):
            assert DopplerSource().try_resolve(["GITHUB_TOKEN"]) == {}

    def test_non_object_json(self):
        with patch("mcpp.doppler.shutil.which", return_value="/usr/bin/doppler"), \
             patch("mcpp.doppler.subprocess.run", return_value=_completed("[1, 2]")):
            assert DopplerSource().try_resolve(["GITHUB_TOKEN"]) == {}
