"""Tests for engine/runner.py module.

Tests command composition and execution with mocked subprocess.
"""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from imagepush.engine.runner import (
    ContainerEngine,
    compose_digest_command,
    compose_login_command,
    compose_push_command,
    parse_api_version,
)
from imagepush.errors import EngineError
from imagepush.types import EngineType

IMAGE_ID = "a" * 64


def _completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> MagicMock:
    result = MagicMock()
    result.returncode = returncode
    result.stdout = stdout
    result.stderr = stderr
    return result


class TestComposeCommands:
    """Tests for command composition."""

    def test_push_command(self):
        """Should place extra args before the image."""
        cmd = compose_push_command("docker", "host.io/app:1", ["--quiet"])
        assert cmd == ["docker", "push", "--quiet", "host.io/app:1"]

    def test_push_command_without_args(self):
        """Should compose a bare push."""
        assert compose_push_command("podman", "app:1") == ["podman", "push", "app:1"]

    def test_digest_command(self):
        """Should inspect the image id."""
        cmd = compose_digest_command("docker", "app:1")
        assert cmd[:3] == ["docker", "image", "inspect"]
        assert "{{.Id}}" in cmd
        assert cmd[-1] == "app:1"

    def test_login_command_reads_password_from_stdin(self):
        """Should never put the password on the command line."""
        cmd = compose_login_command("docker", "host.io", "alice")
        assert "--password-stdin" in cmd
        assert "alice" in cmd


class TestParseApiVersion:
    """Tests for parse_api_version function."""

    def test_major_minor(self):
        """Should parse major.minor."""
        assert parse_api_version("1.43") == (1, 43)

    def test_invalid(self):
        """Should raise ValueError for garbage."""
        with pytest.raises(ValueError):
            parse_api_version("abc")


class TestPush:
    """Tests for ContainerEngine.push."""

    def test_success(self):
        """Should run the push command."""
        engine = ContainerEngine(EngineType.DOCKER, timeout=30)
        with patch("subprocess.run", return_value=_completed()) as mock_run:
            engine.push("host.io/app:1", ["--quiet"])

        args, kwargs = mock_run.call_args
        assert args[0] == ["docker", "push", "--quiet", "host.io/app:1"]
        assert kwargs["timeout"] == 30

    def test_failure_raises(self):
        """Should raise EngineError with the exit code and stderr."""
        engine = ContainerEngine()
        with (
            patch(
                "subprocess.run",
                return_value=_completed(returncode=1, stderr="denied"),
            ),
            pytest.raises(EngineError) as exc_info,
        ):
            engine.push("host.io/app:1")

        assert exc_info.value.exit_code == 1
        assert "denied" in str(exc_info.value)

    def test_timeout_raises(self):
        """Should raise EngineError on timeout."""
        engine = ContainerEngine(timeout=5)
        with (
            patch(
                "subprocess.run",
                side_effect=subprocess.TimeoutExpired(cmd="docker", timeout=5),
            ),
            pytest.raises(EngineError) as exc_info,
        ):
            engine.push("app:1")

        assert exc_info.value.code == "engine_timeout"

    def test_missing_executable_raises(self):
        """Should raise EngineError when the engine is not installed."""
        engine = ContainerEngine(EngineType.PODMAN)
        with (
            patch("subprocess.run", side_effect=FileNotFoundError("podman")),
            pytest.raises(EngineError) as exc_info,
        ):
            engine.push("app:1")

        assert exc_info.value.code == "execution_error"


class TestDigest:
    """Tests for ContainerEngine.digest."""

    def test_returns_digest(self):
        """Should return the image id."""
        engine = ContainerEngine()
        with patch(
            "subprocess.run", return_value=_completed(stdout=f"sha256:{IMAGE_ID}\n")
        ):
            assert engine.digest("app:1") == f"sha256:{IMAGE_ID}"

    def test_podman_bare_image_id(self):
        """Should add the sha256 prefix to a bare podman image id."""
        engine = ContainerEngine(EngineType.PODMAN)
        with patch("subprocess.run", return_value=_completed(stdout=IMAGE_ID)) as run:
            assert engine.digest("app:1") == f"sha256:{IMAGE_ID}"

        assert run.call_args.args[0][0] == "podman"

    def test_non_digest_output_raises(self):
        """Should reject output that is not a sha256 image id."""
        engine = ContainerEngine()
        with (
            patch("subprocess.run", return_value=_completed(stdout="sha256:abc123")),
            pytest.raises(EngineError) as exc_info,
        ):
            engine.digest("app:1")

        assert exc_info.value.code == "invalid_digest"

    def test_empty_output_raises(self):
        """Should reject empty output."""
        engine = ContainerEngine()
        with (
            patch("subprocess.run", return_value=_completed(stdout="")),
            pytest.raises(EngineError) as exc_info,
        ):
            engine.digest("app:1")

        assert exc_info.value.code == "invalid_digest"


class TestLogin:
    """Tests for ContainerEngine.login."""

    def test_passes_password_on_stdin(self):
        """Should send the password as input."""
        engine = ContainerEngine()
        with patch("subprocess.run", return_value=_completed()) as mock_run:
            engine.login("host.io", "alice", "s3cret")

        args, kwargs = mock_run.call_args
        assert "s3cret" not in args[0]
        assert kwargs["input"] == "s3cret"


class TestValidateApiVersion:
    """Tests for ContainerEngine.validate_api_version."""

    def test_supported_version(self):
        """Should accept a recent API version."""
        engine = ContainerEngine(EngineType.DOCKER)
        with patch("subprocess.run", return_value=_completed(stdout="1.43")):
            engine.validate_api_version()

    def test_old_version_raises(self):
        """Should reject an API version below the minimum."""
        engine = ContainerEngine(EngineType.DOCKER)
        with (
            patch("subprocess.run", return_value=_completed(stdout="1.30")),
            pytest.raises(EngineError) as exc_info,
        ):
            engine.validate_api_version()

        assert exc_info.value.code == "unsupported_api_version"

    def test_podman_is_not_checked(self):
        """Should skip the check for podman."""
        engine = ContainerEngine(EngineType.PODMAN)
        with patch("subprocess.run") as mock_run:
            engine.validate_api_version()

        mock_run.assert_not_called()
