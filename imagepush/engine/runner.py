"""Container engine runner.

This module handles:
- Composing docker/podman command lines
- Executing them with subprocess and enforcing timeouts
- Pushing images, reading image digests and logging in to registries
- Checking the docker client API version

Every failure is raised as EngineError. Nothing is retried here; transient
engine failures are the engine's own responsibility.
"""

from __future__ import annotations

import logging
import re
import shlex
import subprocess
from collections.abc import Sequence

from imagepush.errors import EngineError
from imagepush.types import EngineType

logger = logging.getLogger(__name__)

# Oldest docker client API that reports pushed digests reliably
MIN_DOCKER_API_VERSION = (1, 31)

DIGEST_PREFIX = "sha256:"

# podman prints the image id without the algorithm prefix
_IMAGE_ID_RE = re.compile(r"^(?:sha256:)?([0-9a-f]{64})$")


def compose_push_command(
    executable: str,
    image: str,
    extra_args: Sequence[str] | None = None,
) -> list[str]:
    """Compose the ``push`` command.

    Args:
        executable: Engine executable (``docker`` or ``podman``).
        image: Image reference to push.
        extra_args: Additional arguments placed before the image.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    cmd = [executable, "push"]
    if extra_args:
        cmd.extend(extra_args)
    cmd.append(image)
    return cmd


def compose_digest_command(executable: str, image: str) -> list[str]:
    """Compose the command printing an image's content digest."""
    return [executable, "image", "inspect", "--format", "{{.Id}}", image]


def compose_login_command(executable: str, registry: str, username: str) -> list[str]:
    """Compose a login command reading the password from stdin."""
    return [executable, "login", registry, "--username", username, "--password-stdin"]


def parse_api_version(value: str) -> tuple[int, int]:
    """Parse an API version string such as ``1.43``.

    Raises:
        ValueError: If the string is not a ``major.minor`` version.
    """
    major, _, minor = value.strip().partition(".")
    return int(major), int(minor or 0)


class ContainerEngine:
    """Runs container engine commands.

    Attributes:
        engine_type: Which engine is driven.
        executable: Executable name or path.
        timeout: Per-command timeout in seconds (None = no timeout).
    """

    def __init__(
        self,
        engine_type: EngineType = EngineType.DOCKER,
        timeout: int | None = None,
        executable: str | None = None,
    ) -> None:
        self.engine_type = engine_type
        self.executable = executable or engine_type.value
        self.timeout = timeout

    def _run(
        self,
        cmd: list[str],
        input_text: str | None = None,
    ) -> str:
        """Run a command and return its stripped stdout.

        Raises:
            EngineError: If the command cannot start, times out or fails.
        """
        cmd_str = shlex.join(cmd)
        logger.debug("Executing: %s", cmd_str)

        try:
            result = subprocess.run(
                cmd,
                input=input_text,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise EngineError(
                f"{cmd_str} timed out after {self.timeout} seconds",
                exit_code=-1,
                code="engine_timeout",
            ) from e
        except OSError as e:
            raise EngineError(
                f"Failed to execute {self.executable}: {e}",
                code="execution_error",
            ) from e

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            message = f"{cmd_str} failed with exit code {result.returncode}"
            if stderr:
                message = f"{message}: {stderr}"
            logger.error(message)
            raise EngineError(message, exit_code=result.returncode)

        return (result.stdout or "").strip()

    def push(self, image: str, extra_args: Sequence[str] | None = None) -> None:
        """Push an image.

        Raises:
            EngineError: If the push fails.
        """
        cmd = compose_push_command(self.executable, image, extra_args)
        logger.info("Pushing %s", image)
        output = self._run(cmd)
        if output:
            logger.debug("%s push output:\n%s", self.executable, output)

    def digest(self, image: str) -> str:
        """Return the content digest (``sha256:<hex>``) of a local image.

        Raises:
            EngineError: If the digest cannot be read.
        """
        output = self._run(compose_digest_command(self.executable, image))
        image_id = output.splitlines()[0].strip() if output else ""
        match = _IMAGE_ID_RE.match(image_id)
        if match is None:
            raise EngineError(
                f"Unexpected digest for {image}: {image_id!r}",
                code="invalid_digest",
            )
        digest = f"{DIGEST_PREFIX}{match.group(1)}"
        logger.debug("Image %s has digest %s", image, digest)
        return digest

    def login(self, registry: str, username: str, password: str) -> None:
        """Log in to a registry, passing the password on stdin.

        Raises:
            EngineError: If login fails.
        """
        cmd = compose_login_command(self.executable, registry, username)
        logger.info("Logging in to %s as %s", registry, username)
        self._run(cmd, input_text=password)

    def validate_api_version(self) -> None:
        """Check the docker client API version.

        Podman is not checked.

        Raises:
            EngineError: If the version is too old or cannot be read.
        """
        if self.engine_type is not EngineType.DOCKER:
            return

        output = self._run(
            [self.executable, "version", "--format", "{{.Client.APIVersion}}"]
        )
        try:
            version = parse_api_version(output)
        except ValueError as e:
            raise EngineError(
                f"Could not parse docker API version: {output!r}",
                code="unsupported_api_version",
            ) from e

        if version < MIN_DOCKER_API_VERSION:
            minimum = ".".join(str(p) for p in MIN_DOCKER_API_VERSION)
            raise EngineError(
                f"Docker client API version {output} is not supported, "
                f"minimum is {minimum}",
                code="unsupported_api_version",
            )


__all__ = [
    "DIGEST_PREFIX",
    "MIN_DOCKER_API_VERSION",
    "ContainerEngine",
    "compose_digest_command",
    "compose_login_command",
    "compose_push_command",
    "parse_api_version",
]
