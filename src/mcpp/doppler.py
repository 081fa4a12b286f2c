# ABOUTME: Secrets-manager env source backed by the Doppler CLI
# ABOUTME: Any CLI failure degrades to "no data from this source"
import json
import logging
import shutil
import subprocess
from collections.abc import Sequence

logger = logging.getLogger(__name__)

# ABOUTME: Upper bound for a single doppler CLI call
DOPPLER_TIMEOUT = 15  # seconds


class DopplerSource:
    """Env source that reads secrets through `doppler secrets download`.

    ABOUTME: project/config default to whatever the CLI has configured
    ABOUTME: All secrets are fetched in one call and filtered to the requested keys
    """

    def __init__(
        self,
        project: str | None = None,
        config: str | None = None,
        executable: str = "doppler",
        timeout: int = DOPPLER_TIMEOUT,
    ) -> None:
        self._project = project
        self._config = config
        self._executable = executable
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "doppler"

    def is_available(self) -> bool:
        """True if the doppler executable is on PATH."""
        return shutil.which(self._executable) is not None

    def build_command(self) -> list[str]:
        cmd = [self._executable, "secrets", "download", "--no-file", "--format", "json"]
        if self._project:
            cmd += ["--project", self._project]
        if self._config:
            cmd += ["--config", self._config]
        return cmd

    def try_resolve(self, keys: Sequence[str]) -> dict[str, str]:
        """Fetch the requested keys from Doppler.

        ABOUTME: Returns {} if the CLI is missing, unauthenticated, slow or
        ABOUTME: returns anything other than a JSON object
        """
        if not keys:
            return {}

        if not self.is_available():
            logger.debug("Doppler CLI not found, skipping secrets lookup")
            return {}

        try:
            completed = subprocess.run(
                self.build_command(),
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=True,
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"Doppler CLI timed out after {self._timeout} seconds")
            return {}
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            logger.warning(f"Doppler CLI failed (exit {e.returncode}): {stderr[:200]}")
            return {}
        except OSError as e:
            logger.warning(f"Could not run Doppler CLI: {e}")
            return {}

        try:
            secrets = json.loads(completed.stdout)
        except json.JSONDecodeError as e:
            logger.warning(f"Doppler CLI returned invalid JSON: {e}")
            return {}

        if not isinstance(secrets, dict):
            logger.warning("Doppler CLI returned unexpected output, ignoring it")
            return {}

        return {
            key: str(secrets[key])
            for key in keys
            if key in secrets and secrets[key] not in (None, "")
        }
