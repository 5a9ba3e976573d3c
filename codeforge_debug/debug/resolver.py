"""
Fuzzer Executable Resolver

Finds the container-side path of a built fuzz target by running a
lookup inside the project image.
"""

import shlex
import subprocess
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from loguru import logger

from ..core.exceptions import ResolutionError


@dataclass
class LookupResult:
    returncode: int
    stdout: str
    stderr: str = ""


# (workspace_path, fuzzer_name) -> LookupResult
ExecutableLookup = Callable[[str, str], LookupResult]


def candidate_names(fuzzer_name: str) -> List[str]:
    """Layouts the fuzz build may leave a target in, relative to the fuzzing dir."""
    names = [fuzzer_name, f"{fuzzer_name}-fuzz", f"codeforge-{fuzzer_name}-fuzz"]
    return names + [f"{fuzzer_name}/{n}" for n in names]


class DockerExecutableLookup:
    """
    Runs the executable lookup inside the project image.

    The query probes the known build layouts under the fuzzing directory
    and prints the resolved path of the first executable it finds.
    """

    def __init__(
        self,
        image: str,
        docker_command: str = "docker",
        fuzzing_dir: str = ".codeforge/fuzzing",
        timeout: float = 60.0,
    ):
        self.image = image
        self.docker_command = docker_command
        self.fuzzing_dir = fuzzing_dir
        self.timeout = timeout

    def build_query(self, workspace_path: str, fuzzer_name: str) -> str:
        fuzz_dir = shlex.quote(f"{workspace_path.rstrip('/')}/{self.fuzzing_dir}")
        candidates = " ".join(shlex.quote(c) for c in candidate_names(fuzzer_name))
        return (
            f"cd {fuzz_dir} 2>/dev/null || "
            f"{{ echo \"Fuzzing directory not found: \"{fuzz_dir} >&2; exit 1; }}; "
            f"for c in {candidates}; do "
            f"if [ -f \"$c\" ] && [ -x \"$c\" ]; then realpath \"$c\"; exit 0; fi; "
            f"done; "
            f"echo \"Fuzzer executable not found for: \"{shlex.quote(fuzzer_name)} >&2; exit 1"
        )

    def __call__(self, workspace_path: str, fuzzer_name: str) -> LookupResult:
        cmd = [
            self.docker_command, "run", "--rm",
            "-v", f"{workspace_path}:{workspace_path}",
            "-w", workspace_path,
            self.image,
            "/bin/bash", "-c", self.build_query(workspace_path, fuzzer_name),
        ]
        logger.debug(f"[Resolver] Lookup: {' '.join(cmd[:8])}...")

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            return LookupResult(returncode=127, stdout="", stderr=str(e))
        except OSError as e:
            # e.g. docker_command exists but is not executable
            return LookupResult(returncode=126, stdout="", stderr=str(e))
        except subprocess.TimeoutExpired:
            return LookupResult(
                returncode=124,
                stdout="",
                stderr=f"Executable lookup timed out after {self.timeout}s",
            )

        return LookupResult(result.returncode, result.stdout, result.stderr)


class FuzzerExecutableResolver:
    """
    Resolves fuzz target names to container paths.

    Read-only; results are cached per instance, and the launcher creates
    one resolver per session.
    """

    def __init__(self, lookup: ExecutableLookup):
        self.lookup = lookup
        self._cache: Dict[str, str] = {}

    def resolve(self, workspace_path: str, fuzzer_name: str) -> str:
        """
        Resolve the in-container executable path for a fuzzer.

        Raises:
            ResolutionError: lookup exited non-zero or printed nothing
        """
        if not fuzzer_name:
            raise ResolutionError("Fuzzer name is required")

        cached = self._cache.get(fuzzer_name)
        if cached:
            return cached

        result = self.lookup(workspace_path, fuzzer_name)
        path = self._parse(result.stdout)

        if result.returncode != 0 or not path:
            diagnostic = (result.stderr or "").strip() or (result.stdout or "").strip()
            raise ResolutionError(
                f"Could not resolve executable for fuzzer '{fuzzer_name}'",
                diagnostic=diagnostic or None,
                returncode=result.returncode,
            )

        logger.info(f"[Resolver] {fuzzer_name} -> {path}")
        self._cache[fuzzer_name] = path
        return path

    @staticmethod
    def _parse(stdout: Optional[str]) -> Optional[str]:
        """Last non-empty line; earlier lines are progress output."""
        lines = [line.strip() for line in (stdout or "").splitlines() if line.strip()]
        return lines[-1] if lines else None
