"""
Docker Runtime Client

Builds `docker run` invocations for debug containers and controls
containers that were started from editor terminals.
"""

import asyncio
import re
import threading
import time
from dataclasses import dataclass
from typing import List, Optional

from loguru import logger

from . import inventory


@dataclass
class KillResult:
    """Outcome of a kill request. `already_gone` is not an error."""

    container_name: str
    success: bool
    already_gone: bool = False
    output: str = ""


@dataclass
class CommandResult:
    returncode: int
    stdout: str
    stderr: str


# Session container names handed out and not yet killed
_issued_names: set = set()
_issued_names_lock = threading.Lock()


def generate_container_name(workspace_path: str) -> str:
    """
    Derive a Docker-safe name from a workspace path.

    Also used as the project image name.
    """
    if not workspace_path or not isinstance(workspace_path, str):
        raise ValueError("Invalid workspace folder path provided")

    name = workspace_path[1:] if workspace_path.startswith("/") else workspace_path
    name = re.sub(r"[/\\:]", "_", name)
    name = re.sub(r"[^a-z0-9._-]", "_", name, flags=re.IGNORECASE)
    name = name.lower()
    name = re.sub(r"^[.-]+", "", name)

    if not name:
        raise ValueError("The computed workspace folder is empty")

    # Docker caps names at 128 characters; leave room for the session suffix
    return name[:100]


class DockerClient:
    """
    Container runtime client backed by the docker CLI.

    Containers for debug sessions are started by the editor terminal
    (the terminal process *is* `docker run`), so this client only builds
    the arguments and handles kill/track/inspect afterwards.
    """

    TRACK_RETRIES = 10
    TRACK_BASE_DELAY = 0.5  # seconds, grows by 1.5x per attempt

    def __init__(self, docker_command: str = "docker"):
        self.docker_command = docker_command

    # ------------------------------------------------------------------
    # Names and arguments
    # ------------------------------------------------------------------

    def generate_container_name(self, workspace_path: str) -> str:
        return generate_container_name(workspace_path)

    def session_container_name(self, workspace_path: str, kind: str) -> str:
        """Unique name: <workspace>_<kind>_<epoch-ms>, suffixed on collision."""
        base = f"{generate_container_name(workspace_path)}_{kind}_{int(time.time() * 1000)}"
        with _issued_names_lock:
            name = base
            counter = 1
            while name in _issued_names:
                name = f"{base}_{counter}"
                counter += 1
            _issued_names.add(name)
        return name

    def build_run_args(
        self,
        workspace_path: str,
        image: str,
        container_name: str,
        command: Optional[str] = None,
        publish: Optional[List[str]] = None,
        mount_workspace: bool = True,
        additional_args: Optional[List[str]] = None,
        shell: str = "/bin/bash",
        interactive: bool = True,
        tty: bool = True,
        remove_after_run: bool = True,
    ) -> List[str]:
        """
        Build arguments for `docker run` (without the docker executable).

        Args:
            workspace_path: Host workspace, mounted at the same path
            image: Image to run
            container_name: Name given to the container
            command: Shell command run with `<shell> -c`; plain shell if None
            publish: Port mappings, e.g. ["54321:2000"]
            mount_workspace: Bind-mount the workspace and use it as workdir
            additional_args: Extra user-configured `docker run` arguments
            shell: Shell inside the container
            interactive: Pass -i
            tty: Pass -t
            remove_after_run: Pass --rm

        Returns:
            List of arguments starting with "run"
        """
        args = ["run", "--name", container_name]

        if interactive:
            args.append("-i")
        if tty:
            args.append("-t")
        if remove_after_run:
            args.append("--rm")

        for mapping in publish or []:
            args.extend(["-p", mapping])

        if mount_workspace:
            args.extend(["-v", f"{workspace_path}:{workspace_path}"])
            args.extend(["-w", workspace_path])

        args.extend(additional_args or [])
        args.append(image)

        if command:
            args.extend([shell, "-c", command])
        elif shell:
            args.append(shell)

        return args

    # ------------------------------------------------------------------
    # Process helpers
    # ------------------------------------------------------------------

    async def _run(self, *args: str) -> CommandResult:
        process = await asyncio.create_subprocess_exec(
            self.docker_command,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()
        return CommandResult(
            returncode=process.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )

    # ------------------------------------------------------------------
    # Container control
    # ------------------------------------------------------------------

    async def kill(self, container_name: str, force: bool = True) -> KillResult:
        """
        Kill a container.

        Args:
            container_name: Container name or ID
            force: SIGKILL immediately (`docker kill`); otherwise `docker stop`

        Returns:
            KillResult; a container that no longer exists is reported as
            already_gone rather than as a failure
        """
        logger.info(f"[Docker] {'Killing' if force else 'Stopping'} container: {container_name}")

        try:
            if force:
                result = await self._run("kill", container_name)
            else:
                result = await self._run("stop", container_name)
        finally:
            inventory.untrack_container(container_name)
            with _issued_names_lock:
                _issued_names.discard(container_name)

        if result.returncode == 0:
            return KillResult(container_name, success=True, output=result.stdout.strip())

        output = result.stderr.strip() or result.stdout.strip()
        if "No such container" in output or "is not running" in output:
            return KillResult(container_name, success=True, already_gone=True, output=output)

        return KillResult(container_name, success=False, output=output)

    async def is_running(self, container_name: str) -> bool:
        result = await self._run(
            "ps", "--filter", f"name={container_name}", "--format", "{{.ID}}"
        )
        return result.returncode == 0 and bool(result.stdout.strip())

    async def image_exists(self, image: str) -> bool:
        result = await self._run("image", "inspect", image)
        return result.returncode == 0

    async def track(
        self,
        container_name: str,
        workspace_path: str,
        image: str,
        kind: str = "terminal",
    ) -> bool:
        """
        Track a container launched through a terminal.

        The container appears asynchronously, so poll `docker ps` with
        exponential backoff before giving up.

        Returns:
            True if the container was found and tracked
        """
        if not container_name:
            logger.error("[Docker] Cannot track container without name")
            return False

        for attempt in range(self.TRACK_RETRIES):
            if attempt > 0:
                delay = self.TRACK_BASE_DELAY * (1.5 ** attempt)
                logger.debug(
                    f"[Docker] Retry {attempt}/{self.TRACK_RETRIES}: waiting {delay:.2f}s "
                    f"for container {container_name}"
                )
                await asyncio.sleep(delay)

            result = await self._run(
                "ps", "--filter", f"name={container_name}", "--format", "{{.ID}}"
            )
            container_id = result.stdout.strip()
            if result.returncode == 0 and container_id:
                inventory.track_container(
                    container_name,
                    container_id=container_id,
                    image=image,
                    workspace_path=workspace_path,
                    kind=kind,
                )
                logger.info(
                    f"[Docker] Tracked container {container_name} ({container_id}) "
                    f"after {attempt + 1} attempt(s)"
                )
                return True

        logger.warning(
            f"[Docker] Container {container_name} not found after {self.TRACK_RETRIES} attempts"
        )
        return False
