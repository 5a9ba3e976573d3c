"""
CodeForge Debug Configuration

Handles configuration from environment variables, JSON files, and CLI arguments.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


VALID_BACKENDS = ["path_based_launch", "remote_attach", "remote_attach_fallback"]


@dataclass
class Config:
    """CodeForge debug configuration"""

    # Workspace
    workspace: Optional[str] = None

    # Container runtime
    docker_command: str = "docker"
    default_shell: str = "/bin/bash"
    mount_workspace: bool = True
    additional_docker_run_args: List[str] = field(default_factory=list)
    image_name: Optional[str] = None  # Derived from workspace when unset

    # Debug stub
    container_port: int = 2000  # Only visible inside the container namespace
    debug_host: str = ""  # Empty host renders as ":<port>"
    attach_delay: float = 2.0  # Seconds to let gdbserver bind before attaching

    # Persisted launch configurations
    launch_config_path: str = ".vscode/launch.json"
    fuzzing_dir: str = ".codeforge/fuzzing"

    # Debugger backend
    installed_extensions: List[str] = field(default_factory=list)
    backend: Optional[str] = None  # Forces a backend instead of detecting it

    # Logging
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    @classmethod
    def from_json(cls, json_path: str) -> "Config":
        """Load configuration from JSON file"""
        with open(json_path, "r") as f:
            data = json.load(f)

        return cls(
            workspace=data.get("workspace"),
            docker_command=data.get("docker_command", "docker"),
            default_shell=data.get("default_shell", "/bin/bash"),
            mount_workspace=data.get("mount_workspace", True),
            additional_docker_run_args=data.get("additional_docker_run_args", []),
            image_name=data.get("image_name"),
            container_port=data.get("container_port", 2000),
            debug_host=data.get("debug_host", ""),
            attach_delay=data.get("attach_delay", 2.0),
            launch_config_path=data.get("launch_config_path", ".vscode/launch.json"),
            fuzzing_dir=data.get("fuzzing_dir", ".codeforge/fuzzing"),
            installed_extensions=data.get("installed_extensions", []),
            backend=data.get("backend"),
            log_level=data.get("log_level", "INFO"),
            log_dir=data.get("log_dir"),
        )

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables"""
        extensions = os.environ.get("CODEFORGE_EXTENSIONS", "")
        extra_args = os.environ.get("CODEFORGE_DOCKER_ARGS", "")

        return cls(
            workspace=os.environ.get("CODEFORGE_WORKSPACE"),
            docker_command=os.environ.get("CODEFORGE_DOCKER_COMMAND", "docker"),
            default_shell=os.environ.get("CODEFORGE_SHELL", "/bin/bash"),
            mount_workspace=os.environ.get("CODEFORGE_MOUNT_WORKSPACE", "true").lower() != "false",
            additional_docker_run_args=extra_args.split() if extra_args else [],
            image_name=os.environ.get("CODEFORGE_IMAGE"),
            container_port=int(os.environ.get("CODEFORGE_CONTAINER_PORT", "2000")),
            debug_host=os.environ.get("CODEFORGE_DEBUG_HOST", ""),
            attach_delay=float(os.environ.get("CODEFORGE_ATTACH_DELAY", "2.0")),
            installed_extensions=[e for e in extensions.split(",") if e],
            backend=os.environ.get("CODEFORGE_BACKEND"),
            log_level=os.environ.get("CODEFORGE_LOG_LEVEL", "INFO"),
            log_dir=os.environ.get("CODEFORGE_LOG_DIR"),
        )

    def merge(self, other: "Config") -> "Config":
        """Merge another config into this one (other takes precedence for non-default values)"""
        defaults = Config()
        for field_name in self.__dataclass_fields__:
            other_val = getattr(other, field_name)
            if other_val is not None and other_val != getattr(defaults, field_name):
                setattr(self, field_name, other_val)
        return self

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors"""
        errors = []

        if not self.workspace:
            errors.append("Must provide workspace")
        elif not Path(self.workspace).is_absolute():
            errors.append(f"Workspace must be an absolute path: {self.workspace}")

        if not (0 < self.container_port < 65536):
            errors.append(f"Invalid container_port: {self.container_port}")

        if self.attach_delay < 0:
            errors.append(f"attach_delay must not be negative: {self.attach_delay}")

        if self.backend and self.backend not in VALID_BACKENDS:
            errors.append(f"Invalid backend: {self.backend}")

        if not self.docker_command:
            errors.append("docker_command must not be empty")

        return errors

    def to_dict(self) -> dict:
        """Convert to dictionary"""
        return {
            "workspace": self.workspace,
            "docker_command": self.docker_command,
            "default_shell": self.default_shell,
            "mount_workspace": self.mount_workspace,
            "additional_docker_run_args": self.additional_docker_run_args,
            "image_name": self.image_name,
            "container_port": self.container_port,
            "debug_host": self.debug_host,
            "attach_delay": self.attach_delay,
            "launch_config_path": self.launch_config_path,
            "fuzzing_dir": self.fuzzing_dir,
            "installed_extensions": self.installed_extensions,
            "backend": self.backend,
            "log_level": self.log_level,
            "log_dir": self.log_dir,
        }
