"""
CodeForge Debug - Main Entry Point

Called as: python3 -m codeforge_debug.main <command> <args>

Commands:
1. debug-crash:   Replay a crash under gdbserver and wire up the debugger
2. list-configs:  Show remote-attach launch configurations
3. remove-config: Delete a launch configuration by name
4. find-port:     Print a free host port
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Optional

from .core import (
    Config,
    CodeForgeError,
    DebugCrashRequest,
    setup_console_only,
    setup_logging,
)
from .debug import DebugConfigStore, DebugSessionLauncher, find_available_port
from .editor import ConsoleEditorSurface
from .runtime import DockerClient


# =============================================================================
# Terminal Output
# =============================================================================

class Colors:
    RED = "\033[0;31m"
    GREEN = "\033[0;32m"
    YELLOW = "\033[1;33m"
    CYAN = "\033[0;36m"
    NC = "\033[0m"


def print_info(msg: str):
    print(f"{Colors.GREEN}[INFO]{Colors.NC} {msg}")


def print_warn(msg: str):
    print(f"{Colors.YELLOW}[WARN]{Colors.NC} {msg}")


def print_error(msg: str):
    print(f"{Colors.RED}[ERROR]{Colors.NC} {msg}")


def print_step(msg: str):
    print(f"{Colors.CYAN}[STEP]{Colors.NC} {msg}")


# =============================================================================
# Argument Parsing
# =============================================================================

def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description="CodeForge Debug - containerized remote-debug sessions for fuzzer crashes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", type=str, help="JSON configuration file path")
    parser.add_argument("--workspace", type=str, help="Workspace directory (default: cwd)")
    parser.add_argument("--log-level", type=str, default=None, help="Console log level")

    sub = parser.add_subparsers(dest="command", required=True)

    debug = sub.add_parser("debug-crash", help="Debug a crash in a gdbserver container")
    debug.add_argument("--fuzzer", required=True, help="Fuzzer name")
    debug.add_argument("--crash-id", required=True, help="Crash identifier")
    debug.add_argument("--file", required=True, help="Crash file path")
    debug.add_argument("--delay", type=float, help="Seconds to wait before attaching")
    debug.add_argument(
        "--backend",
        choices=["path_based_launch", "remote_attach", "remote_attach_fallback"],
        help="Force a debugger backend",
    )
    debug.add_argument("--image", type=str, help="Container image (default: derived from workspace)")

    sub.add_parser("list-configs", help="List remote-attach launch configurations")

    remove = sub.add_parser("remove-config", help="Remove a launch configuration")
    remove.add_argument("name", help="Configuration name")

    sub.add_parser("find-port", help="Print a free host port")

    return parser.parse_args(argv)


def create_config_from_args(args: argparse.Namespace) -> Config:
    """Create Config from parsed arguments"""
    config = Config.from_env()

    if args.config:
        config = config.merge(Config.from_json(args.config))

    if args.workspace:
        config.workspace = args.workspace
    if not config.workspace:
        config.workspace = os.getcwd()
    config.workspace = str(Path(config.workspace).resolve())

    if args.log_level:
        config.log_level = args.log_level

    if getattr(args, "delay", None) is not None:
        config.attach_delay = args.delay
    if getattr(args, "backend", None):
        config.backend = args.backend
    if getattr(args, "image", None):
        config.image_name = args.image

    return config


# =============================================================================
# Commands
# =============================================================================

async def run_debug_crash(config: Config, args: argparse.Namespace, runtime=None, surface=None) -> int:
    """Start a debug session and keep running until its terminal exits."""
    runtime = runtime or DockerClient(config.docker_command)
    surface = surface or ConsoleEditorSurface(config.installed_extensions)
    launcher = DebugSessionLauncher(config, runtime, surface)

    request = DebugCrashRequest(
        crash_id=args.crash_id,
        fuzzer_name=args.fuzzer,
        crash_file=str(Path(args.file).resolve()),
    )

    print_step(f"Debugging crash {request.crash_id} from {request.fuzzer_name}...")
    result = await launcher.debug_crash(request)

    if not result.success:
        print_error(result.message)
        return 1

    session = result.session
    print_info(result.message)
    for warning in session.warnings:
        print_warn(warning)
    if session.configuration_name:
        print_info(f"Launch configuration: {session.configuration_name}")
    print_info(f"gdbserver: {session.manual_connect}")

    if session.guarded:
        await launcher.wait_closed(session)
        await launcher.drain()
        print_info(f"Container {session.container_name} cleaned up")
        return 0

    # No close observer; wait for the terminal process and clean up here
    print_warn(f"Container {session.container_name} is not guarded; it is removed when its terminal exits")
    await launcher.drain()
    await wait_for_terminal(surface, session)
    if await runtime.is_running(session.container_name):
        result = await runtime.kill(session.container_name, force=True)
        if not result.success:
            print_error(f"Could not remove container {session.container_name}: {result.output}")
            return 1
    print_info(f"Container {session.container_name} cleaned up")
    return 0


async def wait_for_terminal(surface, session) -> None:
    """Block until the console terminal that runs the session's container exits."""
    for terminal in surface.terminals:
        process = getattr(terminal, "process", None)
        if process is not None and session.container_name in terminal.options.shell_args:
            await asyncio.to_thread(process.wait)


def run_list_configs(config: Config) -> int:
    store = DebugConfigStore(config.workspace, config.launch_config_path)
    configs = store.list_remote_attach()
    if not configs:
        print_info(f"No remote-attach configurations in {store.path}")
        return 0
    for entry in configs:
        print(f"{entry.get('name')}\t{entry.get('target', '')}\t{entry.get('executable', '')}")
    return 0


def run_remove_config(config: Config, name: str) -> int:
    store = DebugConfigStore(config.workspace, config.launch_config_path)
    try:
        store.remove(name)
    except CodeForgeError as e:
        print_error(str(e))
        return 1
    print_info(f"Removed '{name}' from {store.path}")
    return 0


def run_find_port() -> int:
    try:
        print(find_available_port())
    except CodeForgeError as e:
        print_error(str(e))
        return 1
    return 0


# =============================================================================
# Main Entry Point
# =============================================================================

def main(argv: Optional[list] = None) -> int:
    """Main entry point - routes to the requested command"""
    args = parse_args(argv)
    config = create_config_from_args(args)

    if args.command == "debug-crash":
        log_dir = setup_logging(
            Path(config.workspace).name or "workspace",
            f"{args.fuzzer}_{args.crash_id}",
            base_dir=Path(config.log_dir) if config.log_dir else None,
            console_level=config.log_level,
            metadata={
                "Fuzzer": args.fuzzer,
                "Crash ID": args.crash_id,
                "Crash File": args.file,
            },
        )
        print_info(f"Logs: {log_dir}")
        try:
            return asyncio.run(run_debug_crash(config, args))
        except KeyboardInterrupt:
            print_warn("Interrupted; the container is removed when its terminal exits (--rm)")
            return 130

    setup_console_only(config.log_level)

    if args.command == "list-configs":
        return run_list_configs(config)
    if args.command == "remove-config":
        return run_remove_config(config, args.name)
    if args.command == "find-port":
        return run_find_port()
    return 2


if __name__ == "__main__":
    sys.exit(main())
