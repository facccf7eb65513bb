"""
Command-line interface for backingfiles.

This module handles argument parsing and orchestrates the provisioning process.
"""
import argparse
import logging
import sys
from typing import Callable, List, Optional

from backingfiles.config import build_config
from backingfiles.core.exceptions import BackingFilesError, DeletionAborted, UnsupportedSizeError
from backingfiles.core.provision import provision_backing_files
from backingfiles.core.size import dehumanize
from backingfiles.core.tools import CommandDiskTools, CommandSystemTools
from backingfiles.utils.command import CommandRunner, SimulationMode, SIM_DEFAULT_FREE_KB
from backingfiles.utils.format import TermColors, colorize, kib_to_human_readable
from backingfiles.utils.logging import setup_logging
from backingfiles.utils.types import ConfirmationPolicy, ProvisionResults
from backingfiles.utils.validation import check_prerequisites

logger = logging.getLogger('backingfiles')


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        argv: Arguments to parse, defaults to sys.argv

    Returns:
        Namespace containing parsed arguments
    """
    parser = argparse.ArgumentParser(
        prog="create-backingfiles",
        description="Create, partition and format the backing files of USB mass-storage drives"
    )

    size_help_text = "(absolute size with binary units like 32G, 512MB, or %% of free space)"

    parser.add_argument("cam_size", help=f"Size of the camera drive {size_help_text}")
    parser.add_argument("music_size", help=f"Size of the music drive {size_help_text}")
    parser.add_argument("boombox_size", help=f"Size of the boombox drive {size_help_text}")
    parser.add_argument("mountpoint", help="Mountpoint of the backing files device (e.g., /backingfiles)")
    parser.add_argument("use_exfat", help="Format drives ExFAT instead of FAT32 (true/false)")

    parser.add_argument(
        "--mount-root",
        help="Directory holding the drive mountpoints (default: /mnt)"
    )

    parser.add_argument(
        "--reserve",
        help="Free space to keep on the backing files device (e.g., 10M, 10G; default: 10M)"
    )

    confirm_group = parser.add_mutually_exclusive_group()
    confirm_group.add_argument(
        "-y", "--yes",
        action="store_true",
        help="Delete existing backing files and snapshots without asking"
    )
    confirm_group.add_argument(
        "--no-input",
        action="store_true",
        help="Never ask; keep existing backing files and only warn about them"
    )

    # Simulation options
    parser.add_argument(
        "-s", "--simulate",
        action="store_true",
        help="Simulate operations without making any changes to the system"
    )

    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output"
    )

    simulation_group = parser.add_argument_group('Device simulation options (only with --simulate)')
    simulation_group.add_argument(
        "--sim-free-space",
        help="Simulated free space on the backing files device (e.g., '64G')"
    )

    simulation_group.add_argument(
        "--sim-no-exfat",
        action="store_true",
        help="Simulate a kernel without ExFAT support"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    return parser.parse_args(argv)


def prompt_confirmation(question: str) -> bool:
    """Ask on the terminal; only an answer starting with y confirms."""
    try:
        answer = input(question)
    except EOFError:
        return False
    return answer.strip()[:1] in ("y", "Y")


def confirmation_policy(args: argparse.Namespace) -> ConfirmationPolicy:
    """
    Decide how deletion of existing backing files gets confirmed.

    Args:
        args: Command line arguments

    Returns:
        Callback answering the confirmation question, or None to never delete
    """
    if args.yes:
        return lambda question: True
    if args.no_input:
        return None
    if sys.stdin is not None and sys.stdin.isatty():
        return prompt_confirmation
    return None


def log_results(results: ProvisionResults, cmd_runner: CommandRunner) -> None:
    """Log a one-line summary per drive."""
    for result in results:
        if result["status"] == "created":
            message = f"{result['name']}: created {result['path']} ({kib_to_human_readable(result['size_kb'])})"
            logger.info(colorize(message, TermColors.SUCCESS, cmd_runner.colored_output))
        elif result["status"] == "existing":
            logger.info(f"{result['name']}: kept existing {result['path']}")
        else:
            logger.info(f"{result['name']}: skipped")


def display_simulation_summary(cmd_runner: CommandRunner) -> None:
    """Print what a dry run would have done, grouped per backing file."""
    if not cmd_runner.simulating:
        return

    heading = "Dry run finished, nothing was changed. It would have run:"
    print()
    print(colorize(heading, TermColors.SIM + TermColors.BOLD, cmd_runner.colored_output))
    print(cmd_runner.get_simulation_report())
    print(colorize("Rerun without --simulate to apply.", TermColors.SIM, cmd_runner.colored_output))


def main(argv: Optional[List[str]] = None, progress_hook: Optional[Callable[[str], None]] = None) -> int:
    """
    Main function.

    Args:
        argv: Command line arguments, defaults to sys.argv
        progress_hook: Optional callback receiving each progress message,
            prefixed with the program name

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    hook_handler = None
    try:
        args = parse_arguments(argv)

        # Set up logging
        hook_handler = setup_logging(args.debug, progress_hook)

        # Create the command runner with appropriate simulation mode
        cmd_runner = CommandRunner(
            SimulationMode.SIMULATE if args.simulate else SimulationMode.DISABLED,
            not args.no_color
        )

        try:
            config = build_config(args)
        except (ValueError, UnsupportedSizeError) as e:
            logger.error(str(e))
            return 1

        # Configure device simulation parameters if in simulation mode
        if args.simulate:
            logger.info("Running in simulation mode - NO CHANGES WILL BE MADE")

            sim_params = {"free_space_kb": SIM_DEFAULT_FREE_KB, "exfat_supported": not args.sim_no_exfat}
            if args.sim_free_space:
                try:
                    sim_params["free_space_kb"] = dehumanize(args.sim_free_space) // 1024
                except UnsupportedSizeError as e:
                    logger.error(f"Invalid simulated free space: {e}")
                    return 1
            logger.info(f"Simulating free space: {kib_to_human_readable(sim_params['free_space_kb'])}")
            cmd_runner.set_simulation_params(sim_params)

        # Check prerequisites
        try:
            check_prerequisites(cmd_runner, config.mountpoint)
        except RuntimeError as e:
            logger.error(str(e))
            return 1

        try:
            results = provision_backing_files(
                config,
                CommandDiskTools(cmd_runner),
                CommandSystemTools(cmd_runner),
                confirmation_policy(args)
            )
        except DeletionAborted:
            logger.info("Deletion aborted")
            return 0
        except BackingFilesError as e:
            logger.error(colorize(str(e), TermColors.ERROR, cmd_runner.colored_output))
            return 1

        log_results(results, cmd_runner)

        if args.simulate:
            display_simulation_summary(cmd_runner)

        return 0

    except KeyboardInterrupt:
        logger.error("Operation cancelled by user")
        return 130

    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if 'args' in locals() and args.debug:
            import traceback
            traceback.print_exc()
        return 1

    finally:
        if hook_handler is not None:
            logger.removeHandler(hook_handler)


# For module import compatibility
if __name__ == "__main__":
    sys.exit(main())
