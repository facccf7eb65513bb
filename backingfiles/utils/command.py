"""
Command execution utilities.

This module provides tools for executing shell commands with simplified simulation support.
"""
import logging
import os
import shlex
import subprocess
import uuid
from enum import Enum
from typing import Dict, List, Any, Optional, Set

from backingfiles.utils.format import TermColors, colorize

logger = logging.getLogger('backingfiles')

# Geometry used for simulated sfdisk listings
SIM_SECTOR_SIZE = 512
SIM_FIRST_SECTOR = 2048
SIM_DEFAULT_FREE_KB = 64 * 1024 * 1024  # 64 GiB


class SimulationMode(Enum):
    """Enumeration for simulation modes"""
    DISABLED = 0  # Normal operation
    SIMULATE = 1  # Simulate operations


class CommandRunner:
    """
    Runs the external disk tools, or pretends to in simulation mode.

    In simulation mode the runner keeps just enough state (allocated images,
    attached loop devices, removed paths) for later commands to see the
    effects of earlier ones.
    """
    def __init__(self, simulation_mode: SimulationMode, colored_output: bool = True):
        """
        Initialize the command runner.

        Args:
            simulation_mode: Simulation mode to operate in
            colored_output: Whether to use colored output in terminal
        """
        self.simulation_mode = simulation_mode
        self.colored_output = colored_output
        self.commands_run: List[List[str]] = []

        # Short ID tagging the log lines of one dry run
        self.simulation_id = str(uuid.uuid4())[:8]

        # Simulated images keyed by path, sizes in kilobytes
        self.simulated_images: Dict[str, int] = {}
        self.simulated_loop_devices: Dict[str, str] = {}
        self.simulated_removed: Set[str] = set()

        self.simulation_params = {}

    @property
    def simulating(self) -> bool:
        return self.simulation_mode == SimulationMode.SIMULATE

    def set_simulation_params(self, params: Dict[str, Any]) -> None:
        """
        Set parameters for backing-files device simulation.

        Args:
            params: Dictionary of simulation parameters
        """
        self.simulation_params = params

    def run(self, cmd: List[str], check: bool = True, **kwargs) -> subprocess.CompletedProcess:
        """
        Run a command, capturing its text output.

        Args:
            cmd: Command to run as list of strings
            check: Raise CalledProcessError on a non-zero exit status
            **kwargs: Additional arguments to pass to subprocess.run

        Returns:
            CompletedProcess, real or simulated
        """
        cmd_str = shlex.join(cmd)
        self.commands_run.append(list(cmd))

        if self.simulating:
            tag = colorize(f"[SIM:{self.simulation_id}]", TermColors.SIM, self.colored_output)
            logger.info(f"{tag} {cmd_str}")
            return self._simulate_command(cmd, **kwargs)

        logger.debug(f"Running: {cmd_str}")
        result = subprocess.run(cmd, text=True, capture_output=True, **kwargs)

        if check and result.returncode != 0:
            logger.error(colorize(f"{cmd_str} exited with status {result.returncode}",
                                  TermColors.ERROR, self.colored_output))
            stderr = (result.stderr or "").strip()
            if stderr:
                logger.error(stderr)
            raise subprocess.CalledProcessError(result.returncode, cmd, result.stdout, result.stderr)

        return result

    def _simulate_command(self, cmd: List[str], **kwargs) -> subprocess.CompletedProcess:
        """
        Generate simulated output for a command.

        Args:
            cmd: Command to simulate
            **kwargs: Additional arguments passed to the original command

        Returns:
            CompletedProcess with simulated output
        """
        result = subprocess.CompletedProcess(args=cmd, returncode=0, stdout="", stderr="")

        cmd_name = os.path.basename(cmd[0]) if cmd else ""

        if cmd_name == "df":
            return self._handle_df_simulation(cmd, result)
        elif cmd_name == "fallocate":
            return self._handle_fallocate_simulation(cmd, result)
        elif cmd_name == "sfdisk":
            return self._handle_sfdisk_simulation(cmd, result, **kwargs)
        elif cmd_name == "losetup":
            return self._handle_losetup_simulation(cmd, result)

        if "input" in kwargs:
            logger.debug(f"Command input: {kwargs['input']}")

        return result

    def simulated_free_kb(self) -> int:
        """Free space of the simulated device after simulated allocations"""
        total = self.simulation_params.get("free_space_kb", SIM_DEFAULT_FREE_KB)
        return total - sum(self.simulated_images.values())

    def record_removal(self, path: str) -> None:
        """Remember a path deleted during a dry run."""
        self.simulated_removed.add(path)
        self.simulated_images.pop(path, None)

    def simulated_exists(self, path: str) -> Optional[bool]:
        """
        Whether a dry run has created or removed a path.

        Returns:
            True or False when the dry run decided it, None to ask the real filesystem
        """
        if path in self.simulated_images:
            return True
        if path in self.simulated_removed:
            return False
        return None

    def _handle_df_simulation(self, cmd: List[str], result: subprocess.CompletedProcess) -> subprocess.CompletedProcess:
        """Simulate df command output"""
        result.stdout = f" Avail\n{self.simulated_free_kb()}\n"
        return result

    def _handle_fallocate_simulation(self, cmd: List[str], result: subprocess.CompletedProcess) -> subprocess.CompletedProcess:
        """Simulate fallocate by recording the image size"""
        if "-l" in cmd and len(cmd) > cmd.index("-l") + 2:
            length = cmd[cmd.index("-l") + 1]
            try:
                self.simulated_images[cmd[-1]] = int(length.rstrip("K"))
            except ValueError:
                logger.debug(f"Could not parse simulated allocation length: {length}")
            self.simulated_removed.discard(cmd[-1])
        return result

    def _handle_sfdisk_simulation(self, cmd: List[str], result: subprocess.CompletedProcess, **kwargs) -> subprocess.CompletedProcess:
        """Simulate sfdisk command output"""
        # With input it's writing a partition table
        if "input" in kwargs:
            logger.debug(f"sfdisk script:\n{kwargs['input']}")
            result.stdout = "Created a new DOS disklabel\nThe partition table has been altered.\n"
            return result

        if "-l" in cmd and "-o" in cmd:
            column = cmd[cmd.index("-o") + 1]
            size_kb = self.simulated_images.get(cmd[-1], 0)
            total_sectors = size_kb * 1024 // SIM_SECTOR_SIZE
            sectors = max(total_sectors - SIM_FIRST_SECTOR, 1)

            if column == "Size":
                value = sectors * SIM_SECTOR_SIZE
            elif column == "Sectors":
                value = sectors
            elif column == "Start":
                value = SIM_FIRST_SECTOR
            else:
                return result
            result.stdout = f"{column}\n{value}\n"

        return result

    def _handle_losetup_simulation(self, cmd: List[str], result: subprocess.CompletedProcess) -> subprocess.CompletedProcess:
        """Simulate losetup command output"""
        if "--show" in cmd:
            backing = cmd[-1]
            if backing not in self.simulated_loop_devices:
                self.simulated_loop_devices[backing] = f"/dev/loop{len(self.simulated_loop_devices)}"
            result.stdout = self.simulated_loop_devices[backing] + "\n"

        return result

    def _image_of(self, cmd: List[str]) -> Optional[str]:
        """The backing file a command works on, directly or through its loop device."""
        images_by_loop = {loop: image for image, loop in self.simulated_loop_devices.items()}
        for arg in cmd[1:]:
            if arg in self.simulated_images:
                return arg
            if arg in images_by_loop:
                return images_by_loop[arg]
        return None

    def get_simulation_report(self) -> str:
        """
        Describe a dry run: host commands first, then the steps of each backing file.

        Returns:
            Report text
        """
        if not self.simulating:
            return "Simulation mode is not active."

        host_steps: List[str] = []
        image_steps: Dict[str, List[str]] = {}
        for cmd in self.commands_run:
            image = self._image_of(cmd)
            if image is None:
                host_steps.append(shlex.join(cmd))
            else:
                image_steps.setdefault(image, []).append(shlex.join(cmd))

        lines = [f"Dry run {self.simulation_id}: {len(self.commands_run)} command(s)", ""]

        if host_steps:
            lines.append("Host:")
            lines.extend(f"  {step}" for step in host_steps)
            lines.append("")

        for image, steps in image_steps.items():
            lines.append(f"{os.path.basename(image)} ({self.simulated_images[image]}K):")
            lines.extend(f"  {number}. {step}" for number, step in enumerate(steps, 1))
            lines.append("")

        return "\n".join(lines).rstrip() + "\n"
