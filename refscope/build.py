"""Compiling a project with its own build tool."""
from __future__ import annotations

import logging
import os
import signal
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from refscope import config
from refscope.model import ProjectStatus

logger = logging.getLogger("refscope.build")

MAVEN_BUILD_FILES = ("pom.xml",)
GRADLE_BUILD_FILES = ("build.gradle", "build.gradle.kts")
OUTPUT_LOG_LIMIT = 2048
KILL_WAIT_SECONDS = 10


@dataclass
class BuildCommand:
	tool: str
	argv: List[str]

	def __str__(self) -> str:
		return " ".join(self.argv)


@dataclass
class BuildResult:
	status: ProjectStatus
	command: Optional[BuildCommand] = None
	exit_code: Optional[int] = None
	output: str = ""
	terminated: bool = True
	details: List[str] = field(default_factory=list)


def detect_build_command(project_dir: Path, windows: Optional[bool] = None) -> Optional[BuildCommand]:
	"""Maven wins over Gradle; a project wrapper wins over the global tool."""
	if windows is None:
		windows = os.name == "nt"
	project_dir = Path(project_dir)

	if any((project_dir / name).is_file() for name in MAVEN_BUILD_FILES):
		wrapper = project_dir / ("mvnw.cmd" if windows else "mvnw")
		executable = str(wrapper) if wrapper.is_file() else "mvn"
		return BuildCommand("maven", [executable, "clean", "compile", "-DskipTests"])

	if any((project_dir / name).is_file() for name in GRADLE_BUILD_FILES):
		wrapper = project_dir / ("gradlew.bat" if windows else "gradlew")
		executable = str(wrapper) if wrapper.is_file() else "gradle"
		return BuildCommand("gradle", [executable, "build", "-x", "test", "--no-daemon"])

	return None


class BuildInvoker:
	def __init__(self, timeout: float = config.BUILD_TIMEOUT_SECONDS):
		self.timeout = timeout

	def build(self, name: str, project_dir: Path) -> BuildResult:
		project_dir = Path(project_dir)
		command = detect_build_command(project_dir)
		if command is None:
			logger.warning(f"No pom.xml or build.gradle found for project '{name}' in {project_dir}. Skipping build.")
			return BuildResult(ProjectStatus.READY_NO_BUILD_FILE)

		logger.info(f"Executing build for project '{name}' in {project_dir}: {command}")
		try:
			proc = subprocess.Popen(
				command.argv,
				cwd=str(project_dir),
				stdin=subprocess.DEVNULL,
				stdout=subprocess.PIPE,
				stderr=subprocess.STDOUT,
				start_new_session=os.name != "nt",
			)
		except (OSError, ValueError) as e:
			logger.error(f"Could not start build for project '{name}': {e}")
			return BuildResult(ProjectStatus.FAILED_BUILD_EXCEPTION, command=command, details=[str(e)])

		try:
			raw, _ = proc.communicate(timeout=self.timeout)
		except subprocess.TimeoutExpired:
			logger.error(f"Build for project '{name}' timed out after {self.timeout} seconds, terminating")
			raw = self._terminate(proc)
			return BuildResult(
				ProjectStatus.FAILED_BUILD_TIMEOUT,
				command=command,
				exit_code=proc.returncode,
				output=_decode(raw)[:OUTPUT_LOG_LIMIT],
				terminated=proc.returncode is not None,
			)

		output = _decode(raw)
		for line in output.splitlines():
			logger.debug(f"[{name} build] {line}")

		if proc.returncode == 0:
			logger.info(f"Build successful for project '{name}'")
			return BuildResult(ProjectStatus.READY, command=command, exit_code=0, output=output[:OUTPUT_LOG_LIMIT])

		logger.error(
			f"Build failed for project '{name}' with exit code {proc.returncode}. "
			f"Output (first {OUTPUT_LOG_LIMIT} chars):\n{output[:OUTPUT_LOG_LIMIT]}"
		)
		return BuildResult(ProjectStatus.FAILED_BUILD, command=command, exit_code=proc.returncode, output=output[:OUTPUT_LOG_LIMIT])

	def _terminate(self, proc: subprocess.Popen) -> bytes:
		if os.name != "nt":
			try:
				os.killpg(proc.pid, signal.SIGKILL)
			except ProcessLookupError:
				pass
		else:
			proc.kill()
		try:
			raw, _ = proc.communicate(timeout=KILL_WAIT_SECONDS)
		except subprocess.TimeoutExpired:
			logger.warning(f"Build process {proc.pid} did not exit after being killed")
			return b""
		return raw or b""


def _decode(raw: Optional[bytes]) -> str:
	return (raw or b"").decode("utf-8", errors="replace")
