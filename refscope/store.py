"""Project configuration store.

Loads the declarative project list from a YAML file, notices when the file is
edited on disk and reloads it, and holds the runtime status of every project.
Status lives only in memory; it is never written back to the file.
"""
from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import ValidationError

from refscope import config
from refscope.model import (
	ProjectConfigs,
	ProjectDescriptor,
	ProjectEntry,
	ProjectStatus,
	SourceKind,
	can_transition,
)

logger = logging.getLogger("refscope.store")


class ConfigParseError(Exception):
	"""The configuration file could not be turned into descriptors."""


class ProjectConfigStore:
	"""Lock-guarded name -> ProjectDescriptor map backed by a YAML file.

	One lock serializes the modification-time check, the map replacement and
	status updates, so a reload never interleaves with a status write.
	"""

	def __init__(self, config_path: os.PathLike | str, app_base_dir: os.PathLike | str | None = None):
		self.config_path = Path(config_path)
		self.app_base_dir = Path(app_base_dir or config.APP_BASE_DIR).resolve()
		self._projects: Dict[str, ProjectDescriptor] = {}
		self._lock = threading.RLock()
		self._last_modified: Optional[int] = None

	def load(self) -> bool:
		"""Initial load. Creates an empty configuration file when none exists."""
		with self._lock:
			if not self.config_path.exists():
				try:
					self._write_empty_config()
				except OSError as e:
					logger.error(f"Could not create configuration file {self.config_path}: {e}")
					return False
			return self._reload()

	def check_and_reload(self) -> bool:
		"""Reload if the file changed since it was last read. Returns True on reload."""
		with self._lock:
			try:
				modified = self.config_path.stat().st_mtime_ns
			except FileNotFoundError:
				logger.debug(f"Configuration file {self.config_path} does not exist, skipping update check")
				return False
			except OSError as e:
				logger.error(f"Error checking configuration file {self.config_path} for updates: {e}")
				return False

			if self._last_modified is not None and modified <= self._last_modified:
				return False
			logger.info(f"Configuration file {self.config_path} has changed. Reloading.")
			return self._reload()

	def get(self, name: str) -> Optional[ProjectDescriptor]:
		with self._lock:
			descriptor = self._projects.get(name)
			return descriptor.model_copy() if descriptor else None

	def list(self) -> List[ProjectDescriptor]:
		with self._lock:
			return [d.model_copy() for d in self._projects.values()]

	def set_status(self, name: str, status: ProjectStatus) -> bool:
		with self._lock:
			descriptor = self._projects.get(name)
			if descriptor is None:
				logger.warning(f"Attempted to update status for unknown project: {name}")
				return False
			old_status = descriptor.status
			if not can_transition(old_status, status):
				logger.error(
					f"Rejected status change for project '{name}': {old_status.value} -> {status.value}"
				)
				return False
			descriptor.status = status
			if old_status != status:
				logger.info(f"Project '{name}' status changed from '{old_status.value}' to '{status.value}'")
			return True

	def _write_empty_config(self) -> None:
		logger.warning(f"Configuration file {self.config_path} not found. Creating an empty default.")
		self.config_path.parent.mkdir(parents=True, exist_ok=True)
		self.config_path.write_text(yaml.safe_dump({"projects": []}), encoding="utf-8")

	def _reload(self) -> bool:
		try:
			modified = self.config_path.stat().st_mtime_ns
			text = self.config_path.read_text(encoding="utf-8")
		except OSError as e:
			logger.error(f"Error reading project configurations from {self.config_path}: {e}")
			return False

		# A broken file is reported once per edit rather than on every check.
		self._last_modified = modified
		try:
			new_projects = self._parse(text)
		except ConfigParseError as e:
			logger.error(f"Error loading project configurations from {self.config_path}: {e}")
			return False

		self._projects = new_projects
		logger.info(f"Loaded {len(new_projects)} project configurations from {self.config_path}")
		return True

	def _parse(self, text: str) -> Dict[str, ProjectDescriptor]:
		try:
			data = yaml.safe_load(text)
		except yaml.YAMLError as e:
			raise ConfigParseError(f"malformed YAML: {e}") from e
		if data is None:
			data = {}
		if not isinstance(data, dict):
			raise ConfigParseError("expected a mapping with a 'projects' list at the top level")

		try:
			configs = ProjectConfigs.model_validate(data)
		except ValidationError as e:
			raise ConfigParseError(str(e)) from e

		parsed: Dict[str, ProjectDescriptor] = {}
		for entry in configs.projects:
			if not entry.name or not entry.name.strip():
				logger.warning(f"Skipping project entry with no name: {entry}")
				continue
			name = entry.name.strip()
			if name in parsed:
				raise ConfigParseError(f"duplicate project name '{name}'")
			parsed[name] = self._to_descriptor(name, entry)
		return parsed

	def _to_descriptor(self, name: str, entry: ProjectEntry) -> ProjectDescriptor:
		cache_path = self._resolve_cache_path(name, entry)
		if entry.source_type == SourceKind.GIT:
			try:
				cache_path.mkdir(parents=True, exist_ok=True)
			except OSError as e:
				raise ConfigParseError(f"cannot create cache directory {cache_path} for '{name}': {e}") from e

		status = ProjectStatus.parse(entry.status)
		if entry.status is not None and status is None:
			logger.warning(f"Ignoring unknown status '{entry.status}' for project '{name}'")

		existing = self._projects.get(name)
		if status is None:
			if existing is not None:
				status = existing.status
				logger.debug(f"Preserved status '{status.value}' for reloaded project '{name}'")
			else:
				status = ProjectStatus.NOT_SYNCED

		return ProjectDescriptor(
			name=name,
			source_kind=entry.source_type,
			location=entry.location.strip(),
			branch=entry.branch,
			cache_path=str(cache_path),
			status=status,
		)

	def _resolve_cache_path(self, name: str, entry: ProjectEntry) -> Path:
		raw = (entry.local_cache_path or "").strip()
		if not raw and entry.source_type == SourceKind.LOCAL:
			raw = entry.location.strip()
		if not raw:
			return (self.app_base_dir / config.CACHE_DIR_NAME / name).resolve()
		path = Path(raw).expanduser()
		if not path.is_absolute():
			path = self.app_base_dir / path
		return path.resolve()
