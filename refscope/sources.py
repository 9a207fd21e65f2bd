"""Bringing project source trees onto the local disk.

A git project is cloned into (or pulled inside) its cache directory; a local
project is only checked for existence. Both report the status the project
should move to next.
"""
from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Optional

import git
from git.exc import GitCommandError, GitError, InvalidGitRepositoryError, NoSuchPathError

from refscope.model import (
	SETTLED_STATUSES,
	SYNC_RETRY_STATUSES,
	ProjectDescriptor,
	ProjectStatus,
	SourceKind,
)

logger = logging.getLogger("refscope.sources")


class GitSource:
	"""Remote repository mirrored into a cache directory."""

	in_progress_status: Optional[ProjectStatus] = ProjectStatus.SYNCING

	def __init__(self, name: str, url: str, branch: str, path: Path):
		self.name = name
		self.url = url
		self.branch = branch
		self.path = Path(path)

	def needs_sync(self, status: ProjectStatus) -> bool:
		return status in SYNC_RETRY_STATUSES

	def sync(self, current: Optional[ProjectStatus] = None) -> ProjectStatus:
		logger.info(f"Syncing project '{self.name}' from {self.url} into {self.path} (branch '{self.branch}')")
		try:
			repo = self._open_repository()
			if repo is None:
				self._clone()
				return ProjectStatus.COMPILING
			with repo:
				return self._pull(repo)
		except (GitError, OSError, ValueError) as e:
			logger.error(f"Git sync failed for project '{self.name}': {e}")
			return ProjectStatus.FAILED_SYNC

	def _open_repository(self) -> Optional[git.Repo]:
		if not (self.path / ".git").exists():
			return None
		try:
			return git.Repo(self.path)
		except (InvalidGitRepositoryError, NoSuchPathError):
			logger.warning(f"Cache directory {self.path} holds a broken repository, re-cloning")
			return None

	def _pull(self, repo: git.Repo) -> ProjectStatus:
		origin = repo.remote("origin")
		try:
			origin.fetch()
		except GitCommandError as e:
			logger.error(f"Fetch from {self.url} failed for project '{self.name}': {e}")
			return ProjectStatus.FAILED_SYNC

		current = _active_branch(repo)
		if current != self.branch:
			logger.info(f"Project '{self.name}' is on branch '{current}', checking out '{self.branch}'")
			repo.git.checkout(self.branch, force=True)

		# Unmerged paths only exist after a real merge, so never let git refuse a divergent pull.
		try:
			origin.pull(self.branch, no_rebase=True)
		except GitCommandError as e:
			conflicts = sorted(repo.index.unmerged_blobs().keys())
			if conflicts:
				logger.error(f"Merge conflicts while pulling project '{self.name}': {', '.join(conflicts)}")
				return ProjectStatus.FAILED_MERGE_CONFLICT
			logger.warning(f"Pull for project '{self.name}' was not applied, building the current checkout: {e}")
			return ProjectStatus.COMPILING

		logger.info(f"Pulled latest changes for project '{self.name}'")
		return ProjectStatus.COMPILING

	def _clone(self) -> None:
		if self.path.exists():
			logger.info(f"Clearing cache directory {self.path} before cloning '{self.name}'")
			_clear_directory(self.path)
		else:
			self.path.mkdir(parents=True, exist_ok=True)
		git.Repo.clone_from(self.url, str(self.path), branch=self.branch).close()
		logger.info(f"Cloned project '{self.name}' into {self.path}")


class LocalSource:
	"""Source tree that already lives on this machine."""

	in_progress_status: Optional[ProjectStatus] = None

	def __init__(self, name: str, path: Path):
		self.name = name
		self.path = Path(path)

	def needs_sync(self, status: ProjectStatus) -> bool:
		return True

	def resolve(self) -> bool:
		return self.path.is_dir()

	def sync(self, current: Optional[ProjectStatus] = None) -> ProjectStatus:
		if not self.resolve():
			logger.error(f"Local path for project '{self.name}' does not exist or is not a directory: {self.path}")
			return ProjectStatus.FAILED_INVALID_PATH
		if current in SETTLED_STATUSES:
			return current
		return ProjectStatus.COMPILING


def source_for(descriptor: ProjectDescriptor):
	path = Path(descriptor.cache_path)
	if descriptor.source_kind == SourceKind.GIT:
		return GitSource(descriptor.name, descriptor.location, descriptor.target_branch, path)
	return LocalSource(descriptor.name, path)


def _active_branch(repo: git.Repo) -> Optional[str]:
	try:
		return repo.active_branch.name
	except TypeError:
		# detached HEAD
		return None


def _clear_directory(path: Path) -> None:
	for child in path.iterdir():
		if child.is_dir() and not child.is_symlink():
			shutil.rmtree(child)
		else:
			child.unlink()
