from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_BRANCH = "main"


class SourceKind(str, Enum):
	LOCAL = "local"
	GIT = "git"


class ProjectStatus(str, Enum):
	NOT_SYNCED = "NOT_SYNCED"
	SYNCING = "SYNCING"
	COMPILING = "COMPILING"
	READY = "READY"
	READY_NO_BUILD_FILE = "READY_NO_BUILD_FILE"
	FAILED_SYNC = "FAILED_SYNC"
	FAILED_MERGE_CONFLICT = "FAILED_MERGE_CONFLICT"
	FAILED_BUILD = "FAILED_BUILD"
	FAILED_BUILD_TIMEOUT = "FAILED_BUILD_TIMEOUT"
	FAILED_BUILD_EXCEPTION = "FAILED_BUILD_EXCEPTION"
	FAILED_INVALID_PATH = "FAILED_INVALID_PATH"
	FAILED_UNEXPECTED_ERROR = "FAILED_UNEXPECTED_ERROR"

	@classmethod
	def parse(cls, value: object) -> Optional["ProjectStatus"]:
		"""Case-insensitive lookup; None for blank or unknown values."""
		if value is None:
			return None
		text = str(value).strip().upper()
		if not text:
			return None
		try:
			return cls(text)
		except ValueError:
			return None

	@property
	def is_failure(self) -> bool:
		return self.value.startswith("FAILED_")


# Git projects in these states are (re)synchronized on the next tick.
SYNC_RETRY_STATUSES: FrozenSet[ProjectStatus] = frozenset({
	ProjectStatus.NOT_SYNCED,
	ProjectStatus.FAILED_SYNC,
	ProjectStatus.FAILED_MERGE_CONFLICT,
})

# Local projects in these states are not rebuilt.
SETTLED_STATUSES: FrozenSet[ProjectStatus] = frozenset({
	ProjectStatus.READY,
	ProjectStatus.READY_NO_BUILD_FILE,
	ProjectStatus.COMPILING,
})

_BUILD_RETRY = frozenset({ProjectStatus.COMPILING})

TRANSITIONS: Dict[ProjectStatus, FrozenSet[ProjectStatus]] = {
	ProjectStatus.NOT_SYNCED: frozenset({ProjectStatus.SYNCING, ProjectStatus.COMPILING}),
	ProjectStatus.SYNCING: frozenset({
		ProjectStatus.COMPILING,
		ProjectStatus.FAILED_SYNC,
		ProjectStatus.FAILED_MERGE_CONFLICT,
	}),
	ProjectStatus.COMPILING: frozenset({
		ProjectStatus.READY,
		ProjectStatus.READY_NO_BUILD_FILE,
		ProjectStatus.FAILED_BUILD,
		ProjectStatus.FAILED_BUILD_TIMEOUT,
		ProjectStatus.FAILED_BUILD_EXCEPTION,
	}),
	ProjectStatus.READY: frozenset(),
	ProjectStatus.READY_NO_BUILD_FILE: frozenset(),
	ProjectStatus.FAILED_SYNC: frozenset({ProjectStatus.SYNCING, ProjectStatus.COMPILING}),
	ProjectStatus.FAILED_MERGE_CONFLICT: frozenset({ProjectStatus.SYNCING, ProjectStatus.COMPILING}),
	ProjectStatus.FAILED_BUILD: _BUILD_RETRY,
	ProjectStatus.FAILED_BUILD_TIMEOUT: _BUILD_RETRY,
	ProjectStatus.FAILED_BUILD_EXCEPTION: _BUILD_RETRY,
	ProjectStatus.FAILED_INVALID_PATH: _BUILD_RETRY,
	ProjectStatus.FAILED_UNEXPECTED_ERROR: _BUILD_RETRY,
}

# Reachable from any state: external reset, invalid local path, isolated failures.
_ALWAYS_ALLOWED = frozenset({
	ProjectStatus.NOT_SYNCED,
	ProjectStatus.FAILED_INVALID_PATH,
	ProjectStatus.FAILED_UNEXPECTED_ERROR,
})


def can_transition(current: ProjectStatus, new: ProjectStatus) -> bool:
	if current == new or new in _ALWAYS_ALLOWED:
		return True
	return new in TRANSITIONS[current]


class ProjectEntry(BaseModel):
	"""One raw entry of the projects YAML file."""

	model_config = ConfigDict(populate_by_name=True, extra="ignore")

	name: Optional[str] = None
	source_type: SourceKind = Field(alias="sourceType")
	location: str = ""
	branch: Optional[str] = None
	local_cache_path: Optional[str] = Field(default=None, alias="localCachePath")
	status: Optional[str] = None

	@field_validator("source_type", mode="before")
	@classmethod
	def _lower_source_type(cls, value: object) -> object:
		if isinstance(value, str):
			return value.strip().lower()
		return value

	@field_validator("location", mode="before")
	@classmethod
	def _location_text(cls, value: object) -> object:
		return "" if value is None else value


class ProjectConfigs(BaseModel):
	projects: List[ProjectEntry] = []

	@field_validator("projects", mode="before")
	@classmethod
	def _none_is_empty(cls, value: object) -> object:
		return [] if value is None else value


class ProjectDescriptor(BaseModel):
	model_config = ConfigDict(validate_assignment=True)

	name: str
	source_kind: SourceKind
	location: str
	branch: Optional[str] = None
	cache_path: str
	status: ProjectStatus = ProjectStatus.NOT_SYNCED

	@property
	def target_branch(self) -> str:
		if self.branch and self.branch.strip():
			return self.branch.strip()
		return DEFAULT_BRANCH


class FileInfo(BaseModel):
	path: str
	rel_path: str
	language: str


class Direction(str, Enum):
	TO = "TO"
	FROM = "FROM"


class Reference(BaseModel):
	model_config = ConfigDict(frozen=True, populate_by_name=True)

	origin: str = Field(alias="source")
	qualified_name: str = Field(alias="fullyQualifiedName")
	code_context: str = Field(alias="codeContext")
	direction: Direction = Field(alias="referenceType")


class AnalysisRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	project_name: str = Field(alias="projectName")
	code_snippet: str = Field(alias="codeSnippet")


class AnalysisResult(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	code_snippet: str = Field(alias="codeSnippet")
	target: Optional[str] = None
	references: List[Reference] = []
