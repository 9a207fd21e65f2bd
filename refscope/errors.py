"""Typed failures surfaced by the analysis request path."""
from __future__ import annotations


class AnalysisError(Exception):
	"""Base class for failures returned to an analysis caller."""


class ProjectNotFoundError(AnalysisError):
	def __init__(self, project_name: str):
		self.project_name = project_name
		super().__init__(
			f"Project not found: {project_name}. Ensure it is defined in the project configuration file."
		)


class ProjectNotReadyError(AnalysisError):
	def __init__(self, project_name: str, status: str):
		self.project_name = project_name
		self.status = status
		super().__init__(
			f"Project '{project_name}' is not in READY state. Current status: {status}. "
			"Please wait for sync/compilation or check logs."
		)


class TargetNotFoundError(AnalysisError):
	def __init__(self, project_name: str, code_snippet: str, simple_name_attempted: bool = False):
		self.project_name = project_name
		self.code_snippet = code_snippet
		self.simple_name_attempted = simple_name_attempted
		note = " (a lookup by simple name was also attempted)" if simple_name_attempted else ""
		super().__init__(
			f"Target element not found in project '{project_name}': {code_snippet}{note}. "
			"Ensure it's a valid FQN or simple name present in the project."
		)


class ModelBuildError(AnalysisError):
	def __init__(self, project_name: str, cause: Exception):
		self.project_name = project_name
		self.cause = cause
		super().__init__(f"Could not build a source model for project '{project_name}': {cause}")


class SpecifierError(ValueError):
	"""A code snippet that cannot be parsed into a target specifier."""
