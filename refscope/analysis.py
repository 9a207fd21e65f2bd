"""Request-level reference analysis against configured projects."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple

from refscope.errors import ModelBuildError, ProjectNotFoundError, ProjectNotReadyError, SpecifierError, TargetNotFoundError
from refscope.java_model import CodeModel
from refscope.java_parse import build_model
from refscope.model import AnalysisResult, ProjectStatus, Reference
from refscope.references import find_references
from refscope.resolve import Target, find_target
from refscope.store import ProjectConfigStore

logger = logging.getLogger("refscope.analysis")

ANALYZABLE_STATUSES = frozenset({ProjectStatus.READY, ProjectStatus.READY_NO_BUILD_FILE})


def sort_references(references: Iterable[Reference]) -> List[Reference]:
	return sorted(references, key=lambda r: (r.direction.value, r.qualified_name, r.origin, r.code_context))


def analyze_model(model: CodeModel, code_snippet: str) -> Tuple[Optional[Target], List[Reference], bool]:
	"""(target, references, simple-name scan ran). Unknown targets give no references."""
	try:
		target, simple_name_attempted = find_target(model, code_snippet)
	except SpecifierError as e:
		logger.warning(f"Could not parse code snippet '{code_snippet}': {e}")
		return None, [], False
	return target, sort_references(find_references(model, target)), simple_name_attempted


def analyze_path(project_dir: str | Path, code_snippet: str) -> AnalysisResult:
	"""Analyze a source tree directly, without a configured project."""
	model = build_model(project_dir)
	target, references, _ = analyze_model(model, code_snippet)
	return AnalysisResult(
		code_snippet=code_snippet,
		target=target.qualified_name if target is not None else None,
		references=references,
	)


class AnalysisService:
	def __init__(self, store: ProjectConfigStore, model_factory: Callable[[Path], CodeModel] = build_model):
		self.store = store
		self.model_factory = model_factory

	def analyze(self, project_name: str, code_snippet: str) -> AnalysisResult:
		logger.info(f"Analysis requested for project '{project_name}', snippet: {code_snippet}")
		descriptor = self.store.get(project_name)
		if descriptor is None:
			raise ProjectNotFoundError(project_name)
		if descriptor.status not in ANALYZABLE_STATUSES:
			raise ProjectNotReadyError(project_name, descriptor.status.value)

		try:
			model = self.model_factory(Path(descriptor.cache_path))
		except Exception as e:
			logger.error(f"Failed to build source model for project '{project_name}': {e}", exc_info=True)
			raise ModelBuildError(project_name, e) from e

		target, references, simple_name_attempted = analyze_model(model, code_snippet)
		if target is None:
			logger.warning(f"Target element '{code_snippet}' not found in project '{project_name}'")
			raise TargetNotFoundError(project_name, code_snippet, simple_name_attempted)

		logger.info(f"Analysis for '{code_snippet}' in project '{project_name}' found {len(references)} references")
		return AnalysisResult(code_snippet=code_snippet, target=target.qualified_name, references=references)
