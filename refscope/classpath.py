"""Classpath inference for the source model.

The model is usable without any classpath (every external name stays
unresolved). When compiled classes or dependency archives are found in the
conventional build output locations they are handed to the model builder.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Protocol

logger = logging.getLogger("refscope.classpath")


@dataclass
class ModelEnvironment:
	classpath: List[str] = field(default_factory=list)
	no_classpath: bool = True
	comments_enabled: bool = True
	auto_imports: bool = True

	@property
	def archives(self) -> List[str]:
		return [entry for entry in self.classpath if entry.lower().endswith(".jar")]


class ClasspathStrategy(Protocol):
	def infer(self, project_dir: Path) -> List[str]:
		...


class ConventionalClasspath:
	"""Maven and Gradle output directories plus copied dependency jars."""

	CLASS_DIRS = (
		"target/classes",
		"target/test-classes",
		"build/classes/java/main",
		"build/classes/java/test",
	)
	DEPENDENCY_DIRS = (
		"target/dependency",
		"target/lib",
		"build/libs",
		"lib",
		"libs",
	)

	def infer(self, project_dir: Path) -> List[str]:
		project_dir = Path(project_dir)
		entries: List[str] = []
		for rel in self.CLASS_DIRS:
			candidate = project_dir / rel
			if candidate.is_dir():
				entries.append(str(candidate))
		for rel in self.DEPENDENCY_DIRS:
			candidate = project_dir / rel
			if candidate.is_dir():
				entries.extend(str(jar) for jar in sorted(candidate.glob("*.jar")) if jar.is_file())
		return entries


class NoClasspath:
	def infer(self, project_dir: Path) -> List[str]:
		return []


def environment_for(project_dir: Path, strategy: ClasspathStrategy | None = None) -> ModelEnvironment:
	strategy = strategy or ConventionalClasspath()
	try:
		classpath = strategy.infer(Path(project_dir))
	except OSError as e:
		logger.warning(f"Classpath inference failed for {project_dir}, continuing without one: {e}")
		classpath = []
	if classpath:
		logger.info(f"Using {len(classpath)} inferred classpath entries for {project_dir}")
	else:
		logger.debug(f"No classpath entries inferred for {project_dir}")
	return ModelEnvironment(classpath=classpath, no_classpath=not classpath)
