from __future__ import annotations

from collections import Counter
from typing import Iterable, List

from .model import AnalysisResult, Direction, ProjectDescriptor


def summarize_result(result: AnalysisResult) -> str:
	parts: List[str] = []
	target = result.target or "<not found>"
	parts.append(f"Target {target} (snippet: {result.code_snippet})")
	for direction in (Direction.TO, Direction.FROM):
		refs = [r for r in result.references if r.direction == direction]
		origins = Counter(r.origin for r in refs)
		breakdown = ", ".join(f"{origin}: {count}" for origin, count in sorted(origins.items()))
		line = f"  {direction.value}: {len(refs)} references"
		if breakdown:
			line += f" ({breakdown})"
		parts.append(line)
		for r in refs[:10]:
			parts.append(f"    {r.qualified_name} [{r.origin}]")
	return "\n".join(parts)


def summarize_projects(projects: Iterable[ProjectDescriptor]) -> str:
	projects = list(projects)
	statuses = Counter(p.status.value for p in projects)
	parts = [f"{len(projects)} projects: " + ", ".join(f"{s} {n}" for s, n in sorted(statuses.items()))]
	for p in sorted(projects, key=lambda d: d.name):
		parts.append(f"  {p.name} [{p.source_kind.value}] {p.status.value} -> {p.cache_path}")
	return "\n".join(parts)
