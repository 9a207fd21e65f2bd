from textwrap import dedent

import pytest

from refscope.analysis import AnalysisService, analyze_path
from refscope.errors import ModelBuildError, ProjectNotFoundError, ProjectNotReadyError, TargetNotFoundError
from refscope.model import Direction
from refscope.store import ProjectConfigStore


def _store(tmp_path, project_dir, status="READY"):
	config = tmp_path / "projects.yml"
	config.write_text(
		dedent(
			f"""
			projects:
			  - name: demo
			    sourceType: local
			    location: {project_dir}
			    status: {status}
			"""
		).lstrip(),
		encoding="utf-8",
	)
	store = ProjectConfigStore(config, app_base_dir=tmp_path)
	store.load()
	return store


def test_analyze_ready_project(tmp_path, ab_project):
	service = AnalysisService(_store(tmp_path, ab_project))
	result = service.analyze("demo", "pkg.ClassA#methodA()")
	assert result.target == "pkg.ClassA#methodA()"
	assert [(r.direction, r.qualified_name) for r in result.references] == [
		(Direction.FROM, "pkg.ClassB"),
		(Direction.FROM, "pkg.ClassB#methodB()"),
	]


def test_project_without_build_file_is_analyzable(tmp_path, ab_project):
	service = AnalysisService(_store(tmp_path, ab_project, status="READY_NO_BUILD_FILE"))
	assert service.analyze("demo", "ClassB").target == "pkg.ClassB"


def test_unknown_project(tmp_path, ab_project):
	service = AnalysisService(_store(tmp_path, ab_project))
	with pytest.raises(ProjectNotFoundError):
		service.analyze("other", "pkg.ClassA")


def test_project_not_ready(tmp_path, ab_project):
	service = AnalysisService(_store(tmp_path, ab_project, status="COMPILING"))
	with pytest.raises(ProjectNotReadyError) as info:
		service.analyze("demo", "pkg.ClassA")
	assert info.value.status == "COMPILING"


def test_target_not_found(tmp_path, ab_project):
	service = AnalysisService(_store(tmp_path, ab_project))
	with pytest.raises(TargetNotFoundError) as info:
		service.analyze("demo", "Missing#run()")
	assert info.value.simple_name_attempted
	with pytest.raises(TargetNotFoundError) as info:
		service.analyze("demo", "pkg.Missing")
	assert not info.value.simple_name_attempted


def test_malformed_snippet_is_not_found(tmp_path, ab_project):
	service = AnalysisService(_store(tmp_path, ab_project))
	with pytest.raises(TargetNotFoundError):
		service.analyze("demo", "pkg.ClassA#methodA(")


def test_model_failure_is_wrapped(tmp_path, ab_project):
	def _explode(path):
		raise RuntimeError("parser crashed")

	service = AnalysisService(_store(tmp_path, ab_project), model_factory=_explode)
	with pytest.raises(ModelBuildError) as info:
		service.analyze("demo", "pkg.ClassA")
	assert isinstance(info.value.cause, RuntimeError)


def test_analyze_path(ab_project):
	result = analyze_path(ab_project, "pkg.ClassB#methodB()")
	assert result.target == "pkg.ClassB#methodB()"
	assert [r.qualified_name for r in result.references] == ["pkg.ClassA#methodA()"]
	missing = analyze_path(ab_project, "pkg.Nope")
	assert missing.target is None
	assert missing.references == []
