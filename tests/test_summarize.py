from refscope.model import AnalysisResult, Direction, ProjectDescriptor, ProjectStatus, Reference, SourceKind
from refscope.summarize import summarize_projects, summarize_result


def test_summarize_result():
	result = AnalysisResult(
		code_snippet="pkg.A",
		target="pkg.A",
		references=[
			Reference(origin="self", qualified_name="pkg.B#m()", code_context="...", direction=Direction.TO),
			Reference(origin="dependency:guava", qualified_name="com.google.X", code_context="x", direction=Direction.FROM),
			Reference(origin="self", qualified_name="pkg.C", code_context="y", direction=Direction.FROM),
		],
	)
	text = summarize_result(result)
	assert text.splitlines()[0] == "Target pkg.A (snippet: pkg.A)"
	assert "  TO: 1 references (self: 1)" in text
	assert "  FROM: 2 references (dependency:guava: 1, self: 1)" in text
	assert "    com.google.X [dependency:guava]" in text


def test_summarize_missing_target():
	text = summarize_result(AnalysisResult(code_snippet="Nope"))
	assert text.startswith("Target <not found>")
	assert "  TO: 0 references" in text


def test_summarize_projects():
	projects = [
		ProjectDescriptor(name="b", source_kind=SourceKind.GIT, location="u", cache_path="/c/b", status=ProjectStatus.READY),
		ProjectDescriptor(name="a", source_kind=SourceKind.LOCAL, location="/a", cache_path="/a"),
	]
	lines = summarize_projects(projects).splitlines()
	assert lines[0] == "2 projects: NOT_SYNCED 1, READY 1"
	assert lines[1] == "  a [local] NOT_SYNCED -> /a"
	assert lines[2] == "  b [git] READY -> /c/b"
