from refscope.model import (
	AnalysisRequest,
	Direction,
	ProjectStatus,
	Reference,
	can_transition,
)


def test_status_parse_is_case_insensitive():
	assert ProjectStatus.parse("ready") == ProjectStatus.READY
	assert ProjectStatus.parse(" Failed_Build ") == ProjectStatus.FAILED_BUILD
	assert ProjectStatus.parse("") is None
	assert ProjectStatus.parse("nope") is None
	assert ProjectStatus.parse(None) is None


def test_transitions():
	assert can_transition(ProjectStatus.NOT_SYNCED, ProjectStatus.SYNCING)
	assert can_transition(ProjectStatus.SYNCING, ProjectStatus.FAILED_MERGE_CONFLICT)
	assert can_transition(ProjectStatus.COMPILING, ProjectStatus.READY_NO_BUILD_FILE)
	assert can_transition(ProjectStatus.READY, ProjectStatus.FAILED_INVALID_PATH)
	assert can_transition(ProjectStatus.READY, ProjectStatus.NOT_SYNCED)
	assert can_transition(ProjectStatus.READY, ProjectStatus.READY)
	assert not can_transition(ProjectStatus.READY, ProjectStatus.COMPILING)
	assert not can_transition(ProjectStatus.SYNCING, ProjectStatus.READY)
	assert not can_transition(ProjectStatus.FAILED_BUILD, ProjectStatus.SYNCING)


def test_failure_flag():
	assert ProjectStatus.FAILED_SYNC.is_failure
	assert not ProjectStatus.READY_NO_BUILD_FILE.is_failure


def test_references_deduplicate_by_value():
	a = Reference(origin="self", qualified_name="pkg.A", code_context="x", direction=Direction.TO)
	b = Reference(origin="self", qualified_name="pkg.A", code_context="x", direction=Direction.TO)
	c = Reference(origin="self", qualified_name="pkg.A", code_context="x", direction=Direction.FROM)
	assert len({a, b, c}) == 2


def test_wire_names():
	ref = Reference(origin="self", qualified_name="pkg.A", code_context="x", direction=Direction.FROM)
	assert ref.model_dump(by_alias=True, mode="json") == {
		"source": "self",
		"fullyQualifiedName": "pkg.A",
		"codeContext": "x",
		"referenceType": "FROM",
	}
	req = AnalysisRequest.model_validate({"projectName": "demo", "codeSnippet": "pkg.A"})
	assert req.project_name == "demo"
