import threading
import time
from textwrap import dedent

from refscope.build import BuildResult
from refscope.lifecycle import LifecycleOrchestrator
from refscope.model import SYNC_RETRY_STATUSES, ProjectStatus
from refscope.sources import source_for
from refscope.store import ProjectConfigStore


class RecordingBuilder:
	def __init__(self, status=ProjectStatus.READY, gate=None):
		self.status = status
		self.gate = gate
		self.calls = []

	def build(self, name, project_dir):
		self.calls.append(name)
		if self.gate is not None:
			self.gate.wait(5)
		return BuildResult(self.status)


class FakeGitSource:
	in_progress_status = ProjectStatus.SYNCING

	def __init__(self, outcome, seen):
		self.outcome = outcome
		self.seen = seen

	def needs_sync(self, status):
		return status in SYNC_RETRY_STATUSES

	def sync(self, current=None):
		self.seen.append("sync")
		return self.outcome


def _store(tmp_path, text):
	config = tmp_path / "projects.yml"
	config.write_text(dedent(text).lstrip(), encoding="utf-8")
	store = ProjectConfigStore(config, app_base_dir=tmp_path)
	store.load()
	return store


def _orchestrator(store, builder, **kwargs):
	kwargs.setdefault("poll_interval", 0.05)
	kwargs.setdefault("initial_delay", 0)
	return LifecycleOrchestrator(store, builder, **kwargs)


def test_local_project_without_build_file(tmp_path):
	(tmp_path / "plain").mkdir()
	store = _store(
		tmp_path,
		"""
		projects:
		  - name: plain
		    sourceType: local
		    location: plain
		""",
	)
	orchestrator = LifecycleOrchestrator(store)
	try:
		orchestrator.run_once(timeout=10)
	finally:
		orchestrator.stop(grace=1)
	assert store.get("plain").status == ProjectStatus.READY_NO_BUILD_FILE


def test_missing_local_path_is_invalid(tmp_path):
	store = _store(
		tmp_path,
		"""
		projects:
		  - name: gone
		    sourceType: local
		    location: gone
		""",
	)
	builder = RecordingBuilder()
	orchestrator = _orchestrator(store, builder)
	try:
		orchestrator.run_once(timeout=10)
	finally:
		orchestrator.stop(grace=1)
	assert store.get("gone").status == ProjectStatus.FAILED_INVALID_PATH
	assert builder.calls == []


def test_ready_local_project_is_not_rebuilt(tmp_path):
	(tmp_path / "app").mkdir()
	store = _store(
		tmp_path,
		"""
		projects:
		  - name: app
		    sourceType: local
		    location: app
		""",
	)
	builder = RecordingBuilder()
	orchestrator = _orchestrator(store, builder)
	try:
		orchestrator.run_once(timeout=10)
		orchestrator.run_once(timeout=10)
	finally:
		orchestrator.stop(grace=1)
	assert store.get("app").status == ProjectStatus.READY
	assert builder.calls == ["app"]


def test_git_project_sync_then_build(tmp_path):
	store = _store(
		tmp_path,
		"""
		projects:
		  - name: remote
		    sourceType: git
		    location: https://example.com/remote.git
		""",
	)
	seen = []
	builder = RecordingBuilder()

	def factory(descriptor):
		seen.append(descriptor.status)
		return FakeGitSource(ProjectStatus.COMPILING, seen)

	orchestrator = _orchestrator(store, builder, source_factory=factory)
	try:
		orchestrator.run_once(timeout=10)
	finally:
		orchestrator.stop(grace=1)
	assert seen == [ProjectStatus.NOT_SYNCED, "sync"]
	assert builder.calls == ["remote"]
	assert store.get("remote").status == ProjectStatus.READY


def test_failed_sync_skips_build_and_retries(tmp_path):
	store = _store(
		tmp_path,
		"""
		projects:
		  - name: remote
		    sourceType: git
		    location: https://example.com/remote.git
		""",
	)
	seen = []
	builder = RecordingBuilder()
	orchestrator = _orchestrator(
		store, builder, source_factory=lambda d: FakeGitSource(ProjectStatus.FAILED_SYNC, seen)
	)
	try:
		orchestrator.run_once(timeout=10)
		orchestrator.run_once(timeout=10)
	finally:
		orchestrator.stop(grace=1)
	assert seen == ["sync", "sync"]
	assert builder.calls == []
	assert store.get("remote").status == ProjectStatus.FAILED_SYNC


def test_failed_git_build_is_not_retried(tmp_path):
	store = _store(
		tmp_path,
		"""
		projects:
		  - name: remote
		    sourceType: git
		    location: https://example.com/remote.git
		""",
	)
	builder = RecordingBuilder(ProjectStatus.FAILED_BUILD)
	orchestrator = _orchestrator(
		store, builder, source_factory=lambda d: FakeGitSource(ProjectStatus.COMPILING, [])
	)
	try:
		orchestrator.run_once(timeout=10)
		orchestrator.run_once(timeout=10)
	finally:
		orchestrator.stop(grace=1)
	assert builder.calls == ["remote"]
	assert store.get("remote").status == ProjectStatus.FAILED_BUILD


def test_unexpected_error_is_isolated(tmp_path):
	(tmp_path / "good").mkdir()
	store = _store(
		tmp_path,
		"""
		projects:
		  - name: bad
		    sourceType: local
		    location: bad
		  - name: good
		    sourceType: local
		    location: good
		""",
	)

	def factory(descriptor):
		if descriptor.name == "bad":
			raise RuntimeError("boom")
		return source_for(descriptor)

	orchestrator = _orchestrator(store, RecordingBuilder(), source_factory=factory)
	try:
		orchestrator.run_once(timeout=10)
	finally:
		orchestrator.stop(grace=1)
	assert store.get("bad").status == ProjectStatus.FAILED_UNEXPECTED_ERROR
	assert store.get("good").status == ProjectStatus.READY


def test_in_flight_project_is_not_queued_twice(tmp_path):
	(tmp_path / "app").mkdir()
	store = _store(
		tmp_path,
		"""
		projects:
		  - name: app
		    sourceType: local
		    location: app
		""",
	)
	gate = threading.Event()
	builder = RecordingBuilder(gate=gate)
	orchestrator = _orchestrator(store, builder)
	try:
		first = orchestrator.tick()
		second = orchestrator.tick()
		assert len(first) == 1
		assert second == []
		gate.set()
		first[0].result(timeout=10)
	finally:
		gate.set()
		orchestrator.stop(grace=5)
	assert builder.calls == ["app"]


def test_background_loop_reaches_ready(tmp_path):
	(tmp_path / "app").mkdir()
	store = _store(
		tmp_path,
		"""
		projects:
		  - name: app
		    sourceType: local
		    location: app
		""",
	)
	orchestrator = _orchestrator(store, RecordingBuilder())
	orchestrator.start()
	try:
		deadline = time.monotonic() + 10
		while time.monotonic() < deadline and store.get("app").status != ProjectStatus.READY:
			time.sleep(0.05)
	finally:
		assert orchestrator.stop(grace=5)
	assert store.get("app").status == ProjectStatus.READY
	assert not orchestrator.running


def test_stop_gives_up_after_one_grace_period(tmp_path):
	(tmp_path / "app").mkdir()
	store = _store(
		tmp_path,
		"""
		projects:
		  - name: app
		    sourceType: local
		    location: app
		""",
	)
	gate = threading.Event()
	builder = RecordingBuilder(gate=gate)
	orchestrator = _orchestrator(store, builder)
	orchestrator.start()
	try:
		deadline = time.monotonic() + 10
		while time.monotonic() < deadline and not builder.calls:
			time.sleep(0.02)
		assert builder.calls == ["app"]

		started = time.monotonic()
		assert not orchestrator.stop(grace=0.5)
		assert time.monotonic() - started < 1.0
	finally:
		gate.set()
	assert not orchestrator.running
