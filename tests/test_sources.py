from pathlib import Path

import git
import pytest

from refscope.model import ProjectDescriptor, ProjectStatus, SourceKind
from refscope.sources import GitSource, LocalSource, source_for

ACTOR = git.Actor("Test", "test@example.com")


def _commit(repo: git.Repo, name: str, text: str, message: str) -> None:
	path = Path(repo.working_tree_dir) / name
	path.write_text(text, encoding="utf-8")
	repo.index.add([name])
	repo.index.commit(message, author=ACTOR, committer=ACTOR)


@pytest.fixture
def origin(tmp_path):
	repo = git.Repo.init(tmp_path / "origin")
	repo.git.symbolic_ref("HEAD", "refs/heads/main")
	_commit(repo, "README.md", "one\n", "initial")
	yield repo
	repo.close()


def test_clone_into_missing_directory(tmp_path, origin):
	cache = tmp_path / "cache" / "demo"
	source = GitSource("demo", origin.working_tree_dir, "main", cache)
	assert source.sync() == ProjectStatus.COMPILING
	assert (cache / "README.md").read_text() == "one\n"


def test_non_repository_directory_is_wiped_and_cloned(tmp_path, origin):
	cache = tmp_path / "cache"
	(cache / "junk").mkdir(parents=True)
	(cache / "junk" / "file.txt").write_text("stale")
	(cache / "stray.txt").write_text("stale")

	assert GitSource("demo", origin.working_tree_dir, "main", cache).sync() == ProjectStatus.COMPILING
	assert not (cache / "stray.txt").exists()
	assert not (cache / "junk").exists()
	assert (cache / ".git").is_dir()


def test_existing_clone_is_pulled(tmp_path, origin):
	cache = tmp_path / "cache"
	source = GitSource("demo", origin.working_tree_dir, "main", cache)
	source.sync()
	_commit(origin, "README.md", "two\n", "update")

	assert source.sync() == ProjectStatus.COMPILING
	assert (cache / "README.md").read_text() == "two\n"


def test_branch_switch_before_pull(tmp_path, origin):
	cache = tmp_path / "cache"
	GitSource("demo", origin.working_tree_dir, "main", cache).sync()

	origin.git.checkout("-b", "dev")
	_commit(origin, "DEV.md", "dev\n", "dev work")
	origin.git.checkout("main")

	assert GitSource("demo", origin.working_tree_dir, "dev", cache).sync() == ProjectStatus.COMPILING
	with git.Repo(cache) as clone:
		assert clone.active_branch.name == "dev"
	assert (cache / "DEV.md").exists()


def test_clone_failure_is_failed_sync(tmp_path):
	source = GitSource("demo", str(tmp_path / "no-such-origin"), "main", tmp_path / "cache")
	assert source.sync() == ProjectStatus.FAILED_SYNC


def _clone_with_identity(origin, cache):
	source = GitSource("demo", origin.working_tree_dir, "main", cache)
	assert source.sync() == ProjectStatus.COMPILING
	with git.Repo(cache) as clone, clone.config_writer() as cfg:
		cfg.set_value("user", "name", ACTOR.name)
		cfg.set_value("user", "email", ACTOR.email)
	return source


def test_merge_conflict_is_reported(tmp_path, origin):
	cache = tmp_path / "cache"
	source = _clone_with_identity(origin, cache)
	with git.Repo(cache) as clone:
		_commit(clone, "README.md", "local\n", "local edit")
	_commit(origin, "README.md", "upstream\n", "upstream edit")

	assert source.sync() == ProjectStatus.FAILED_MERGE_CONFLICT
	with git.Repo(cache) as clone:
		assert "README.md" in clone.index.unmerged_blobs()
	# a conflicted checkout stays parked on the next attempt
	assert source.sync() == ProjectStatus.FAILED_MERGE_CONFLICT


def test_divergent_history_without_conflict_is_merged(tmp_path, origin):
	cache = tmp_path / "cache"
	source = _clone_with_identity(origin, cache)
	with git.Repo(cache) as clone:
		_commit(clone, "LOCAL.md", "local\n", "local file")
	_commit(origin, "README.md", "upstream\n", "upstream edit")

	assert source.sync() == ProjectStatus.COMPILING
	assert (cache / "README.md").read_text() == "upstream\n"
	assert (cache / "LOCAL.md").exists()


def test_refused_pull_builds_current_checkout(tmp_path, origin):
	cache = tmp_path / "cache"
	source = _clone_with_identity(origin, cache)
	(cache / "README.md").write_text("uncommitted\n", encoding="utf-8")
	_commit(origin, "README.md", "upstream\n", "upstream edit")

	assert source.sync() == ProjectStatus.COMPILING
	assert (cache / "README.md").read_text() == "uncommitted\n"


def test_unreachable_remote_is_failed_sync(tmp_path, origin):
	cache = tmp_path / "cache"
	source = _clone_with_identity(origin, cache)
	with git.Repo(cache) as clone:
		clone.remote("origin").set_url(str(tmp_path / "gone"))

	assert source.sync() == ProjectStatus.FAILED_SYNC


def test_local_source(tmp_path):
	source = LocalSource("here", tmp_path)
	assert source.resolve()
	assert source.needs_sync(ProjectStatus.READY)
	assert source.sync(ProjectStatus.NOT_SYNCED) == ProjectStatus.COMPILING
	assert source.sync(ProjectStatus.READY) == ProjectStatus.READY
	assert source.sync(ProjectStatus.FAILED_BUILD) == ProjectStatus.COMPILING

	missing = LocalSource("gone", tmp_path / "missing")
	assert missing.sync(ProjectStatus.READY) == ProjectStatus.FAILED_INVALID_PATH


def test_source_for_picks_variant(tmp_path):
	git_descriptor = ProjectDescriptor(
		name="g", source_kind=SourceKind.GIT, location="https://example.com/g.git", cache_path=str(tmp_path)
	)
	local_descriptor = ProjectDescriptor(
		name="l", source_kind=SourceKind.LOCAL, location=str(tmp_path), cache_path=str(tmp_path)
	)
	git_source = source_for(git_descriptor)
	assert isinstance(git_source, GitSource)
	assert git_source.branch == "main"
	assert git_source.needs_sync(ProjectStatus.FAILED_MERGE_CONFLICT)
	assert not git_source.needs_sync(ProjectStatus.FAILED_BUILD)
	assert isinstance(source_for(local_descriptor), LocalSource)
