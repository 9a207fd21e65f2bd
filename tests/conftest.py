from pathlib import Path
from textwrap import dedent

import pytest


@pytest.fixture
def write_java(tmp_path):
	"""Write a Java file under tmp_path/<root> and return the project root."""

	def _write(rel_path: str, code: str, root: str = "proj") -> Path:
		project = tmp_path / root
		path = project / rel_path
		path.parent.mkdir(parents=True, exist_ok=True)
		path.write_text(dedent(code).lstrip(), encoding="utf-8")
		return project

	return _write


@pytest.fixture
def ab_project(write_java):
	write_java(
		"src/main/java/pkg/ClassA.java",
		"""
		package pkg;

		public class ClassA {
			public void methodA() {
				ClassB b = new ClassB();
				b.methodB();
			}
		}
		""",
	)
	return write_java(
		"src/main/java/pkg/ClassB.java",
		"""
		package pkg;

		public class ClassB {
			public void methodB() {
			}
		}
		""",
	)
