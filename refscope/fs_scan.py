from __future__ import annotations

import logging
import os
import zipfile
from typing import Dict, Iterator, List, Tuple

from .model import FileInfo

logger = logging.getLogger("refscope.fs_scan")


EXTENSION_LANGUAGE: Dict[str, str] = {
	".java": "java",
	".kt": "kotlin",
	".groovy": "groovy",
	".class": "bytecode",
}

IGNORED_DIRS = {".git", ".svn", ".hg", ".gradle", ".idea", ".mvn", "node_modules", "__pycache__"}
# Only skipped when they sit next to a build file, so a `build` package survives.
BUILD_OUTPUT_DIRS = {"target", "build", "out", "bin"}
BUILD_FILES = {"pom.xml", "build.gradle", "build.gradle.kts"}


def detect_language(filename: str) -> str:
	_, ext = os.path.splitext(filename)
	return EXTENSION_LANGUAGE.get(ext.lower(), "unknown")


def scan_repository(root: str) -> List[FileInfo]:
	files: List[FileInfo] = []
	for dirpath, dirnames, filenames in os.walk(root):
		has_build_file = any(f in BUILD_FILES for f in filenames)
		dirnames[:] = sorted(
			d for d in dirnames
			if d not in IGNORED_DIRS and not (has_build_file and d in BUILD_OUTPUT_DIRS)
		)
		for filename in sorted(filenames):
			path = os.path.join(dirpath, filename)
			files.append(
				FileInfo(
					path=path,
					rel_path=os.path.relpath(path, root),
					language=detect_language(filename),
				)
			)
	return files


def scan_java_sources(root: str) -> List[FileInfo]:
	return [f for f in scan_repository(root) if f.language == "java"]


def class_entry_to_name(entry: str) -> str | None:
	"""``com/acme/Outer$Inner.class`` -> ``com.acme.Outer.Inner``; None for
	anonymous/local classes and module or package descriptors."""
	if not entry.endswith(".class"):
		return None
	path = entry[: -len(".class")]
	if path.startswith("META-INF/versions/"):
		path = path.split("/", 3)[-1]
	if path.startswith("META-INF/"):
		return None
	segments = path.split("/")
	if segments[-1] in ("module-info", "package-info"):
		return None
	nested = segments[-1].split("$")
	if any(not part or part[0].isdigit() for part in nested):
		return None
	return ".".join(segments[:-1] + nested)


def read_archive_sources(archive: str) -> Iterator[Tuple[str, bytes]]:
	"""Yield (entry name, bytes) for every ``.java`` entry of a jar."""
	try:
		with zipfile.ZipFile(archive) as zf:
			for info in zf.infolist():
				if info.is_dir() or not info.filename.endswith(".java"):
					continue
				yield info.filename, zf.read(info)
	except (OSError, zipfile.BadZipFile) as e:
		logger.warning(f"Skipping unreadable archive {archive}: {e}")


def list_archive_classes(archive: str) -> List[Tuple[str, str]]:
	"""(entry name, qualified type name) for the named classes in a jar."""
	classes: List[Tuple[str, str]] = []
	try:
		with zipfile.ZipFile(archive) as zf:
			for entry in zf.namelist():
				name = class_entry_to_name(entry)
				if name:
					classes.append((entry, name))
	except (OSError, zipfile.BadZipFile) as e:
		logger.warning(f"Skipping unreadable archive {archive}: {e}")
	return classes
