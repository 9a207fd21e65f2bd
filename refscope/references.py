"""Collecting the references into and out of a target declaration.

TO references are places elsewhere that use the target; their context is
the enclosing declaration's source. FROM references are uses inside the
target; their context is the enclosing statement. Results go into a set, so a
place that uses the target twice the same way is reported once.
"""
from __future__ import annotations

import logging
import os
import re
from typing import Optional, Set

from refscope.java_model import (
	CodeModel,
	Element,
	ExecutableDeclaration,
	ExecutableReference,
	TypeDeclaration,
	TypeReference,
	is_platform_name,
)
from refscope.model import Direction, Reference
from refscope.resolve import Target

logger = logging.getLogger("refscope.references")

CONTEXT_LIMIT = 2000
_VERSION_SUFFIX = re.compile(r"-\d")

ORIGIN_SELF = "self"
ORIGIN_PLATFORM = "platform"


def artifact_stem(archive: str) -> str:
	"""``lib/commons-lang3-3.12.0.jar`` -> ``commons-lang3``."""
	name = os.path.basename(archive.replace("\\", "/"))
	if name.lower().endswith(".jar"):
		name = name[:-4]
	match = _VERSION_SUFFIX.search(name)
	return name[: match.start()] if match else name


def classify_origin(element: Optional[Element], qualified_name: str) -> str:
	"""``dependency:<artifact>`` when the element was read from an archive,
	``platform`` for JDK namespaces, ``self`` otherwise."""
	if element is not None and element.position is not None and element.position.in_archive:
		return f"dependency:{artifact_stem(element.position.archive)}"
	if is_platform_name(qualified_name):
		return ORIGIN_PLATFORM
	return ORIGIN_SELF


def _truncate(text: str) -> str:
	if len(text) <= CONTEXT_LIMIT:
		return text
	return text[: CONTEXT_LIMIT - 3] + "..."


class ReferenceWalker:
	def __init__(self, model: CodeModel, comments: Optional[bool] = None):
		self.model = model
		if comments is None:
			comments = model.environment.comments_enabled if model.environment is not None else True
		self.comments = comments

	def walk(self, target: Target) -> Set[Reference]:
		references: Set[Reference] = set()
		self.collect_to(target, references)
		self.collect_from(target, references)
		logger.info(f"Found {len(references)} references for {target.qualified_name}")
		return references

	def collect_to(self, target: Target, into: Set[Reference]) -> Set[Reference]:
		if isinstance(target, ExecutableDeclaration):
			candidates = self.model.executable_references
		else:
			candidates = self.model.type_references

		for ref in candidates:
			if not self._points_at(ref, target):
				continue
			context = ref.usage_context
			if context is None or context is target:
				continue
			into.add(
				Reference(
					origin=classify_origin(context, context.qualified_name),
					qualified_name=context.qualified_name,
					code_context=context.source_text(self.comments),
					direction=Direction.TO,
				)
			)
		return into

	def collect_from(self, target: Target, into: Set[Reference]) -> Set[Reference]:
		for ref in self.model.type_references:
			if not ref.is_within(target) or is_platform_name(ref.qualified_name):
				continue
			into.add(self._from_reference(ref, ref.declaration, ref.qualified_name))

		for call in self.model.executable_references:
			if not call.is_within(target):
				continue
			if call.declaring_type is None or is_platform_name(call.declaring_type):
				continue
			declaration = call.declaration or call.declaring_declaration
			into.add(self._from_reference(call, declaration, call.qualified_name))
		return into

	def _points_at(self, ref: TypeReference, target: Target) -> bool:
		if ref.declaration is not None:
			return ref.declaration is target
		if isinstance(target, TypeDeclaration) and isinstance(ref, ExecutableReference):
			return False
		return ref.qualified_name == target.qualified_name

	def _from_reference(self, ref: TypeReference, declaration: Optional[Element], qualified_name: str) -> Reference:
		context = ref.statement_text(self.comments)
		if context is None:
			enclosing = ref.usage_context
			context = enclosing.source_text(self.comments) if enclosing is not None else ""
		return Reference(
			origin=classify_origin(declaration, qualified_name),
			qualified_name=qualified_name,
			code_context=_truncate(context),
			direction=Direction.FROM,
		)


def find_references(model: CodeModel, target: Optional[Target]) -> Set[Reference]:
	"""Every TO and FROM reference for ``target``; empty when there is none."""
	if target is None:
		return set()
	return ReferenceWalker(model).walk(target)
