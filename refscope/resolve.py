"""Turning a code snippet into a declaration in the model.

Accepted forms: ``pkg.Type``, ``pkg.Type#method(ParamType, ...)`` and the same
with a bare simple type name. Parameter types are compared by simple name,
so ``pkg.A#m(int, java.lang.String)`` and ``pkg.A#m(int,String)`` are the same
target.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from refscope.errors import SpecifierError
from refscope.java_model import CodeModel, ExecutableDeclaration, TypeDeclaration, simple_type_name

Target = Union[TypeDeclaration, ExecutableDeclaration]


@dataclass(frozen=True)
class TargetSpecifier:
	type_name: str
	method_name: Optional[str] = None
	parameter_types: Tuple[str, ...] = ()

	@classmethod
	def parse(cls, text: str) -> "TargetSpecifier":
		if text is None or not text.strip():
			raise SpecifierError("code snippet is empty")
		text = text.strip()
		if "#" not in text:
			return cls(_normalize_type_name(text))

		type_part, member = text.split("#", 1)
		type_part = _normalize_type_name(type_part)
		if not type_part:
			raise SpecifierError(f"missing type before '#': {text}")
		member = member.strip()
		if "(" not in member or not member.endswith(")"):
			raise SpecifierError(f"method part must look like name(Type, ...): {text}")
		name, params = member[:-1].split("(", 1)
		name = name.strip()
		if not name:
			raise SpecifierError(f"missing method name: {text}")
		return cls(type_part, name, tuple(simple_type_name(p) for p in _split_parameters(params)))

	@property
	def is_method(self) -> bool:
		return self.method_name is not None

	@property
	def is_qualified(self) -> bool:
		return "." in self.type_name

	def __str__(self) -> str:
		if not self.is_method:
			return self.type_name
		return f"{self.type_name}#{self.method_name}({','.join(self.parameter_types)})"


def _normalize_type_name(text: str) -> str:
	# Binary names (Outer$Inner) name the same nested type.
	return "".join(text.split()).replace("$", ".")


def _split_parameters(params: str) -> List[str]:
	parts: List[str] = []
	depth = 0
	current = []
	for ch in params:
		if ch == "<":
			depth += 1
		elif ch == ">":
			depth -= 1
		if ch == "," and depth == 0:
			parts.append("".join(current).strip())
			current = []
		else:
			current.append(ch)
	tail = "".join(current).strip()
	if tail or parts:
		parts.append(tail)
	if any(not p for p in parts):
		raise SpecifierError(f"empty parameter type in ({params})")
	return parts


def _member(decl: TypeDeclaration, specifier: TargetSpecifier) -> Optional[Target]:
	if not specifier.is_method:
		return decl
	for executable in decl.executables:
		if executable.kind != "method" or executable.simple_name != specifier.method_name:
			continue
		declared = tuple(p.simple_type for p in executable.parameters)
		if declared == specifier.parameter_types:
			return executable
	# Constructors are addressed by the type's own simple name.
	if specifier.method_name == decl.simple_name:
		for executable in decl.constructors:
			if tuple(p.simple_type for p in executable.parameters) == specifier.parameter_types:
				return executable
	return None


def find_type(model: CodeModel, qualified_name: str) -> Optional[TypeDeclaration]:
	decl = model.top_level_type(qualified_name)
	if decl is not None:
		return decl
	for candidate in model.all_types():
		if candidate.qualified_name == qualified_name:
			return candidate
	return None


def resolve(model: CodeModel, specifier: TargetSpecifier) -> Optional[Target]:
	decl = find_type(model, specifier.type_name)
	if decl is None:
		return None
	return _member(decl, specifier)


def resolve_by_simple_name(model: CodeModel, specifier: TargetSpecifier) -> Optional[Target]:
	for decl in model.all_types():
		if decl.simple_name == specifier.type_name:
			return _member(decl, specifier)
	return None


def find_target(model: CodeModel, snippet: Union[str, TargetSpecifier]) -> Tuple[Optional[Target], bool]:
	"""Resolve a snippet; the flag tells whether the simple-name scan ran."""
	specifier = snippet if isinstance(snippet, TargetSpecifier) else TargetSpecifier.parse(snippet)
	if find_type(model, specifier.type_name) is None and not specifier.is_qualified:
		return resolve_by_simple_name(model, specifier), True
	return resolve(model, specifier), False
