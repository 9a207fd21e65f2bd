"""In-memory model of a Java source tree.

Declarations (types, executables) and reference nodes (type uses, calls)
built by ``java_parse`` from tree-sitter syntax trees. Elements keep a parent
link to their nearest enclosing declaration, which is what reference
contexts and containment checks are computed from.
"""
from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Tuple

PLATFORM_PREFIXES = ("java.", "javax.", "jdk.")
UNKNOWN_DECLARING_TYPE = "unknown_declaring_type"


def is_platform_name(qualified_name: Optional[str]) -> bool:
	return bool(qualified_name) and qualified_name.startswith(PLATFORM_PREFIXES)


def simple_type_name(type_name: str) -> str:
	"""``java.util.List<String>[]`` -> ``List[]``; varargs become ``[]``."""
	text = type_name.strip()
	dims = ""
	if text.endswith("..."):
		text = text[:-3].strip()
		dims = "[]"
	while text.endswith("[]"):
		text = text[:-2].strip()
		dims += "[]"
	depth = 0
	erased = []
	for ch in text:
		if ch == "<":
			depth += 1
		elif ch == ">":
			depth -= 1
		elif depth == 0:
			erased.append(ch)
	base = "".join(erased).strip()
	return base.rsplit(".", 1)[-1].strip() + dims


class SourcePosition:
	def __init__(self, file: str, line: int, archive: Optional[str] = None):
		self.file = file
		self.line = line
		self.archive = archive

	@property
	def in_archive(self) -> bool:
		return self.archive is not None

	def __repr__(self) -> str:
		return f"SourcePosition({self.file}:{self.line})"


class ImportDeclaration:
	def __init__(self, name: str, static: bool = False, on_demand: bool = False):
		self.name = name
		self.static = static
		self.on_demand = on_demand


class CompilationUnit:
	"""One parsed ``.java`` file, on disk or inside an archive."""

	def __init__(self, path: str, source: bytes, archive: Optional[str] = None):
		self.path = path
		self.source = source
		self.archive = archive
		self.package = ""
		self.imports: List[ImportDeclaration] = []
		self.types: List["TypeDeclaration"] = []
		self.comment_ranges: List[Tuple[int, int]] = []

	def text(self, start: int, end: int, comments: bool = True) -> str:
		if comments:
			return self.source[start:end].decode("utf-8", errors="replace")
		pieces = []
		cursor = start
		for c_start, c_end in self.comment_ranges:
			if c_end <= cursor or c_start >= end:
				continue
			pieces.append(self.source[cursor:c_start])
			cursor = max(cursor, c_end)
		pieces.append(self.source[cursor:end])
		return b"".join(pieces).decode("utf-8", errors="replace")


class Element:
	"""Base for everything that sits somewhere in the source tree."""

	def __init__(
		self,
		unit: Optional[CompilationUnit],
		start_byte: int = 0,
		end_byte: int = 0,
		line: int = 0,
		parent: Optional["Element"] = None,
		position: Optional[SourcePosition] = None,
	):
		self.unit = unit
		self.start_byte = start_byte
		self.end_byte = end_byte
		self.parent = parent
		if position is None and unit is not None:
			position = SourcePosition(unit.path, line, unit.archive)
		self.position = position

	def source_text(self, comments: bool = True) -> str:
		if self.unit is None:
			return ""
		return self.unit.text(self.start_byte, self.end_byte, comments)

	def ancestors(self) -> Iterator["Element"]:
		current = self.parent
		while current is not None:
			yield current
			current = current.parent

	def is_within(self, other: "Element") -> bool:
		"""Strict containment: ``other`` is one of this element's ancestors."""
		return any(a is other for a in self.ancestors())

	@property
	def enclosing_type(self) -> Optional["TypeDeclaration"]:
		for element in [self, *self.ancestors()]:
			if isinstance(element, TypeDeclaration):
				return element
		return None


class TypeDeclaration(Element):
	def __init__(
		self,
		kind: str,
		simple_name: str,
		qualified_name: str,
		package: str = "",
		stub: bool = False,
		**kwargs,
	):
		super().__init__(**kwargs)
		self.kind = kind
		self.simple_name = simple_name
		self.qualified_name = qualified_name
		self.package = package
		self.stub = stub
		self.type_parameters: List[str] = []
		self.superclass: Optional[str] = None
		self.interfaces: List[str] = []
		self.fields: Dict[str, Optional[str]] = {}
		self.executables: List["ExecutableDeclaration"] = []
		self.nested: List["TypeDeclaration"] = []

	@property
	def declaring_type(self) -> Optional["TypeDeclaration"]:
		return self.parent if isinstance(self.parent, TypeDeclaration) else None

	@property
	def constructors(self) -> List["ExecutableDeclaration"]:
		return [e for e in self.executables if e.kind == "constructor"]

	def nested_type(self, simple_name: str) -> Optional["TypeDeclaration"]:
		for t in self.nested:
			if t.simple_name == simple_name:
				return t
		return None

	def __repr__(self) -> str:
		return f"TypeDeclaration({self.qualified_name})"


class Parameter:
	def __init__(self, name: str, type_name: str, qualified_type: str, varargs: bool = False):
		self.name = name
		self.type_name = type_name
		self.qualified_type = qualified_type
		self.varargs = varargs

	@property
	def simple_type(self) -> str:
		return simple_type_name(self.type_name + ("..." if self.varargs else ""))


class ExecutableDeclaration(Element):
	def __init__(self, kind: str, simple_name: str, **kwargs):
		super().__init__(**kwargs)
		self.kind = kind
		self.simple_name = simple_name
		self.parameters: List[Parameter] = []
		self.return_type: Optional[str] = None
		self.type_parameters: List[str] = []

	@property
	def declaring_type(self) -> TypeDeclaration:
		return self.parent  # type: ignore[return-value]

	@property
	def signature(self) -> str:
		return f"{self.simple_name}({','.join(p.qualified_type for p in self.parameters)})"

	@property
	def qualified_name(self) -> str:
		return f"{self.declaring_type.qualified_name}#{self.signature}"

	@property
	def is_varargs(self) -> bool:
		return bool(self.parameters) and self.parameters[-1].varargs

	def accepts_arity(self, count: Optional[int]) -> bool:
		if count is None:
			return True
		n = len(self.parameters)
		if self.is_varargs:
			return count >= n - 1
		return count == n

	def __repr__(self) -> str:
		return f"ExecutableDeclaration({self.qualified_name})"


class TypeReference(Element):
	"""A use of a type name somewhere in the source."""

	def __init__(
		self,
		name: str,
		qualified_name: str,
		declaration: Optional[TypeDeclaration],
		statement: Optional[Tuple[int, int]] = None,
		**kwargs,
	):
		super().__init__(**kwargs)
		self.name = name
		self.qualified_name = qualified_name
		self.declaration = declaration
		self.statement = statement

	@property
	def usage_context(self) -> Optional[Element]:
		return self.parent

	def statement_text(self, comments: bool = True) -> Optional[str]:
		if self.statement is None or self.unit is None:
			return None
		return self.unit.text(self.statement[0], self.statement[1], comments)

	def __repr__(self) -> str:
		return f"TypeReference({self.qualified_name})"


class ExecutableReference(TypeReference):
	"""A call (method invocation, constructor call, method reference)."""

	def __init__(
		self,
		name: str,
		declaring_type: Optional[str],
		declaration: Optional[ExecutableDeclaration],
		argument_types: List[str],
		declaring_declaration: Optional[TypeDeclaration] = None,
		**kwargs,
	):
		if declaration is not None:
			qualified_name = declaration.qualified_name
		else:
			owner = declaring_type or UNKNOWN_DECLARING_TYPE
			qualified_name = f"{owner}#{name}({','.join(argument_types)})"
		super().__init__(name=name, qualified_name=qualified_name, declaration=None, **kwargs)
		self.declaration = declaration
		self.declaring_type = declaring_type
		self.declaring_declaration = declaring_declaration
		self.argument_types = argument_types

	def __repr__(self) -> str:
		return f"ExecutableReference({self.qualified_name})"


class CodeModel:
	def __init__(self, environment=None):
		self.environment = environment
		self.units: List[CompilationUnit] = []
		self.type_references: List[TypeReference] = []
		self.executable_references: List[ExecutableReference] = []
		self._types: Dict[str, TypeDeclaration] = {}

	def add_type(self, declaration: TypeDeclaration) -> bool:
		if declaration.qualified_name in self._types:
			return False
		self._types[declaration.qualified_name] = declaration
		return True

	def lookup_type(self, qualified_name: str) -> Optional[TypeDeclaration]:
		"""Any known type, including archive stubs."""
		return self._types.get(qualified_name)

	def top_level_type(self, qualified_name: str) -> Optional[TypeDeclaration]:
		t = self._types.get(qualified_name)
		if t is None or t.stub or t.declaring_type is not None:
			return None
		return t

	def all_types(self) -> List[TypeDeclaration]:
		"""Types declared in source, nested ones included."""
		return [t for t in self._types.values() if not t.stub]
