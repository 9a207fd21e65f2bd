from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import tree_sitter_java
from tree_sitter import Language, Node, Parser

from .classpath import ClasspathStrategy, ModelEnvironment, environment_for
from .fs_scan import list_archive_classes, read_archive_sources, scan_java_sources
from .java_model import (
	CodeModel,
	CompilationUnit,
	Element,
	ExecutableDeclaration,
	ExecutableReference,
	ImportDeclaration,
	Parameter,
	SourcePosition,
	TypeDeclaration,
	TypeReference,
	is_platform_name,
)

logger = logging.getLogger("refscope.java_parse")

JAVA = Language(tree_sitter_java.language())

TYPE_DECLARATIONS: Dict[str, str] = {
	"class_declaration": "class",
	"interface_declaration": "interface",
	"enum_declaration": "enum",
	"record_declaration": "record",
	"annotation_type_declaration": "annotation",
}
METHODS = {"method_declaration", "annotation_type_element_declaration"}
CONSTRUCTORS = {"constructor_declaration", "compact_constructor_declaration"}
FIELDS = {"field_declaration", "constant_declaration"}
BODIES = {"class_body", "interface_body", "enum_body", "annotation_type_body"}
STATEMENTS = {
	"expression_statement",
	"local_variable_declaration",
	"return_statement",
	"if_statement",
	"while_statement",
	"for_statement",
	"enhanced_for_statement",
	"do_statement",
	"throw_statement",
	"try_statement",
	"try_with_resources_statement",
	"switch_expression",
	"synchronized_statement",
	"labeled_statement",
	"assert_statement",
	"yield_statement",
	"explicit_constructor_invocation",
}
COMMENTS = {"line_comment", "block_comment"}
PRIMITIVES = {"integral_type", "floating_point_type", "boolean_type", "void_type"}
TYPE_NODES = {
	"type_identifier",
	"scoped_type_identifier",
	"generic_type",
	"array_type",
	"annotated_type",
	*PRIMITIVES,
}
LITERALS: Dict[str, str] = {
	"decimal_integer_literal": "int",
	"hex_integer_literal": "int",
	"octal_integer_literal": "int",
	"binary_integer_literal": "int",
	"decimal_floating_point_literal": "double",
	"hex_floating_point_literal": "double",
	"true": "boolean",
	"false": "boolean",
	"character_literal": "char",
	"string_literal": "java.lang.String",
	"text_block": "java.lang.String",
}
BOOLEAN_OPERATORS = {"==", "!=", "<", ">", "<=", ">=", "&&", "||"}
OBJECT = "java.lang.Object"
STRING = "java.lang.String"

# Implicitly imported; without a JDK on hand these are known by name only.
JAVA_LANG = frozenset({
	"AssertionError", "AutoCloseable", "Boolean", "Byte", "CharSequence", "Character",
	"Class", "ClassCastException", "ClassLoader", "ClassNotFoundException", "CloneNotSupportedException",
	"Cloneable", "Comparable", "Deprecated", "Double", "Enum", "Error", "Exception", "Float",
	"FunctionalInterface", "IllegalArgumentException", "IllegalStateException",
	"IndexOutOfBoundsException", "ArrayIndexOutOfBoundsException", "Integer", "InterruptedException",
	"Iterable", "Long", "Math", "NullPointerException", "Number", "NumberFormatException", "Object",
	"OutOfMemoryError", "Override", "Process", "ProcessBuilder", "Record", "ReflectiveOperationException",
	"Runnable", "Runtime", "RuntimeException", "SafeVarargs", "SecurityException", "Short",
	"StackOverflowError", "StrictMath", "String", "StringBuffer", "StringBuilder", "SuppressWarnings",
	"System", "Thread", "ThreadLocal", "Throwable", "UnsupportedOperationException", "Void",
	"ArithmeticException",
})

_MISSING = object()


def _named(node: Optional[Node]) -> List[Node]:
	if node is None:
		return []
	return [c for c in node.named_children if c.type not in COMMENTS]


def _line(node: Node) -> int:
	return node.start_point[0] + 1


def _range(node: Optional[Node]) -> Optional[Tuple[int, int]]:
	return (node.start_byte, node.end_byte) if node is not None else None


class _Scope:
	"""Where a walk currently is: the enclosing declaration and visible locals."""

	def __init__(self, unit: CompilationUnit, element: Element):
		self.unit = unit
		self.element = element
		self.variables: Dict[str, Optional[str]] = {}

	@property
	def type(self) -> Optional[TypeDeclaration]:
		return self.element.enclosing_type


class ModelBuilder:
	"""Turns Java sources into a CodeModel in three passes.

	``add_source`` declares types and executables, ``build`` then resolves
	signatures (supertypes, fields, parameters) and finally walks every body
	to record type references and calls.
	"""

	def __init__(self, environment: Optional[ModelEnvironment] = None):
		self.environment = environment or ModelEnvironment()
		self.model = CodeModel(self.environment)
		self._parser = Parser(JAVA)
		self._trees = []
		self._types: List[Tuple[TypeDeclaration, Node]] = []
		self._executables: List[Tuple[ExecutableDeclaration, Node]] = []
		self._record_components: Dict[int, List[Parameter]] = {}
		self._built = False

	# --- declaration pass -------------------------------------------------

	def add_source(self, path: str, source: bytes, archive: Optional[str] = None) -> CompilationUnit:
		tree = self._parser.parse(source)
		root = tree.root_node
		unit = CompilationUnit(path, source, archive=archive)
		unit.comment_ranges = self._comment_ranges(root)
		for child in _named(root):
			if child.type == "package_declaration":
				unit.package = self._qualified_identifier(unit, child)
			elif child.type == "import_declaration":
				unit.imports.append(
					ImportDeclaration(
						self._qualified_identifier(unit, child),
						static=any(c.type == "static" for c in child.children),
						on_demand=any(c.type == "asterisk" for c in child.children),
					)
				)
			elif child.type in TYPE_DECLARATIONS:
				self._declare_type(unit, child, None)
		self.model.units.append(unit)
		self._trees.append(tree)
		return unit

	def add_stub(self, archive: str, entry: str, qualified_name: str) -> Optional[TypeDeclaration]:
		"""Register a compiled class known only by name and archive position."""
		if self.model.lookup_type(qualified_name) is not None:
			return None
		package = ".".join(entry.split("/")[:-1])
		decl = TypeDeclaration(
			kind="class",
			simple_name=qualified_name.rsplit(".", 1)[-1],
			qualified_name=qualified_name,
			package=package,
			stub=True,
			unit=None,
			position=SourcePosition(f"{archive}!/{entry}", 0, archive),
		)
		self.model.add_type(decl)
		return decl

	def build(self) -> CodeModel:
		if not self._built:
			self._resolve_declarations()
			self._collect_references()
			self._built = True
		return self.model

	def _text(self, unit: CompilationUnit, node: Optional[Node]) -> str:
		if node is None:
			return ""
		return unit.source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")

	def _comment_ranges(self, root: Node) -> List[Tuple[int, int]]:
		ranges = []
		stack = [root]
		while stack:
			node = stack.pop()
			if node.type in COMMENTS:
				ranges.append((node.start_byte, node.end_byte))
				continue
			stack.extend(node.children)
		return sorted(ranges)

	def _qualified_identifier(self, unit: CompilationUnit, node: Node) -> str:
		for child in _named(node):
			if child.type in ("identifier", "scoped_identifier"):
				return "".join(self._text(unit, child).split())
		return ""

	def _declare_type(self, unit: CompilationUnit, node: Node, declaring: Optional[TypeDeclaration]) -> Optional[TypeDeclaration]:
		name_node = node.child_by_field_name("name")
		if name_node is None:
			return None
		simple = self._text(unit, name_node)
		if declaring is not None:
			qualified = f"{declaring.qualified_name}.{simple}"
		else:
			qualified = f"{unit.package}.{simple}" if unit.package else simple

		decl = TypeDeclaration(
			kind=TYPE_DECLARATIONS[node.type],
			simple_name=simple,
			qualified_name=qualified,
			package=unit.package,
			unit=unit,
			start_byte=node.start_byte,
			end_byte=node.end_byte,
			line=_line(node),
			parent=declaring,
		)
		if not self.model.add_type(decl):
			logger.debug(f"Duplicate type {qualified} in {unit.path}, keeping the first declaration")
			return None
		decl.type_parameters = self._type_parameter_names(unit, node.child_by_field_name("type_parameters"))
		if declaring is None:
			unit.types.append(decl)
		else:
			declaring.nested.append(decl)
		self._types.append((decl, node))

		for member in self._members(node.child_by_field_name("body")):
			if member.type in TYPE_DECLARATIONS:
				self._declare_type(unit, member, decl)
			elif member.type in METHODS:
				self._declare_executable(unit, member, decl, "method")
			elif member.type in CONSTRUCTORS:
				self._declare_executable(unit, member, decl, "constructor")
		return decl

	def _declare_executable(self, unit: CompilationUnit, node: Node, owner: TypeDeclaration, kind: str) -> None:
		if kind == "constructor":
			name = owner.simple_name
		else:
			name = self._text(unit, node.child_by_field_name("name"))
		executable = ExecutableDeclaration(
			kind,
			name,
			unit=unit,
			start_byte=node.start_byte,
			end_byte=node.end_byte,
			line=_line(node),
			parent=owner,
		)
		executable.type_parameters = self._type_parameter_names(unit, node.child_by_field_name("type_parameters"))
		owner.executables.append(executable)
		self._executables.append((executable, node))

	def _members(self, body: Optional[Node]) -> List[Node]:
		members: List[Node] = []
		for child in _named(body):
			if child.type == "enum_body_declarations":
				members.extend(_named(child))
			else:
				members.append(child)
		return members

	def _type_parameter_names(self, unit: CompilationUnit, node: Optional[Node]) -> List[str]:
		names = []
		for param in _named(node):
			if param.type != "type_parameter":
				continue
			for child in _named(param):
				if child.type in ("type_identifier", "identifier"):
					names.append(self._text(unit, child))
					break
		return names

	# --- signature pass ---------------------------------------------------

	def _resolve_declarations(self) -> None:
		for decl, node in self._types:
			unit = decl.unit
			superclass = node.child_by_field_name("superclass")
			if superclass is not None:
				types = [c for c in _named(superclass) if c.type in TYPE_NODES]
				if types:
					decl.superclass = self._qualified_type(types[0], decl)

			for child in _named(node):
				if child.type in ("super_interfaces", "extends_interfaces"):
					for type_list in _named(child):
						for type_node in _named(type_list):
							if type_node.type in TYPE_NODES:
								decl.interfaces.append(self._qualified_type(type_node, decl))

			if decl.kind == "record":
				components = self._parameters(unit, node.child_by_field_name("parameters"), decl)
				self._record_components[id(decl)] = components
				for component in components:
					decl.fields[component.name] = component.qualified_type

			for member in self._members(node.child_by_field_name("body")):
				if member.type in FIELDS:
					field_type = self._qualified_type(member.child_by_field_name("type"), decl)
					for declarator in member.children_by_field_name("declarator"):
						name = self._text(unit, declarator.child_by_field_name("name"))
						dims = "[]" if declarator.child_by_field_name("dimensions") is not None else ""
						decl.fields[name] = field_type + dims if field_type else None
				elif member.type == "enum_constant":
					decl.fields[self._text(unit, member.child_by_field_name("name"))] = decl.qualified_name

		for executable, node in self._executables:
			unit = executable.unit
			params = node.child_by_field_name("parameters")
			if params is not None:
				executable.parameters = self._parameters(unit, params, executable)
			elif node.type == "compact_constructor_declaration":
				executable.parameters = list(self._record_components.get(id(executable.declaring_type), []))
			if executable.kind == "method":
				type_node = node.child_by_field_name("type")
				if type_node is not None and type_node.type != "void_type":
					return_type = self._qualified_type(type_node, executable)
					if return_type.rstrip("[]") not in self._type_variables(executable):
						executable.return_type = return_type

	def _parameters(self, unit: CompilationUnit, params: Optional[Node], context: Element) -> List[Parameter]:
		result: List[Parameter] = []
		for child in _named(params):
			if child.type == "formal_parameter":
				type_node = child.child_by_field_name("type")
				name_node = child.child_by_field_name("name")
				varargs = False
			elif child.type == "spread_parameter":
				type_node = next((c for c in _named(child) if c.type in TYPE_NODES), None)
				name_node = self._spread_name(child)
				varargs = True
			else:
				continue
			if type_node is None:
				continue
			qualified = self._qualified_type(type_node, context)
			result.append(
				Parameter(
					self._text(unit, name_node),
					self._text(unit, type_node),
					qualified + ("[]" if varargs else ""),
					varargs=varargs,
				)
			)
		return result

	def _spread_name(self, node: Node) -> Optional[Node]:
		for child in _named(node):
			if child.type == "variable_declarator":
				return child.child_by_field_name("name")
			if child.type == "identifier":
				return child
		return None

	# --- name resolution --------------------------------------------------

	def _type_name_text(self, unit: CompilationUnit, node: Node) -> str:
		"""Dotted name of a type node, without type arguments or annotations."""
		if node.type == "generic_type":
			named = [c for c in _named(node) if c.type in ("type_identifier", "scoped_type_identifier")]
			return self._type_name_text(unit, named[0]) if named else self._text(unit, node)
		if node.type == "scoped_type_identifier":
			parts = [
				self._type_name_text(unit, c)
				for c in _named(node)
				if c.type in ("type_identifier", "scoped_type_identifier", "generic_type")
			]
			return ".".join(parts)
		return self._text(unit, node)

	def _qualified_type(self, node: Optional[Node], context: Element) -> str:
		"""Erased qualified name of a type node; type variables stay as written."""
		if node is None:
			return OBJECT
		unit = context.unit
		kind = node.type
		if kind in PRIMITIVES:
			return self._text(unit, node)
		if kind == "array_type":
			dims = self._text(unit, node.child_by_field_name("dimensions")).count("[")
			return self._qualified_type(node.child_by_field_name("element"), context) + "[]" * max(dims, 1)
		if kind == "annotated_type":
			types = [c for c in _named(node) if c.type in TYPE_NODES]
			return self._qualified_type(types[-1], context) if types else OBJECT
		if kind in ("type_identifier", "scoped_type_identifier", "generic_type"):
			written = self._type_name_text(unit, node)
			resolved = self._resolve_name(written, context, unit)
			return written if resolved is None else resolved[0]
		return self._text(unit, node)

	def _resolve_name(
		self, written: str, context: Element, unit: CompilationUnit
	) -> Optional[Tuple[str, Optional[TypeDeclaration]]]:
		"""(qualified name, declaration or None) for a type name used in ``context``.

		Returns None when the name is a type variable in scope.
		"""
		if "." in written:
			decl = self.model.lookup_type(written)
			if decl is not None:
				return written, decl
			head, rest = written.split(".", 1)
			resolved = self._resolve_name(head, context, unit)
			if resolved is None:
				return written, None
			owner = resolved[1]
			for segment in rest.split("."):
				owner = self._member_type(owner, segment) if owner is not None else None
			if owner is not None:
				return owner.qualified_name, owner
			if resolved[0] != head:
				qualified = f"{resolved[0]}.{rest}"
				return qualified, self.model.lookup_type(qualified)
			return written, None

		scopes = [context, *context.ancestors()]
		for element in scopes:
			if isinstance(element, (TypeDeclaration, ExecutableDeclaration)) and written in element.type_parameters:
				return None
		for element in scopes:
			if isinstance(element, TypeDeclaration):
				if element.simple_name == written:
					return element.qualified_name, element
				member = self._member_type(element, written)
				if member is not None:
					return member.qualified_name, member

		auto_imports = self.environment.auto_imports
		if auto_imports:
			for imp in unit.imports:
				if imp.static or imp.on_demand:
					continue
				if imp.name == written or imp.name.endswith("." + written):
					return imp.name, self.model.lookup_type(imp.name)

		same_package = f"{unit.package}.{written}" if unit.package else written
		decl = self.model.lookup_type(same_package)
		if decl is not None:
			return same_package, decl

		on_demand = [imp.name for imp in unit.imports if imp.on_demand] if auto_imports else []
		for package in on_demand:
			qualified = f"{package}.{written}"
			decl = self.model.lookup_type(qualified)
			if decl is not None:
				return qualified, decl
		if written in JAVA_LANG:
			qualified = f"java.lang.{written}"
			return qualified, self.model.lookup_type(qualified)
		for package in on_demand:
			if is_platform_name(package + "."):
				return f"{package}.{written}", None
		return written, None

	def _type_variables(self, context: Element) -> List[str]:
		names: List[str] = []
		for element in [context, *context.ancestors()]:
			if isinstance(element, (TypeDeclaration, ExecutableDeclaration)):
				names.extend(element.type_parameters)
		return names

	def _member_type(self, decl: TypeDeclaration, name: str) -> Optional[TypeDeclaration]:
		for current in self._hierarchy(decl):
			nested = current.nested_type(name)
			if nested is not None:
				return nested
		return None

	def _hierarchy(self, decl: Optional[TypeDeclaration]):
		seen = set()
		queue = [decl] if decl is not None else []
		while queue:
			current = queue.pop(0)
			if id(current) in seen:
				continue
			seen.add(id(current))
			yield current
			for name in [current.superclass, *current.interfaces]:
				if name:
					parent = self.model.lookup_type(name)
					if parent is not None:
						queue.append(parent)

	def _field_type(self, decl: Optional[TypeDeclaration], name: str):
		for current in self._hierarchy(decl):
			if name in current.fields:
				return current.fields[name]
		return _MISSING

	def _visible_field_type(self, scope: _Scope, name: str):
		for element in [scope.element, *scope.element.ancestors()]:
			if isinstance(element, TypeDeclaration):
				found = self._field_type(element, name)
				if found is not _MISSING:
					return found
		return _MISSING

	def _dotted(self, unit: CompilationUnit, node: Node) -> Optional[str]:
		if node.type == "identifier":
			return self._text(unit, node)
		if node.type == "field_access":
			obj = node.child_by_field_name("object")
			field = node.child_by_field_name("field")
			if obj is None or field is None or field.type != "identifier":
				return None
			head = self._dotted(unit, obj)
			return f"{head}.{self._text(unit, field)}" if head else None
		return None

	def _denotes_type(self, node: Optional[Node], scope: _Scope) -> Optional[Tuple[str, Optional[TypeDeclaration]]]:
		"""Resolve an expression that names a type (``ClassB`` in ``ClassB.run()``)."""
		if node is None or node.type not in ("identifier", "field_access"):
			return None
		dotted = self._dotted(scope.unit, node)
		if not dotted:
			return None
		head = dotted.split(".", 1)[0]
		if head in scope.variables or self._visible_field_type(scope, head) is not _MISSING:
			return None
		if "." not in dotted:
			resolved = self._resolve_name(dotted, scope.element, scope.unit)
			if resolved is None:
				return None
			if resolved[1] is not None or resolved[0] != dotted or dotted[:1].isupper():
				return resolved
			return None

		decl = self.model.lookup_type(dotted)
		if decl is not None:
			return dotted, decl
		if dotted.rsplit(".", 1)[-1][:1].isupper():
			resolved = self._resolve_name(dotted, scope.element, scope.unit)
			if resolved is not None and resolved[1] is not None:
				return resolved
			if is_platform_name(dotted):
				return dotted, None
		return None

	# --- expression typing ------------------------------------------------

	def _expression_type(self, node: Optional[Node], scope: _Scope) -> Optional[str]:
		if node is None:
			return None
		unit = scope.unit
		kind = node.type
		if kind in LITERALS:
			text = self._text(unit, node)
			if kind.endswith("integer_literal") and text[-1:] in ("l", "L"):
				return "long"
			if kind.endswith("floating_point_literal") and text[-1:] in ("f", "F"):
				return "float"
			return LITERALS[kind]
		if kind == "this":
			return scope.type.qualified_name if scope.type else None
		if kind == "identifier":
			name = self._text(unit, node)
			if name in scope.variables:
				return scope.variables[name]
			field_type = self._visible_field_type(scope, name)
			if field_type is not _MISSING:
				return field_type
			static = self._denotes_type(node, scope)
			return static[0] if static else None
		if kind == "field_access":
			static = self._denotes_type(node, scope)
			if static:
				return static[0]
			owner = self._expression_type(node.child_by_field_name("object"), scope)
			field = node.child_by_field_name("field")
			if owner is None or field is None:
				return None
			name = self._text(unit, field)
			if owner.endswith("[]"):
				return "int" if name == "length" else None
			owner_decl = self.model.lookup_type(owner)
			if owner_decl is None:
				return OBJECT if is_platform_name(owner) else None
			found = self._field_type(owner_decl, name)
			return None if found is _MISSING else found
		if kind == "method_invocation":
			decl, owner, _ = self._invocation_target(node, scope)
			if decl is not None:
				return decl.return_type
			return OBJECT if is_platform_name(owner) else None
		if kind in ("object_creation_expression", "cast_expression"):
			return self._qualified_type(node.child_by_field_name("type"), scope.element)
		if kind == "array_creation_expression":
			base = self._qualified_type(node.child_by_field_name("type"), scope.element)
			dims = sum(1 for c in _named(node) if c.type == "dimensions_expr")
			dims += sum(self._text(unit, c).count("[") for c in _named(node) if c.type == "dimensions")
			return base + "[]" * max(dims, 1)
		if kind == "array_access":
			array = self._expression_type(node.child_by_field_name("array"), scope)
			return array[:-2] if array and array.endswith("[]") else None
		if kind == "parenthesized_expression":
			inner = _named(node)
			return self._expression_type(inner[0], scope) if inner else None
		if kind == "ternary_expression":
			return self._expression_type(node.child_by_field_name("consequence"), scope)
		if kind == "assignment_expression":
			return self._expression_type(node.child_by_field_name("left"), scope)
		if kind == "instanceof_expression":
			return "boolean"
		if kind == "class_literal":
			return "java.lang.Class"
		if kind == "unary_expression":
			operator = self._text(unit, node.child_by_field_name("operator"))
			if operator == "!":
				return "boolean"
			return self._expression_type(node.child_by_field_name("operand"), scope)
		if kind == "binary_expression":
			operator = self._text(unit, node.child_by_field_name("operator"))
			if operator in BOOLEAN_OPERATORS:
				return "boolean"
			left = self._expression_type(node.child_by_field_name("left"), scope)
			right = self._expression_type(node.child_by_field_name("right"), scope)
			if operator == "+" and STRING in (left, right):
				return STRING
			return left
		return None

	def _argument_types(self, node: Node, scope: _Scope) -> List[str]:
		arguments = node.child_by_field_name("arguments")
		return [self._expression_type(arg, scope) or "?" for arg in _named(arguments)]

	def _invocation_target(
		self, node: Node, scope: _Scope
	) -> Tuple[Optional[ExecutableDeclaration], Optional[str], List[str]]:
		"""(declaration, declaring type name, argument types) of a method call."""
		unit = scope.unit
		name = self._text(unit, node.child_by_field_name("name"))
		arg_types = self._argument_types(node, scope)
		obj = node.child_by_field_name("object")

		if obj is None:
			for element in [scope.element, *scope.element.ancestors()]:
				if isinstance(element, TypeDeclaration):
					decl = self._find_executable(element, name, arg_types)
					if decl is not None:
						return decl, decl.declaring_type.qualified_name, arg_types
			for imp in unit.imports:
				if not imp.static:
					continue
				if imp.on_demand:
					owner = imp.name
				elif imp.name.endswith("." + name):
					owner = imp.name.rsplit(".", 1)[0]
				else:
					continue
				decl = self._find_executable(self.model.lookup_type(owner), name, arg_types)
				if decl is not None:
					return decl, decl.declaring_type.qualified_name, arg_types
				if not imp.on_demand:
					return None, owner, arg_types
			current = scope.type
			return None, current.qualified_name if current else None, arg_types

		if obj.type == "super":
			owner = scope.type.superclass if scope.type else None
		else:
			owner = self._expression_type(obj, scope)
		if owner is None:
			return None, None, arg_types
		decl = self._find_executable(self.model.lookup_type(owner), name, arg_types)
		if decl is not None:
			return decl, decl.declaring_type.qualified_name, arg_types
		return None, owner, arg_types

	def _find_executable(
		self, decl: Optional[TypeDeclaration], name: str, arg_types: Optional[List[str]]
	) -> Optional[ExecutableDeclaration]:
		arity = len(arg_types) if arg_types is not None else None
		for current in self._hierarchy(decl):
			candidates = [
				e for e in current.executables
				if e.kind == "method" and e.simple_name == name and e.accepts_arity(arity)
			]
			if candidates:
				return _best_match(candidates, arg_types)
		return None

	def _find_constructor(self, decl: TypeDeclaration, arg_types: List[str]) -> Optional[ExecutableDeclaration]:
		candidates = [e for e in decl.constructors if e.accepts_arity(len(arg_types))]
		return _best_match(candidates, arg_types) if candidates else None

	# --- reference pass ---------------------------------------------------

	def _collect_references(self) -> None:
		for decl, node in self._types:
			for child in _named(node):
				if child.type == "identifier":
					continue
				if child.type in BODIES:
					for member in self._members(child):
						if member.type in TYPE_DECLARATIONS or member.type in METHODS or member.type in CONSTRUCTORS:
							continue
						self._walk(member, _Scope(decl.unit, decl))
				else:
					self._walk(child, _Scope(decl.unit, decl))

		for executable, node in self._executables:
			scope = _Scope(executable.unit, executable)
			for param in executable.parameters:
				scope.variables[param.name] = param.qualified_type
			for child in _named(node):
				if child.type == "identifier":
					continue
				self._walk(child, scope)

	def _walk(self, root: Node, scope: _Scope) -> None:
		unit = scope.unit
		stack: List[Tuple[Node, Optional[Node]]] = [(root, None)]
		while stack:
			node, statement = stack.pop()
			kind = node.type
			if kind in COMMENTS:
				continue
			if kind in STATEMENTS:
				statement = node

			if kind == "type_identifier":
				self._add_type_reference(node, self._text(unit, node), scope, statement)
				continue
			if kind == "scoped_type_identifier":
				self._add_type_reference(node, self._type_name_text(unit, node), scope, statement)
				inner = self._nested_type_arguments(node)
				stack.extend((c, statement) for c in reversed(inner))
				continue
			if kind in ("annotation", "marker_annotation"):
				name = node.child_by_field_name("name")
				if name is not None:
					self._add_type_reference(name, "".join(self._text(unit, name).split()), scope, statement)
				arguments = node.child_by_field_name("arguments")
				if arguments is not None:
					stack.append((arguments, statement))
				continue

			children = _named(node)
			if kind == "local_variable_declaration":
				if self._declare_locals(node, scope):
					type_node = node.child_by_field_name("type")
					children = [c for c in children if c.start_byte != type_node.start_byte or c.type != type_node.type]
			elif kind in ("formal_parameter", "catch_formal_parameter", "enhanced_for_statement", "resource", "spread_parameter"):
				self._declare_variable(node, scope)
			elif kind == "lambda_expression":
				self._declare_lambda(node, scope)
			elif kind == "method_invocation":
				self._add_invocation(node, scope, statement)
			elif kind == "object_creation_expression":
				self._add_constructor_call(node, scope, statement)
			elif kind == "explicit_constructor_invocation":
				self._add_explicit_constructor_call(node, scope, statement)
			elif kind == "method_reference":
				self._add_method_reference(node, scope, statement)
			elif kind == "field_access":
				self._add_static_access(node.child_by_field_name("object"), scope, statement)

			stack.extend((c, statement) for c in reversed(children))

	def _nested_type_arguments(self, node: Node) -> List[Node]:
		found = []
		stack = [node]
		while stack:
			current = stack.pop()
			for child in _named(current):
				if child.type in ("type_arguments", "annotation", "marker_annotation"):
					found.append(child)
				elif child.type in ("scoped_type_identifier", "generic_type"):
					stack.append(child)
		return found

	def _declare_locals(self, node: Node, scope: _Scope) -> bool:
		"""Record local variables; True when the declaration uses ``var``."""
		type_node = node.child_by_field_name("type")
		inferred = type_node is not None and self._text(scope.unit, type_node) == "var"
		declared = None if inferred else self._qualified_type(type_node, scope.element)
		for declarator in node.children_by_field_name("declarator"):
			name_node = declarator.child_by_field_name("name")
			if name_node is None:
				continue
			if inferred:
				var_type = self._expression_type(declarator.child_by_field_name("value"), scope)
			elif declared and declarator.child_by_field_name("dimensions") is not None:
				var_type = declared + "[]"
			else:
				var_type = declared
			scope.variables[self._text(scope.unit, name_node)] = var_type
		return inferred

	def _declare_variable(self, node: Node, scope: _Scope) -> None:
		if node.type == "spread_parameter":
			type_node = next((c for c in _named(node) if c.type in TYPE_NODES), None)
			name_node = self._spread_name(node)
			suffix = "[]"
		else:
			type_node = node.child_by_field_name("type")
			name_node = node.child_by_field_name("name")
			suffix = ""
			if node.type == "catch_formal_parameter":
				catch_type = next((c for c in _named(node) if c.type == "catch_type"), None)
				alternatives = [c for c in _named(catch_type) if c.type in TYPE_NODES]
				type_node = alternatives[0] if len(alternatives) == 1 else None
		if name_node is None:
			return
		if type_node is not None and self._text(scope.unit, type_node) == "var":
			var_type = self._expression_type(node.child_by_field_name("value"), scope)
			if node.type == "enhanced_for_statement":
				var_type = var_type[:-2] if var_type and var_type.endswith("[]") else None
		elif type_node is not None:
			var_type = self._qualified_type(type_node, scope.element) + suffix
		else:
			var_type = None
		scope.variables[self._text(scope.unit, name_node)] = var_type

	def _declare_lambda(self, node: Node, scope: _Scope) -> None:
		params = node.child_by_field_name("parameters")
		if params is None:
			return
		if params.type == "identifier":
			scope.variables[self._text(scope.unit, params)] = None
		elif params.type == "inferred_parameters":
			for ident in _named(params):
				scope.variables[self._text(scope.unit, ident)] = None

	def _add_type_reference(self, node: Node, written: str, scope: _Scope, statement: Optional[Node]) -> None:
		if not written or written == "var":
			return
		resolved = self._resolve_name(written, scope.element, scope.unit)
		if resolved is None:
			return
		self.model.type_references.append(
			TypeReference(
				name=written,
				qualified_name=resolved[0],
				declaration=resolved[1],
				statement=_range(statement),
				unit=scope.unit,
				start_byte=node.start_byte,
				end_byte=node.end_byte,
				line=_line(node),
				parent=scope.element,
			)
		)

	def _add_static_access(self, node: Optional[Node], scope: _Scope, statement: Optional[Node]) -> None:
		resolved = self._denotes_type(node, scope)
		if resolved is None:
			return
		self.model.type_references.append(
			TypeReference(
				name=self._dotted(scope.unit, node) or "",
				qualified_name=resolved[0],
				declaration=resolved[1],
				statement=_range(statement),
				unit=scope.unit,
				start_byte=node.start_byte,
				end_byte=node.end_byte,
				line=_line(node),
				parent=scope.element,
			)
		)

	def _add_executable_reference(
		self,
		node: Node,
		name: str,
		owner: Optional[str],
		decl: Optional[ExecutableDeclaration],
		arg_types: List[str],
		scope: _Scope,
		statement: Optional[Node],
	) -> None:
		self.model.executable_references.append(
			ExecutableReference(
				name=name,
				declaring_type=owner,
				declaration=decl,
				argument_types=arg_types,
				declaring_declaration=self.model.lookup_type(owner) if owner else None,
				statement=_range(statement),
				unit=scope.unit,
				start_byte=node.start_byte,
				end_byte=node.end_byte,
				line=_line(node),
				parent=scope.element,
			)
		)

	def _add_invocation(self, node: Node, scope: _Scope, statement: Optional[Node]) -> None:
		self._add_static_access(node.child_by_field_name("object"), scope, statement)
		decl, owner, arg_types = self._invocation_target(node, scope)
		name = self._text(scope.unit, node.child_by_field_name("name"))
		self._add_executable_reference(node, name, owner, decl, arg_types, scope, statement)

	def _add_constructor_call(self, node: Node, scope: _Scope, statement: Optional[Node]) -> None:
		type_node = node.child_by_field_name("type")
		if type_node is None:
			return
		owner = self._qualified_type(type_node, scope.element)
		owner_decl = self.model.lookup_type(owner)
		# No declared constructor: the call only counts as a use of the type.
		if owner_decl is None or not owner_decl.constructors:
			return
		arg_types = self._argument_types(node, scope)
		decl = self._find_constructor(owner_decl, arg_types)
		self._add_executable_reference(node, owner_decl.simple_name, owner, decl, arg_types, scope, statement)

	def _add_explicit_constructor_call(self, node: Node, scope: _Scope, statement: Optional[Node]) -> None:
		ctor = node.child_by_field_name("constructor")
		current = scope.type
		if ctor is None or current is None:
			return
		if ctor.type == "super":
			owner_decl = self.model.lookup_type(current.superclass) if current.superclass else None
		else:
			owner_decl = current
		if owner_decl is None or not owner_decl.constructors:
			return
		arg_types = self._argument_types(node, scope)
		decl = self._find_constructor(owner_decl, arg_types)
		self._add_executable_reference(
			node, owner_decl.simple_name, owner_decl.qualified_name, decl, arg_types, scope, statement
		)

	def _add_method_reference(self, node: Node, scope: _Scope, statement: Optional[Node]) -> None:
		children = _named(node)
		if not children:
			return
		left = children[0]
		name_node = children[-1] if len(children) > 1 and children[-1].type == "identifier" else None
		if left.type in TYPE_NODES:
			owner = self._qualified_type(left, scope.element)
		else:
			self._add_static_access(left, scope, statement)
			owner = self._expression_type(left, scope)
		owner_decl = self.model.lookup_type(owner) if owner else None
		if owner_decl is None:
			return
		if name_node is None:
			constructors = owner_decl.constructors
			decl = constructors[0] if len(constructors) == 1 else None
			name = owner_decl.simple_name
		else:
			name = self._text(scope.unit, name_node)
			decl = self._find_executable(owner_decl, name, None)
		if decl is None:
			return
		self._add_executable_reference(
			node,
			name,
			decl.declaring_type.qualified_name,
			decl,
			[p.qualified_type for p in decl.parameters],
			scope,
			statement,
		)


def _best_match(candidates: List[ExecutableDeclaration], arg_types: Optional[List[str]]) -> ExecutableDeclaration:
	if arg_types is None or len(candidates) == 1:
		return candidates[0]

	def score(candidate: ExecutableDeclaration) -> int:
		return sum(1 for p, a in zip(candidate.parameters, arg_types) if a == p.qualified_type)

	return max(candidates, key=score)


def parse_java_source(path: str, text: str, environment: Optional[ModelEnvironment] = None) -> CodeModel:
	"""Model of a single source file."""
	builder = ModelBuilder(environment)
	builder.add_source(path, text.encode("utf-8"))
	return builder.build()


def build_model(
	project_dir: str | Path,
	strategy: Optional[ClasspathStrategy] = None,
	environment: Optional[ModelEnvironment] = None,
) -> CodeModel:
	"""Parse every Java source under ``project_dir`` into one CodeModel.

	Classpath archives contribute their ``.java`` entries as sources and their
	classes as position-only stubs, so references into them can be traced back
	to the archive they came from.
	"""
	root = Path(project_dir)
	if not root.is_dir():
		raise FileNotFoundError(f"Project directory does not exist: {root}")
	environment = environment or environment_for(root, strategy)
	builder = ModelBuilder(environment)

	sources = scan_java_sources(str(root))
	for info in sources:
		try:
			with open(info.path, "rb") as fh:
				data = fh.read()
		except OSError as e:
			logger.warning(f"Skipping unreadable source {info.path}: {e}")
			continue
		builder.add_source(info.path, data)

	if not environment.no_classpath:
		for archive in environment.archives:
			for entry, data in read_archive_sources(archive):
				builder.add_source(f"{archive}!/{entry}", data, archive=archive)
		for archive in environment.archives:
			for entry, qualified_name in list_archive_classes(archive):
				builder.add_stub(archive, entry, qualified_name)

	model = builder.build()
	logger.info(
		f"Built source model for {root}: {len(sources)} files, {len(model.all_types())} types, "
		f"{len(model.type_references)} type references, {len(model.executable_references)} calls"
	)
	return model
