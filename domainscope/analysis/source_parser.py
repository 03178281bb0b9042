"""
Source Parsers

tree-sitter based parsers that turn source text into function spans,
import specifiers and nesting information. ComponentAnalyzer only
depends on the narrow ``SourceParser`` interface, so a parser can be
swapped or faked in tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

import tree_sitter
import tree_sitter_javascript
import tree_sitter_python
import tree_sitter_typescript

from domainscope.config import IGNORED_SUFFIXES, SOURCE_EXTENSIONS
from domainscope.utils.logging_config import get_logger

logger = get_logger(__name__)

_TS_LANGUAGE = tree_sitter.Language(tree_sitter_typescript.language_typescript())
_TSX_LANGUAGE = tree_sitter.Language(tree_sitter_typescript.language_tsx())
_JS_LANGUAGE = tree_sitter.Language(tree_sitter_javascript.language())
_PYTHON_LANGUAGE = tree_sitter.Language(tree_sitter_python.language())


@dataclass(frozen=True)
class FunctionSpan:
    """A function-like declaration located in a source file."""
    name: str
    start_line: int  # 1-based
    end_line: int    # 1-based, inclusive
    complexity: int
    args: int
    has_doc: bool
    exported: bool
    nesting_depth: int = 0

    @property
    def lines(self) -> int:
        return self.end_line - self.start_line + 1


@dataclass
class ParsedSource:
    """Everything the extractor needs from one file."""
    functions: list[FunctionSpan] = field(default_factory=list)
    imports: list[str] = field(default_factory=list)
    max_nesting: int = 0
    has_errors: bool = False


def _text(node: tree_sitter.Node, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


def _walk(node: tree_sitter.Node) -> Iterator[tree_sitter.Node]:
    """Pre-order traversal without recursion (deep files stay safe)."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


class SourceParser(ABC):
    """
    Base class for language parsers.

    Subclasses name the node types that count as decision points and as
    nesting constructs, and know how to find declarations and imports.
    """

    DECISION_NODES: frozenset[str] = frozenset()
    NESTING_NODES: frozenset[str] = frozenset()

    @abstractmethod
    def get_language(self) -> str:
        """Return the language identifier (e.g., 'typescript', 'python')."""
        ...

    @abstractmethod
    def get_tree_sitter_language(self) -> tree_sitter.Language:
        ...

    @abstractmethod
    def extract_functions(self, root: tree_sitter.Node, source: bytes) -> list[FunctionSpan]:
        ...

    @abstractmethod
    def extract_imports(self, root: tree_sitter.Node, source: bytes) -> list[str]:
        ...

    def parse(self, source_text: str) -> ParsedSource:
        """Parse source text into functions, imports and nesting depth."""
        source = source_text.encode("utf-8")
        parser = tree_sitter.Parser(self.get_tree_sitter_language())
        tree = parser.parse(source)
        root = tree.root_node

        return ParsedSource(
            functions=self.extract_functions(root, source),
            imports=sorted(set(self.extract_imports(root, source))),
            max_nesting=self.nesting_depth(root),
            has_errors=root.has_error,
        )

    def parse_source(self, source_text: str) -> list[FunctionSpan]:
        """Narrow interface: function spans only."""
        return self.parse(source_text).functions

    # ------------------------------------------------------------------
    # Shared metric helpers
    # ------------------------------------------------------------------

    def is_decision_point(self, node: tree_sitter.Node, source: bytes) -> bool:
        return node.type in self.DECISION_NODES

    def complexity(self, node: tree_sitter.Node, source: bytes) -> int:
        """Cyclomatic complexity: one baseline plus every decision point."""
        return 1 + sum(1 for n in _walk(node) if self.is_decision_point(n, source))

    def opens_nesting_level(self, node: tree_sitter.Node) -> bool:
        return node.type in self.NESTING_NODES

    def nesting_depth(self, node: tree_sitter.Node) -> int:
        """Deepest chain of nested control-flow constructs under node."""
        deepest = 0
        stack: list[tuple[tree_sitter.Node, int]] = [(node, 0)]
        while stack:
            current, depth = stack.pop()
            if current is not node and self.opens_nesting_level(current):
                depth += 1
                deepest = max(deepest, depth)
            for child in current.children:
                stack.append((child, depth))
        return deepest

    def build_span(
        self,
        name: str,
        span_node: tree_sitter.Node,
        body_node: tree_sitter.Node,
        source: bytes,
        args: int,
        has_doc: bool,
        exported: bool,
    ) -> FunctionSpan:
        return FunctionSpan(
            name=name,
            start_line=span_node.start_point[0] + 1,
            end_line=span_node.end_point[0] + 1,
            complexity=self.complexity(body_node, source),
            args=args,
            has_doc=has_doc,
            exported=exported,
            nesting_depth=self.nesting_depth(body_node),
        )


class TypeScriptParser(SourceParser):
    """
    tree-sitter parser for TypeScript and TSX.

    Extracts:
    - function declarations (``export``ed or not)
    - arrow functions / function expressions bound with const/let/var
    - class methods, named ``Class.method``
    - names exported later through export clauses or CommonJS
    """

    DECISION_NODES = frozenset({
        "if_statement",
        "for_statement",
        "for_in_statement",
        "while_statement",
        "do_statement",
        "switch_case",
        "catch_clause",
        "ternary_expression",
    })
    NESTING_NODES = frozenset({
        "if_statement",
        "for_statement",
        "for_in_statement",
        "while_statement",
        "do_statement",
        "switch_statement",
        "try_statement",
    })
    BOOLEAN_OPERATORS = frozenset({"&&", "||", "??"})
    FUNCTION_VALUES = frozenset({"arrow_function", "function_expression", "function", "generator_function"})
    FUNCTION_DECLARATIONS = frozenset({"function_declaration", "generator_function_declaration"})
    CLASS_DECLARATIONS = frozenset({"class_declaration", "abstract_class_declaration"})
    FIELD_MEMBERS = frozenset({"public_field_definition"})

    def __init__(self, tsx: bool = False) -> None:
        self.tsx = tsx

    def get_language(self) -> str:
        return "tsx" if self.tsx else "typescript"

    def get_tree_sitter_language(self) -> tree_sitter.Language:
        return _TSX_LANGUAGE if self.tsx else _TS_LANGUAGE

    def is_decision_point(self, node: tree_sitter.Node, source: bytes) -> bool:
        if node.type == "binary_expression":
            operator = node.child_by_field_name("operator")
            return operator is not None and operator.type in self.BOOLEAN_OPERATORS
        return node.type in self.DECISION_NODES

    def opens_nesting_level(self, node: tree_sitter.Node) -> bool:
        # `else if` continues a chain rather than nesting
        if node.type == "if_statement" and node.parent is not None and node.parent.type == "else_clause":
            return False
        return node.type in self.NESTING_NODES

    def extract_functions(self, root: tree_sitter.Node, source: bytes) -> list[FunctionSpan]:
        exported_names = self.exported_names(root, source)
        spans: list[FunctionSpan] = []
        for child in root.children:
            if child.type == "export_statement":
                spans.extend(self._extract_exported(child, source))
            else:
                spans.extend(self._extract_declaration(
                    child, source, export_node=None, exported_names=exported_names,
                ))
        return spans

    def exported_names(self, root: tree_sitter.Node, source: bytes) -> frozenset[str]:
        """
        Local names exported after their declaration.

        Covers ``export { foo, bar as baz }`` and ``export default foo``
        (re-exports with a ``from`` source are skipped) plus CommonJS
        ``module.exports = { foo }``, ``module.exports = foo`` and
        ``exports.foo = foo``.
        """
        names: set[str] = set()
        for child in root.children:
            if child.type == "export_statement":
                if child.child_by_field_name("source") is not None:
                    continue
                value = child.child_by_field_name("value")
                if value is not None and value.type == "identifier":
                    names.add(_text(value, source))
                for clause in child.named_children:
                    if clause.type != "export_clause":
                        continue
                    for specifier in clause.named_children:
                        local = specifier.child_by_field_name("name")
                        if local is not None:
                            names.add(_text(local, source))
            elif child.type == "expression_statement" and child.named_children:
                names.update(self._commonjs_exports(child.named_children[0], source))
        return frozenset(names)

    @staticmethod
    def _commonjs_exports(node: tree_sitter.Node, source: bytes) -> list[str]:
        if node.type != "assignment_expression":
            return []
        left = node.child_by_field_name("left")
        right = node.child_by_field_name("right")
        if left is None or right is None or left.type != "member_expression":
            return []

        target = _text(left, source).replace(" ", "")
        if target == "module.exports":
            if right.type == "identifier":
                return [_text(right, source)]
            if right.type != "object":
                return []
            found = []
            for prop in right.named_children:
                if prop.type == "shorthand_property_identifier":
                    found.append(_text(prop, source))
                elif prop.type == "pair":
                    value = prop.child_by_field_name("value")
                    if value is not None and value.type == "identifier":
                        found.append(_text(value, source))
            return found

        # exports.foo = foo / module.exports.foo = foo
        owner = left.child_by_field_name("object")
        if owner is not None and right.type == "identifier" and \
                _text(owner, source).replace(" ", "") in ("exports", "module.exports"):
            return [_text(right, source)]
        return []

    def _extract_exported(self, node: tree_sitter.Node, source: bytes) -> list[FunctionSpan]:
        declaration = node.child_by_field_name("declaration")
        if declaration is not None:
            return self._extract_declaration(declaration, source, export_node=node)

        # export default function () {} / export default () => {}
        value = node.child_by_field_name("value")
        if value is not None and value.type in self.FUNCTION_VALUES:
            return [self.build_span(
                name="default",
                span_node=node,
                body_node=value,
                source=source,
                args=self._count_parameters(value),
                has_doc=self._has_jsdoc(node, source),
                exported=True,
            )]
        return []

    def _extract_declaration(
        self,
        node: tree_sitter.Node,
        source: bytes,
        export_node: Optional[tree_sitter.Node],
        exported_names: frozenset[str] = frozenset(),
    ) -> list[FunctionSpan]:
        span_node = export_node or node
        exported = export_node is not None

        if node.type in self.FUNCTION_DECLARATIONS:
            name_node = node.child_by_field_name("name")
            if name_node is None:
                return []
            name = _text(name_node, source)
            return [self.build_span(
                name=name,
                span_node=span_node,
                body_node=node,
                source=source,
                args=self._count_parameters(node),
                has_doc=self._has_jsdoc(span_node, source),
                exported=exported or name in exported_names,
            )]

        if node.type in ("lexical_declaration", "variable_declaration"):
            return self._extract_bound_functions(node, span_node, source, exported, exported_names)

        if node.type in self.CLASS_DECLARATIONS:
            name_node = node.child_by_field_name("name")
            late = name_node is not None and _text(name_node, source) in exported_names
            return self._extract_methods(node, source, exported or late)

        return []

    def _extract_bound_functions(
        self,
        node: tree_sitter.Node,
        span_node: tree_sitter.Node,
        source: bytes,
        exported: bool,
        exported_names: frozenset[str] = frozenset(),
    ) -> list[FunctionSpan]:
        spans: list[FunctionSpan] = []
        for declarator in node.named_children:
            if declarator.type != "variable_declarator":
                continue
            name_node = declarator.child_by_field_name("name")
            value = declarator.child_by_field_name("value")
            if name_node is None or value is None or value.type not in self.FUNCTION_VALUES:
                continue
            name = _text(name_node, source)
            spans.append(self.build_span(
                name=name,
                span_node=span_node,
                body_node=value,
                source=source,
                args=self._count_parameters(value),
                has_doc=self._has_jsdoc(span_node, source),
                exported=exported or name in exported_names,
            ))
        return spans

    def _extract_methods(
        self,
        class_node: tree_sitter.Node,
        source: bytes,
        class_exported: bool,
    ) -> list[FunctionSpan]:
        name_node = class_node.child_by_field_name("name")
        body = class_node.child_by_field_name("body")
        if name_node is None or body is None:
            return []
        class_name = _text(name_node, source)

        spans: list[FunctionSpan] = []
        for member in body.named_children:
            if member.type == "method_definition":
                target = member
            elif member.type in self.FIELD_MEMBERS:
                target = member.child_by_field_name("value")
                if target is None or target.type not in self.FUNCTION_VALUES:
                    continue
            else:
                continue

            member_name = member.child_by_field_name("name") or member.child_by_field_name("property")
            if member_name is None:
                continue
            method_name = _text(member_name, source)
            spans.append(self.build_span(
                name=f"{class_name}.{method_name}",
                span_node=member,
                body_node=target,
                source=source,
                args=self._count_parameters(target),
                has_doc=self._has_jsdoc(member, source),
                exported=class_exported and not self._is_private_member(member, method_name, source),
            ))
        return spans

    @staticmethod
    def _is_private_member(member: tree_sitter.Node, name: str, source: bytes) -> bool:
        if name.startswith("#"):
            return True
        for child in member.children:
            if child.type == "accessibility_modifier":
                return _text(child, source) in ("private", "protected")
        return False

    @staticmethod
    def _count_parameters(function_node: tree_sitter.Node) -> int:
        params = function_node.child_by_field_name("parameters")
        if params is None:
            # Single bare parameter: x => x * 2
            return 1 if function_node.child_by_field_name("parameter") is not None else 0
        return sum(1 for p in params.named_children if p.type != "comment")

    @staticmethod
    def _has_jsdoc(node: tree_sitter.Node, source: bytes) -> bool:
        """True when the previous sibling is a /** ... */ block comment."""
        prev = node.prev_named_sibling
        if prev is None or prev.type != "comment":
            return False
        return _text(prev, source).lstrip().startswith("/**")

    def extract_imports(self, root: tree_sitter.Node, source: bytes) -> list[str]:
        specifiers: list[str] = []
        for node in _walk(root):
            if node.type in ("import_statement", "export_statement"):
                source_node = node.child_by_field_name("source")
                if source_node is not None:
                    specifiers.append(self._unquote(_text(source_node, source)))
            elif node.type == "call_expression":
                specifier = self._require_specifier(node, source)
                if specifier:
                    specifiers.append(specifier)
        return specifiers

    def _require_specifier(self, node: tree_sitter.Node, source: bytes) -> Optional[str]:
        function = node.child_by_field_name("function")
        arguments = node.child_by_field_name("arguments")
        if function is None or arguments is None:
            return None
        if function.type not in ("identifier", "import") or _text(function, source) not in ("require", "import"):
            return None
        strings = [a for a in arguments.named_children if a.type == "string"]
        if len(strings) != 1:
            return None
        return self._unquote(_text(strings[0], source))

    @staticmethod
    def _unquote(literal: str) -> str:
        return literal.strip().strip("'\"`")


class JavaScriptParser(TypeScriptParser):
    """
    tree-sitter parser for JavaScript (.js, .mjs, .cjs, .jsx).

    The JavaScript grammar parses JSX in plain ``.js`` files, which the
    TypeScript grammar rejects. Node types otherwise match TypeScript's,
    except class fields (``field_definition`` keyed by ``property``).
    """

    FIELD_MEMBERS = frozenset({"field_definition"})

    def __init__(self) -> None:
        super().__init__(tsx=False)

    def get_language(self) -> str:
        return "javascript"

    def get_tree_sitter_language(self) -> tree_sitter.Language:
        return _JS_LANGUAGE


class PythonParser(SourceParser):
    """
    tree-sitter parser for Python.

    Extracts module-level functions and class methods (``Class.method``);
    decorated definitions are unwrapped. Public means no leading underscore.
    """

    DECISION_NODES = frozenset({
        "if_statement",
        "elif_clause",
        "for_statement",
        "while_statement",
        "except_clause",
        "conditional_expression",
        "boolean_operator",
        "if_clause",
        "for_in_clause",
        "case_clause",
    })
    NESTING_NODES = frozenset({
        "if_statement",
        "for_statement",
        "while_statement",
        "try_statement",
        "with_statement",
        "match_statement",
    })
    SEPARATORS = frozenset({"keyword_separator", "positional_separator"})

    def get_language(self) -> str:
        return "python"

    def get_tree_sitter_language(self) -> tree_sitter.Language:
        return _PYTHON_LANGUAGE

    def extract_functions(self, root: tree_sitter.Node, source: bytes) -> list[FunctionSpan]:
        spans: list[FunctionSpan] = []
        for child in root.named_children:
            definition = self._unwrap(child)
            if definition is None:
                continue
            if definition.type == "function_definition":
                span = self._function_span(definition, child, source, prefix=None, public_owner=True)
                if span:
                    spans.append(span)
            elif definition.type == "class_definition":
                spans.extend(self._extract_methods(definition, source))
        return spans

    @staticmethod
    def _unwrap(node: tree_sitter.Node) -> Optional[tree_sitter.Node]:
        if node.type == "decorated_definition":
            return node.child_by_field_name("definition")
        if node.type in ("function_definition", "class_definition"):
            return node
        return None

    def _extract_methods(self, class_node: tree_sitter.Node, source: bytes) -> list[FunctionSpan]:
        name_node = class_node.child_by_field_name("name")
        body = class_node.child_by_field_name("body")
        if name_node is None or body is None:
            return []
        class_name = _text(name_node, source)
        class_public = not class_name.startswith("_")

        spans: list[FunctionSpan] = []
        for member in body.named_children:
            definition = self._unwrap(member)
            if definition is None or definition.type != "function_definition":
                continue
            span = self._function_span(definition, member, source, prefix=class_name, public_owner=class_public)
            if span:
                spans.append(span)
        return spans

    def _function_span(
        self,
        definition: tree_sitter.Node,
        span_node: tree_sitter.Node,
        source: bytes,
        prefix: Optional[str],
        public_owner: bool,
    ) -> Optional[FunctionSpan]:
        name_node = definition.child_by_field_name("name")
        if name_node is None:
            return None
        name = _text(name_node, source)
        body = definition.child_by_field_name("body")

        return self.build_span(
            name=f"{prefix}.{name}" if prefix else name,
            span_node=span_node,
            body_node=body if body is not None else definition,
            source=source,
            args=self._count_parameters(definition, source, is_method=prefix is not None),
            has_doc=self._has_docstring(body),
            exported=public_owner and not name.startswith("_"),
        )

    def _count_parameters(self, definition: tree_sitter.Node, source: bytes, is_method: bool) -> int:
        params = definition.child_by_field_name("parameters")
        if params is None:
            return 0
        names = [p for p in params.named_children if p.type not in self.SEPARATORS and p.type != "comment"]
        if is_method and names and _text(names[0], source).split(":")[0].strip() in ("self", "cls"):
            names = names[1:]
        return len(names)

    @staticmethod
    def _has_docstring(body: Optional[tree_sitter.Node]) -> bool:
        if body is None or not body.named_children:
            return False
        first = body.named_children[0]
        return (
            first.type == "expression_statement"
            and bool(first.named_children)
            and first.named_children[0].type == "string"
        )

    def extract_imports(self, root: tree_sitter.Node, source: bytes) -> list[str]:
        modules: list[str] = []
        for node in _walk(root):
            if node.type == "import_statement":
                for name in node.named_children:
                    if name.type == "aliased_import":
                        name = name.child_by_field_name("name") or name
                    modules.append(_text(name, source))
            elif node.type == "import_from_statement":
                module = node.child_by_field_name("module_name")
                if module is not None:
                    modules.append(_text(module, source))
        return modules


# ============================================================================
# PARSER REGISTRY
# ============================================================================

# Lazily populated; parsers are stateless and safe to share
_parser_registry: dict[str, SourceParser] = {}


def detect_language(file_path: str | Path) -> Optional[str]:
    """Language identifier for a path, or None for unsupported files."""
    name = Path(file_path).name.lower()
    if name.endswith(IGNORED_SUFFIXES):
        return None
    return SOURCE_EXTENSIONS.get(Path(name).suffix)


def is_supported_file(file_path: str | Path) -> bool:
    return detect_language(file_path) is not None


def get_parser(language: str) -> SourceParser:
    """
    Get a parser instance for the given language.

    Raises:
        ValueError: If language is not supported
    """
    if language not in _parser_registry:
        if language == "typescript":
            _parser_registry[language] = TypeScriptParser()
        elif language == "tsx":
            _parser_registry[language] = TypeScriptParser(tsx=True)
        elif language == "javascript":
            _parser_registry[language] = JavaScriptParser()
        elif language == "python":
            _parser_registry[language] = PythonParser()
        else:
            raise ValueError(
                f"Unsupported language: {language}. "
                f"Supported: {sorted(set(SOURCE_EXTENSIONS.values()))}"
            )
    return _parser_registry[language]
