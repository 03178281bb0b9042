"""
Tests for the tree-sitter source parsers.

Tests cover:
1. TypeScript function, arrow function and method extraction
2. Complexity, nesting, JSDoc and visibility for TypeScript
3. Python functions, methods, docstrings and imports
4. JavaScript with JSX and exports declared after the fact
5. Language detection and the parser registry
"""

import pytest

from domainscope.analysis.source_parser import (
    JavaScriptParser,
    PythonParser,
    TypeScriptParser,
    detect_language,
    get_parser,
    is_supported_file,
)


TS_SOURCE = '''\
import { readFile } from "fs";
import * as path from "node:path";
const lodash = require("lodash");

/** Adds two numbers. */
export function add(a: number, b: number): number {
  if (a > 0 && b > 0) {
    return a + b;
  }
  return a - b;
}

const double = (x: number) => x * 2;

export class TaskService {
  /** Lists tasks. */
  list(): string[] {
    return [];
  }

  private secret(): void {}
}
'''

PY_SOURCE = '''\
import os
from collections import OrderedDict


def public(a, b):
    """Return a when both are truthy."""
    if a and b:
        return a
    return b


def _private(x):
    return x


class Store:
    def get(self, key):
        return key

    @staticmethod
    def build(name):
        return Store()
'''


class TestTypeScriptParser:
    """Tests for TypeScript/JavaScript parsing."""

    @pytest.fixture
    def parsed(self):
        return TypeScriptParser().parse(TS_SOURCE)

    def test_extracts_all_function_forms(self, parsed) -> None:
        names = [f.name for f in parsed.functions]
        assert names == ["add", "double", "TaskService.list", "TaskService.secret"]

    def test_exported_function_metrics(self, parsed) -> None:
        add = next(f for f in parsed.functions if f.name == "add")
        # baseline + if + &&
        assert add.complexity == 3
        assert add.args == 2
        assert add.has_doc is True
        assert add.exported is True
        assert add.lines == 6

    def test_arrow_function_is_not_exported(self, parsed) -> None:
        double = next(f for f in parsed.functions if f.name == "double")
        assert double.exported is False
        assert double.args == 1
        assert double.complexity == 1

    def test_private_methods_are_not_exported(self, parsed) -> None:
        methods = {f.name: f for f in parsed.functions if f.name.startswith("TaskService.")}
        assert methods["TaskService.list"].exported is True
        assert methods["TaskService.list"].has_doc is True
        assert methods["TaskService.secret"].exported is False

    def test_imports_include_require(self, parsed) -> None:
        assert parsed.imports == ["fs", "lodash", "node:path"]

    def test_else_if_does_not_add_nesting(self) -> None:
        source = (
            "function check(x) {\n"
            "  if (x > 1) {\n"
            "    return 1;\n"
            "  } else if (x > 0) {\n"
            "    return 0;\n"
            "  }\n"
            "  return -1;\n"
            "}\n"
        )
        [check] = TypeScriptParser().parse_source(source)
        assert check.complexity == 3
        assert check.nesting_depth == 1

    def test_nested_loops_are_counted(self) -> None:
        source = (
            "function walk(grid) {\n"
            "  for (const row of grid) {\n"
            "    for (const cell of row) {\n"
            "      while (cell.next) {\n"
            "        if (cell.done) { break; }\n"
            "      }\n"
            "    }\n"
            "  }\n"
            "}\n"
        )
        parsed = TypeScriptParser().parse(source)
        assert parsed.functions[0].nesting_depth == 4
        assert parsed.max_nesting == 4

    def test_syntax_errors_are_reported_not_raised(self) -> None:
        parsed = TypeScriptParser().parse("export function broken( {\n")
        assert parsed.has_errors is True


class TestLateExports:
    """Functions declared plainly and exported further down the file."""

    def test_export_clause(self) -> None:
        source = (
            "function load(id: string) { return id; }\n"
            "const save = (item: object) => item;\n"
            "function helper() {}\n"
            "class Repo {\n"
            "  find() { return null; }\n"
            "  #hidden() {}\n"
            "}\n"
            "export { load, save as persist, Repo };\n"
        )
        exported = {f.name: f.exported for f in TypeScriptParser().parse_source(source)}
        assert exported == {
            "load": True,
            "save": True,
            "helper": False,
            "Repo.find": True,
            "Repo.#hidden": False,
        }

    def test_re_export_does_not_mark_local_names(self) -> None:
        source = (
            "function load() {}\n"
            'export { load } from "./other";\n'
        )
        [load] = TypeScriptParser().parse_source(source)
        assert load.exported is False

    def test_export_default_identifier(self) -> None:
        source = "const render = () => null;\nexport default render;\n"
        [render] = TypeScriptParser().parse_source(source)
        assert render.exported is True

    @pytest.mark.parametrize("exports", [
        "module.exports = { parse, render: format };",
        "exports.parse = parse;\nexports.render = format;",
        "module.exports.parse = parse;\nmodule.exports.format = format;",
    ])
    def test_commonjs_exports(self, exports: str) -> None:
        source = (
            "function parse(text) { return text; }\n"
            "function format(value) { return value; }\n"
            "const internal = () => 1;\n"
            f"{exports}\n"
        )
        exported = {f.name: f.exported for f in JavaScriptParser().parse_source(source)}
        assert exported == {"parse": True, "format": True, "internal": False}


JSX_SOURCE = '''\
import React from "react";

export function Card({ title, done }) {
  return <div className={done ? "done" : "open"}>{title}</div>;
}

const Badge = ({ label }) => <span>{label}</span>;

export default Badge;
'''


class TestJavaScriptParser:
    """JavaScript files, including JSX in plain .js files."""

    def test_jsx_in_js_file(self) -> None:
        parsed = JavaScriptParser().parse(JSX_SOURCE)

        assert parsed.has_errors is False
        assert [(f.name, f.complexity) for f in parsed.functions] == [("Card", 2), ("Badge", 1)]
        assert all(f.exported for f in parsed.functions)
        assert parsed.imports == ["react"]

    def test_class_field_arrow_functions(self) -> None:
        source = (
            "export class Store {\n"
            "  load = (id) => id ? id : null;\n"
            "  #cache = () => {};\n"
            "}\n"
        )
        spans = {f.name: f for f in JavaScriptParser().parse_source(source)}
        assert spans["Store.load"].complexity == 2
        assert spans["Store.load"].exported is True
        assert spans["Store.#cache"].exported is False


class TestPythonParser:
    """Tests for Python parsing."""

    @pytest.fixture
    def parsed(self):
        return PythonParser().parse(PY_SOURCE)

    def test_extracts_functions_and_methods(self, parsed) -> None:
        names = [f.name for f in parsed.functions]
        assert names == ["public", "_private", "Store.get", "Store.build"]

    def test_public_function_metrics(self, parsed) -> None:
        public = parsed.functions[0]
        # baseline + if + boolean operator
        assert public.complexity == 3
        assert public.args == 2
        assert public.has_doc is True
        assert public.exported is True

    def test_underscore_means_private(self, parsed) -> None:
        private = next(f for f in parsed.functions if f.name == "_private")
        assert private.exported is False
        assert private.has_doc is False

    def test_self_is_not_an_argument(self, parsed) -> None:
        get = next(f for f in parsed.functions if f.name == "Store.get")
        assert get.args == 1

    def test_imports(self, parsed) -> None:
        assert parsed.imports == ["collections", "os"]


class TestParserRegistry:
    """Tests for language detection and parser lookup."""

    @pytest.mark.parametrize("file_name,language", [
        ("service.ts", "typescript"),
        ("view.tsx", "tsx"),
        ("legacy.js", "javascript"),
        ("widget.jsx", "javascript"),
        ("worker.cjs", "javascript"),
        ("tool.py", "python"),
        ("types.d.ts", None),
        ("Main.java", None),
    ])
    def test_detect_language(self, file_name: str, language) -> None:
        assert detect_language(file_name) == language
        assert is_supported_file(file_name) is (language is not None)

    def test_get_parser_is_cached(self) -> None:
        assert get_parser("python") is get_parser("python")
        assert get_parser("tsx").get_language() == "tsx"
        assert isinstance(get_parser("javascript"), JavaScriptParser)

    def test_unknown_language_raises(self) -> None:
        with pytest.raises(ValueError, match="Unsupported language"):
            get_parser("cobol")
