"""Tests for the tree-sitter Rust tree scanner."""

from __future__ import annotations

import pytest
from tree_sitter import Parser

from panicaudit.scanner.models import PanicClass, Severity
from panicaudit.scanner.visitor import (
    RUST_LANGUAGE,
    ScanContext,
    TreeScanner,
    in_tests_dir,
    is_extern_function,
    is_test_function,
)


def _first_function(source: str):
    tree = Parser(RUST_LANGUAGE).parse(source.encode("utf-8"))
    for node in tree.root_node.named_children:
        if node.type == "function_item":
            return node
    raise AssertionError("no function_item in source")


class TestScanContext:
    def test_enter_function_returns_new_context(self):
        outer = ScanContext()
        inner = outer.enter_function(is_test=True, is_extern=False)
        assert inner.in_test_code
        assert not outer.in_test_code

    def test_test_flag_follows_innermost_function(self):
        ctx = ScanContext(in_test_code=True, in_extern_fn=True)
        nested = ctx.enter_function(is_test=False, is_extern=False)
        assert not nested.in_test_code
        assert nested.in_extern_fn

    def test_extern_flag_is_inherited(self):
        ctx = ScanContext(in_extern_fn=True)
        assert ctx.enter_function(is_test=True, is_extern=False).in_extern_fn


class TestFunctionAttributes:
    def test_test_attribute(self):
        assert is_test_function(_first_function("#[test]\nfn check() {}\n"))

    def test_bench_attribute(self):
        assert is_test_function(_first_function("#[bench]\nfn run(b: &mut Bencher) {}\n"))

    def test_attribute_among_others(self):
        source = "#[test]\n#[should_panic]\n// explodes\nfn check() {}\n"
        assert is_test_function(_first_function(source))

    def test_plain_function(self):
        assert not is_test_function(_first_function("#[inline]\nfn fast() {}\n"))

    def test_scoped_test_attribute_not_recognised(self):
        source = "#[tokio::test]\nasync fn check() {}\n"
        assert not is_test_function(_first_function(source))

    def test_extern_c(self):
        assert is_extern_function(_first_function('pub extern "C" fn entry() {}\n'))

    def test_bare_extern_has_no_named_abi(self):
        assert not is_extern_function(_first_function("extern fn entry() {}\n"))

    def test_default_abi(self):
        assert not is_extern_function(_first_function("fn entry() {}\n"))


class TestTestsDirectory:
    @pytest.mark.parametrize(
        "path", ["tests/it.rs", "serde-1.0.0/tests/de.rs", "a/tests/b/c.rs"]
    )
    def test_under_tests(self, path: str):
        assert in_tests_dir(path)

    @pytest.mark.parametrize("path", ["src/tests.rs", "src/lib.rs", "tests"])
    def test_not_under_tests(self, path: str):
        assert not in_tests_dir(path)


class TestIndexing:
    def test_index_outside_test(self, scan_source):
        findings = scan_source("fn get(v: &[u8], i: usize) -> u8 {\n    v[i]\n}\n")
        assert len(findings) == 1
        finding = findings[0]
        assert finding.severity == Severity.MEDIUM
        assert finding.panic_class == PanicClass.IMPLICIT_PANIC
        assert finding.pattern == "Array/Slice Indexing"
        assert finding.line == "2"
        assert finding.code == "v[i]"
        assert finding.file == "src/lib.rs"

    def test_index_inside_test(self, scan_source):
        source = (
            "#[test]\n"
            "fn check() {\n"
            "    let v = vec![1, 2, 3];\n"
            "    let x = v[0];\n"
            "}\n"
        )
        assert scan_source(source) == []

    def test_nested_indexes_are_both_reported(self, scan_source):
        findings = scan_source("fn f(v: &[usize], w: &[usize]) -> usize {\n    v[w[0]]\n}\n")
        assert sorted(f.code for f in findings) == ["v[w[0]]", "w[0]"]


class TestMacros:
    def test_todo_outside_test(self, scan_source):
        findings = scan_source("fn later() {\n    todo!()\n}\n")
        assert len(findings) == 1
        assert findings[0].severity == Severity.CRITICAL
        assert findings[0].panic_class == PanicClass.IMPLICIT_PANIC
        assert findings[0].pattern == "todo!()"
        assert findings[0].line == "2"

    def test_todo_inside_test(self, scan_source):
        assert scan_source("#[test]\nfn later() {\n    todo!()\n}\n") == []

    def test_unimplemented_with_path(self, scan_source):
        findings = scan_source("fn later() {\n    std::unimplemented!()\n}\n")
        assert [f.pattern for f in findings] == ["unimplemented!()"]

    @pytest.mark.parametrize("name", ["assert", "assert_eq", "assert_ne", "debug_assert"])
    def test_assertions(self, scan_source, name: str):
        args = "a, b" if name in ("assert_eq", "assert_ne") else "a > b"
        findings = scan_source(f"fn check(a: u8, b: u8) {{\n    {name}!({args});\n}}\n")
        assert len(findings) == 1
        assert findings[0].severity == Severity.MEDIUM
        assert findings[0].panic_class == PanicClass.ASSERTION_FAILURE
        assert findings[0].pattern == f"{name}!()"

    @pytest.mark.parametrize(
        "invocation",
        ['panic!("boom")', "unreachable!()", "debug_assert_eq!(a, b)", 'println!("{}", a)'],
    )
    def test_other_macros_ignored(self, scan_source, invocation: str):
        assert scan_source(f"fn f(a: u8, b: u8) {{\n    {invocation};\n}}\n") == []

    def test_exit_macro_with_process_path(self, scan_source):
        findings = scan_source("fn stop() {\n    exit!(std::process::id());\n}\n")
        assert len(findings) == 1
        assert findings[0].panic_class == PanicClass.PROCESS_KILLING
        assert findings[0].pattern == "process::exit()"

    def test_exit_macro_without_process_path(self, scan_source):
        assert scan_source("fn stop() {\n    exit!(1);\n}\n") == []


class TestMethodCalls:
    def test_cloudflare_pattern(self, scan_source):
        source = 'fn load() -> String {\n    std::fs::read_to_string("config.toml").unwrap()\n}\n'
        findings = scan_source(source)
        assert len(findings) == 1
        assert findings[0].severity == Severity.CRITICAL
        assert findings[0].panic_class == PanicClass.CLOUDFLARE_CLASS
        assert findings[0].line == "2"

    def test_turbofish_parse(self, scan_source):
        source = "fn port(value: &str) -> i32 {\n    value.parse::<i32>().unwrap()\n}\n"
        findings = scan_source(source)
        assert len(findings) == 1
        assert findings[0].severity == Severity.HIGH
        assert findings[0].pattern == "Parsing Operation"

    def test_expect_is_classified(self, scan_source):
        source = 'fn home() -> String {\n    std::env::var("HOME").expect("HOME")\n}\n'
        findings = scan_source(source)
        assert [(f.severity, f.pattern) for f in findings] == [
            (Severity.MEDIUM, "Environment Variable")
        ]

    def test_mutex_unwrap_yields_amplification(self, scan_source):
        source = (
            "use std::sync::Mutex;\n"
            "\n"
            "fn bump(counter_mutex: &Mutex<u32>) {\n"
            "    *counter_mutex.lock().unwrap() += 1;\n"
            "}\n"
        )
        findings = scan_source(source)
        classes = {f.panic_class: f for f in findings}
        assert len(findings) == 2
        amplification = classes[PanicClass.PANIC_AMPLIFICATION]
        assert amplification.severity == Severity.CRITICAL
        assert amplification.pattern == "Mutex/RwLock unwrap (panic amplification)"
        assert amplification.line == "4"
        assert classes[PanicClass.ASSUMPTION_PANIC].pattern == "General Unwrap"

    def test_amplification_ignores_false_positive_filter(self, scan_source):
        source = (
            "impl Store {\n"
            "    fn put(&self) {\n"
            "        self.inner.mutex.lock().unwrap();\n"
            "    }\n"
            "}\n"
        )
        findings = scan_source(source)
        assert [f.panic_class for f in findings] == [PanicClass.PANIC_AMPLIFICATION]

    def test_unwrap_unchecked_skips_amplification(self, scan_source):
        source = (
            "fn get(m: &Mutex<u8>) -> u8 {\n"
            "    unsafe { *m_mutex.lock().unwrap_unchecked() }\n"
            "}\n"
        )
        findings = scan_source(source)
        assert [f.panic_class for f in findings] == [PanicClass.ASSUMPTION_PANIC]

    def test_arc_try_unwrap_suppressed(self, scan_source):
        source = (
            "use std::sync::Arc;\n"
            "\n"
            "fn take(x: Arc<String>) -> String {\n"
            "    Arc::try_unwrap(x).unwrap()\n"
            "}\n"
        )
        assert scan_source(source) == []

    def test_other_methods_ignored(self, scan_source):
        assert scan_source("fn f(o: Option<u8>) -> u8 {\n    o.unwrap_or(0)\n}\n") == []

    def test_process_exit_call(self, scan_source):
        findings = scan_source("fn stop() {\n    std::process::exit(1);\n}\n")
        assert len(findings) == 1
        assert findings[0].severity == Severity.CRITICAL
        assert findings[0].panic_class == PanicClass.PROCESS_KILLING


class TestContext:
    def test_plain_function_nested_in_test_is_audited(self, scan_source):
        source = (
            "#[test]\n"
            "fn outer() {\n"
            "    fn helper() -> u8 {\n"
            "        todo!()\n"
            "    }\n"
            "    helper();\n"
            "}\n"
        )
        findings = scan_source(source)
        assert len(findings) == 1
        assert findings[0].severity == Severity.CRITICAL
        assert findings[0].panic_class == PanicClass.IMPLICIT_PANIC
        assert findings[0].pattern == "todo!()"
        assert findings[0].line == "4"

    def test_test_function_nested_in_plain_function_is_skipped(self, scan_source):
        source = (
            "fn outer() {\n"
            "    #[test]\n"
            "    fn check() {\n"
            "        todo!()\n"
            "    }\n"
            "}\n"
        )
        assert scan_source(source) == []

    def test_context_restored_after_test_function(self, scan_source):
        source = "#[test]\nfn a() {\n    todo!()\n}\n\nfn b() {\n    todo!()\n}\n"
        findings = scan_source(source)
        assert len(findings) == 1

    def test_extern_function_still_audited(self, scan_source):
        source = (
            "#[no_mangle]\n"
            'pub extern "C" fn entry(v: *const u8) -> u8 {\n'
            "    todo!()\n"
            "}\n"
        )
        findings = scan_source(source)
        assert [f.panic_class for f in findings] == [PanicClass.IMPLICIT_PANIC]

    def test_tests_directory_suppressed(self, scan_source):
        assert scan_source("fn f() {\n    todo!()\n}\n", path="tests/it.rs") == []

    def test_tests_module_file_audited(self, scan_source):
        assert len(scan_source("fn f() {\n    todo!()\n}\n", path="src/tests.rs")) == 1


class TestRobustness:
    def test_unparseable_file_skipped(self):
        scanner = TreeScanner()
        assert not scanner.scan_file("src/bad.rs", "fn broken( {\n    v[0]\n")
        assert scanner.vulnerabilities == []

    def test_deep_nesting(self, scan_source):
        depth = 1500
        source = "fn f(v: &[u8]) -> u8 {\n    " + "(" * depth + "v[0]" + ")" * depth + "\n}\n"
        findings = scan_source(source)
        assert [f.code for f in findings] == ["v[0]"]

    def test_deterministic(self, scan_source):
        source = 'fn f(v: &[u8]) -> u8 {\n    assert!(v.len() > 1);\n    v[0]\n}\n'
        assert scan_source(source) == scan_source(source)

    def test_findings_accumulate_across_files(self):
        scanner = TreeScanner()
        scanner.scan_file("src/a.rs", "fn a() {\n    todo!()\n}\n")
        scanner.scan_file("src/b.rs", "fn b() {\n    todo!()\n}\n")
        assert [f.file for f in scanner.vulnerabilities] == ["src/a.rs", "src/b.rs"]
