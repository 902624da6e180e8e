"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from panicaudit.scanner.models import Vulnerability
from panicaudit.scanner.visitor import TreeScanner

LIB_RS = """\
use std::sync::Mutex;

pub fn load() -> String {
    std::fs::read_to_string("config.toml").unwrap()
}

pub fn first(v: &[u8]) -> u8 {
    v[0]
}

pub fn bump(counter_mutex: &Mutex<u32>) {
    *counter_mutex.lock().unwrap() += 1;
}

#[test]
fn loads() {
    assert_eq!(load(), "");
}
"""

INTEGRATION_RS = """\
fn helper() -> u8 {
    todo!()
}
"""


@pytest.fixture
def scan_source() -> Callable[..., list[Vulnerability]]:
    """Scan one Rust source string and return its findings."""

    def _scan(source: str, path: str = "src/lib.rs") -> list[Vulnerability]:
        scanner = TreeScanner()
        scanner.scan_file(path, source)
        return scanner.vulnerabilities

    return _scan


@pytest.fixture
def rust_crate(tmp_path: Path) -> Path:
    """A small crate tree with library code, tests and build output."""
    root = tmp_path / "demo"
    (root / "src").mkdir(parents=True)
    (root / "tests").mkdir()
    (root / "target" / "debug").mkdir(parents=True)

    (root / "Cargo.toml").write_text('[package]\nname = "demo"\nversion = "0.1.0"\n')
    (root / "src" / "lib.rs").write_text(LIB_RS)
    (root / "tests" / "integration.rs").write_text(INTEGRATION_RS)
    (root / "target" / "debug" / "build.rs").write_text(INTEGRATION_RS)
    return root


@pytest.fixture(autouse=True)
def isolated_xdg(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep config and cache lookups inside the test's temp dir."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg-cache"))
    for var in ("PANICAUDIT_REGISTRY_URL", "PANICAUDIT_TIMEOUT", "PANICAUDIT_USER_AGENT"):
        monkeypatch.delenv(var, raising=False)
