"""Rule catalog, panic classifier and false-positive filter.

All matching is substring matching over a normalized copy of the
snippet: lower-cased with whitespace removed, so ``File :: open (p)``
and ``File::open(p)`` compare equal.
"""

from __future__ import annotations

from dataclasses import dataclass

from panicaudit.scanner.models import PanicClass, Severity


@dataclass(frozen=True)
class Rule:
    """A named detection rule, listed in the legend."""

    id: str
    kind: str
    severity: str
    message: str


RULE_UNWRAP = Rule("PA001", "unwrap", "HIGH", "Use of unwrap() may panic")
RULE_EXPECT = Rule("PA002", "expect", "HIGH", "Use of expect() may panic")
RULE_PANIC = Rule("PA003", "panic", "CRITICAL", "panic! macro found")
RULE_TODO = Rule("PA004", "todo", "MEDIUM", "todo! macro found")
RULE_UNREACHABLE = Rule("PA005", "unreachable", "MEDIUM", "unreachable! macro found")
RULE_INDEXING = Rule("PA006", "indexing", "MEDIUM", "Array/slice indexing may panic")
RULE_ASSERTION = Rule("PA007", "assertion", "MEDIUM", "Assertion may fail")
RULE_MUTEX_UNWRAP = Rule(
    "PA008",
    "mutex_unwrap",
    "CRITICAL",
    "Mutex/RwLock unwrap (panic amplification)",
)
RULE_PROCESS_EXIT = Rule("PA009", "process_exit", "CRITICAL", "process::exit() found")

_ALL_RULES: tuple[Rule, ...] = (
    RULE_UNWRAP,
    RULE_EXPECT,
    RULE_PANIC,
    RULE_TODO,
    RULE_UNREACHABLE,
    RULE_INDEXING,
    RULE_ASSERTION,
    RULE_MUTEX_UNWRAP,
    RULE_PROCESS_EXIT,
)


def all_rules() -> tuple[Rule, ...]:
    return _ALL_RULES


def get_rule(rule_id: str) -> Rule | None:
    for rule in _ALL_RULES:
        if rule.id == rule_id:
            return rule
    return None


# ---------------------------------------------------------------------------
# Keyword tables
# ---------------------------------------------------------------------------

_FILE_READ = ("file::open", "read_to_string", "fs::read")
_CONFIG_INDICATORS = (
    ".toml",
    ".yaml",
    ".json",
    ".ini",
    ".conf",
    "config",
    "settings",
    "feature",
)
_FILE_IO = ("file::open", "file::create", "fs::read", "fs::write", "read_to_string")
_NETWORK = ("tcpstream::connect", "tcplistener::bind", "udpsocket::bind")
_HTTP_LIBS = ("reqwest", "hyper")
_ALLOCATION = ("with_capacity", "reserve")
_PARSING = (
    "str::parse",
    ".parse::<",
    "from_str(",
    "serde_json::from",
    "toml::from",
    "yaml::from",
)
_DB_CALLS = ("query(", "execute(", "fetch")
_DB_LIBS = ("diesel", "sqlx", "postgres")
_UNWRAPS = ("unwrap", "expect")

_REFCOUNT_RECOVERY = ("arc::try_unwrap", "rc::try_unwrap")
_INNER_ACCESS = ("self.inner", ".inner()")
_IO_WORDS = ("file", "read", "load")

_LOCK_TYPES = ("mutex", "rwlock")
_LOCK_CALLS = ("lock(", "read(", "write(")

CLOUDFLARE_LABEL = "Config/Feature File Loading (Cloudflare Pattern)"
AMPLIFICATION_LABEL = RULE_MUTEX_UNWRAP.message


def normalize(code: str) -> str:
    """Lower-case ``code`` and drop all whitespace."""
    return "".join(code.lower().split())


def _any(text: str, needles: tuple[str, ...]) -> bool:
    return any(n in text for n in needles)


def is_cloudflare_class(text: str) -> bool:
    """File read combined with a configuration-file indicator."""
    return _any(text, _FILE_READ) and _any(text, _CONFIG_INDICATORS)


def classify_panic(code: str) -> tuple[Severity, PanicClass, str]:
    """Map an unwrap/expect call site to (severity, class, label).

    Rules are tried most-specific first; the first match wins.
    """
    text = normalize(code)
    unwraps = _any(text, _UNWRAPS)

    if is_cloudflare_class(text):
        return Severity.CRITICAL, PanicClass.CLOUDFLARE_CLASS, CLOUDFLARE_LABEL

    if _any(text, _FILE_IO) and unwraps:
        return Severity.CRITICAL, PanicClass.ASSUMPTION_PANIC, "File I/O Operation"

    if _any(text, _NETWORK) and unwraps:
        return (
            Severity.CRITICAL,
            PanicClass.ASSUMPTION_PANIC,
            "Network Socket Operation",
        )

    if _any(text, _HTTP_LIBS) and ".send(" in text:
        return Severity.CRITICAL, PanicClass.ASSUMPTION_PANIC, "HTTP Request"

    if _any(text, _ALLOCATION):
        return (
            Severity.HIGH,
            PanicClass.ALLOCATION_PANIC,
            "Allocation with Potential Untrusted Size",
        )

    if _any(text, _PARSING):
        return Severity.HIGH, PanicClass.ASSUMPTION_PANIC, "Parsing Operation"

    if _any(text, _DB_CALLS) and _any(text, _DB_LIBS):
        return Severity.HIGH, PanicClass.ASSUMPTION_PANIC, "Database Operation"

    if "env::var" in text:
        return Severity.MEDIUM, PanicClass.ASSUMPTION_PANIC, "Environment Variable"

    return Severity.LOW, PanicClass.ASSUMPTION_PANIC, "General Unwrap"


def is_false_positive(code: str) -> bool:
    """Check if an unwrap call site is a known-benign shape."""
    text = normalize(code)

    # Arc/Rc ownership recovery is memory management, not I/O
    if _any(text, _REFCOUNT_RECOVERY):
        return True

    # Internal field access
    if _any(text, _INNER_ACCESS) and not _any(text, _IO_WORDS):
        return True

    return False


def is_panic_amplification(code: str) -> bool:
    """Check if an unwrap call site unwraps a Mutex/RwLock acquisition."""
    text = normalize(code)
    return _any(text, _LOCK_TYPES) and _any(text, _LOCK_CALLS)
