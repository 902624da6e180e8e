"""panicaudit — find panic patterns that can take down production Rust services."""

__version__ = "0.5.0"
