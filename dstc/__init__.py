"""Remote function calls by name: argument encoding, wire format, call context and stubs."""

__version__ = "0.1.0"

__all__ = ["args", "protocol", "signature", "config", "registry", "context", "stubs"]