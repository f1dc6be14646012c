"""Acquire/release protocol: domain types, ports and use cases."""
