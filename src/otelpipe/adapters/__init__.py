"""Adapters connecting the core to transports, logging and web frameworks."""
