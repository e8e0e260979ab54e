"""Operational helpers: logging setup."""
