"""Builtin RuleSets shipped as TOML package data."""
