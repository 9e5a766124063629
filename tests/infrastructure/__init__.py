"""Test infrastructure: fake sensors, registries and audio sources.

This package contains test support code, NOT actual tests.
"""
