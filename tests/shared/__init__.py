"""Shared testing utilities for the Gaia hub driver tests.

- fakes.py: in-memory backend clients implementing the driver client protocols
"""
