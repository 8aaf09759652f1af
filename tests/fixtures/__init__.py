"""Shared test fixtures package.

Provides reusable fixtures and helpers for all test suites.
"""
