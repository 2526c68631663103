"""Dispatcher tools.

Importing :mod:`tools.capability_tools` and :mod:`tools.specialist_tools`
registers their tools with :mod:`tools.registry`.
"""
