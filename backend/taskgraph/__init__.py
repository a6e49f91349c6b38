"""
Task hierarchy and dependency graph engine.
"""
