"""
Structural interfaces and type aliases shared across ringflow.
"""
