# posttest
"""
Benchmark UCI chess engines against a fixed set of positions.

Each engine is identified with a UCI handshake, then asked to search every
position to a fixed depth. Search time, visited nodes, nodes per second and
the best move are collected per engine and per position, and summed into
per-engine totals with optional relative comparisons.
"""

__version__ = "1.0.0"
