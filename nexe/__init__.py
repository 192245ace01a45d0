"""
NEXE package
============

This package contains the Nuclear Exposure Explorer engine (NEXE).

- The CLI entry point is in `nexe/cli.py`.
- The core engine (view state, recompute on every change) is in `nexe/engine.py`.
- Indices and decade changes are in `nexe/indices.py` and `nexe/deltas.py`.
- Dataset loading is in `nexe/loader.py`.
"""

__version__ = '0.1.0'
