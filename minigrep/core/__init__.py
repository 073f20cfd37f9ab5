"""
minigrep Core - Lazy closure and iterator engine.

This module contains the building blocks of every pipeline:
- Cell: State captured by closures, by copy or by reference
- Closure: Uniform callable with captured state
- Stage: Pull-based producers (source, map, filter, take, enumerate, zip, ...)
- Driver: Consumers that run a pipeline (collect, for_each, find, ...)
- Utils: Driver control flow (stop())
"""

__all__ = []
