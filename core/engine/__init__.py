"""
Rendering-engine boundary.

The engine owns visible overlay objects and exposes imperative add/update/remove calls.
`InMemoryMapEngine` is a reference implementation that records every call.
"""
