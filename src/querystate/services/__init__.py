"""Service layer — URL state, filter sets, and the request cache.

Services may import from domain and infrastructure layers.
They must never import from commands or output.
"""
