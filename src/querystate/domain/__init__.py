"""Domain layer — field codecs, filter schemas, keys, policies, lifecycle.

This layer depends only on stdlib and pydantic.
It must never import from services, infrastructure, commands, or config.
"""
