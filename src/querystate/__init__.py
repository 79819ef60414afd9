"""querystate — URL-synchronized filter state and a policy-driven query cache."""

__version__ = "0.1.0"
