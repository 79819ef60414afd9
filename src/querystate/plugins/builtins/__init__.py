"""Built-in plugins shipped with querystate."""
