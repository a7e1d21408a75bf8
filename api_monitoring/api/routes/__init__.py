from . import demo, health, root

__all__ = ["demo", "health", "root"]
