from docsona.api.v1 import appointments

__all__ = [
    "appointments",
]
