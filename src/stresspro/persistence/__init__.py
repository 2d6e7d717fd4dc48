"""Result export module."""

from stresspro.persistence.jsonl import JsonlWriter, JsonlWriterConfig

__all__ = [
    "JsonlWriter",
    "JsonlWriterConfig",
]
