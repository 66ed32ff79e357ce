"""Importers for collections and environments exported by other tools."""

from postboy.importers.postman import (
    convert_collection,
    parse_postman_collection,
    parse_postman_environment,
)

__all__ = [
    "convert_collection",
    "parse_postman_collection",
    "parse_postman_environment",
]
