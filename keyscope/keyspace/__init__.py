"""
Keyspace engines: pagination, materialization and mutation.
"""

from keyscope.keyspace.materializer import KeyMaterializer
from keyscope.keyspace.metadata import describe_size, inspect_key
from keyscope.keyspace.mutation import MutationPipeline, parse_hash_payload
from keyscope.keyspace.pagination import KeyspacePager

__all__ = [
    "KeyMaterializer",
    "KeyspacePager",
    "MutationPipeline",
    "describe_size",
    "parse_hash_payload",
    "inspect_key",
]
