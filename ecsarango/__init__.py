"""Track changes to a local entity world and commit them to an ArangoDB collection."""

__version__ = "0.1.0"