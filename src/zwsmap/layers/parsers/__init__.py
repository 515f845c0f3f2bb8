"""Response parsers that normalize remote documents into the geometry model."""

from zwsmap.layers.parsers.gml import parse_gml

__all__ = ["parse_gml"]
