"""LensDisp Codecs: Displacement map storage."""

from .displacement import DisplacementCodec

__all__ = ["DisplacementCodec"]
