from .client import FALLBACK_IMAGE_SIZES, GenerationClient, GenerationResult

__all__ = ["FALLBACK_IMAGE_SIZES", "GenerationClient", "GenerationResult"]
