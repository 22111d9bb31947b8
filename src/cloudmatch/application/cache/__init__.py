"""In-memory caches."""

from cloudmatch.application.cache.image_cache import ImageCache, ImageFetcher, decode_image

__all__ = ["ImageCache", "ImageFetcher", "decode_image"]
