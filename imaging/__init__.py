from .normalizer import NormalizedImage, compute_target_size, decode_data_url, normalize_image, to_data_url

__all__ = ["NormalizedImage", "compute_target_size", "decode_data_url", "normalize_image", "to_data_url"]
