"""
Sticker Post-Processing Pipeline

Two-stage pipeline with pass-through fallback:
1. AlphaNormalizer - enclosed hole fill + interior opacity clamp
2. ContainResizer - bilinear contain-fit onto the output canvas
"""
