"""
Remote client for the sticker service (single generation + batch download).
"""
