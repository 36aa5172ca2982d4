"""
Sticker Module

Prompt assembly for sticker generation requests.
"""

from src.modules.sticker.prompts import build_batch_prompt, build_generate_prompt

__all__ = ["build_batch_prompt", "build_generate_prompt"]
