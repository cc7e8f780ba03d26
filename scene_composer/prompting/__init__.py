"""Prompt construction helpers for image generation."""
