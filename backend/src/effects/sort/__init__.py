"""Pixel-sort core — per-line keys, thresholding, windowed sorting and write-back."""
