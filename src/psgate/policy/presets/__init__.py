"""Bundled standards policy presets."""
