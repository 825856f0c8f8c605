"""Data types shared across the moderation core."""
