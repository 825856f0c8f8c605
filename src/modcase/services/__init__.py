"""
Guild feature switches.

- **feature_toggle_store.py**: cached mod_feature / automod states
- **feature_toggle_service.py**: automod-requires-moderation rule
"""
