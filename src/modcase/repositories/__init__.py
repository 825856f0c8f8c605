"""SQL access for configs, cases and feature flags. All methods take an open connection."""
