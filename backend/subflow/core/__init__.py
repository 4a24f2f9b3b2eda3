"""Core components: translation pipeline, translation memory, subtitle contracts."""
