"""Reference page extraction: static HTTP first, headless browser as fallback."""
