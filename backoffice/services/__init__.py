"""Domain services operating on an injected data-access store."""
