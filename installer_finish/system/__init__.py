"""Target system writers and external command helpers."""
