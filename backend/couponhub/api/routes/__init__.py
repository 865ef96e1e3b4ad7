"""Route modules — registered explicitly in main.py (no auto-discovery)."""
