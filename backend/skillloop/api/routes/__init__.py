"""API routes — one router per resource, registered explicitly in main.py."""
