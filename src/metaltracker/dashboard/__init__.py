"""FastAPI dashboard: JSON API for the rates page."""
