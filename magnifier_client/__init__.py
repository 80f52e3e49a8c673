"""Magnifier client: settings, logging, session wiring and the command line."""
