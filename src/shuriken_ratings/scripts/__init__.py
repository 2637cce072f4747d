"""Command line helpers for bootstrapping the rating database."""
