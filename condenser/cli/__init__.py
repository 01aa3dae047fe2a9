"""CLI module for condenser."""
