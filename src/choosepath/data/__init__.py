"""Bundled story data for the Enchanted Forest adventure."""
