"""Conflict categories, the source scanner and the alias resolver."""
