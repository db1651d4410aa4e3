"""Shared response cache in front of the public schema endpoint."""
