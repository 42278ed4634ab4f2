"""Storefront payments backend."""
