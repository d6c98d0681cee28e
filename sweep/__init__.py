"""Upstream data providers for the Wallet Sweep routes."""
