"""Shared building blocks: errors, logging, constants and row models."""
