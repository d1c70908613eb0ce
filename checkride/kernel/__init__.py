"""Kernel layer - persistence models, storage adapter, error taxonomy."""
