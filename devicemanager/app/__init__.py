"""Application entry points: lifecycle context, sample data and CLI."""

from devicemanager.app.context import InventoryContext, load_config

__all__ = ["InventoryContext", "load_config"]
