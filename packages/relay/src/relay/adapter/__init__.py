"""Adapters implementing the output ports."""
