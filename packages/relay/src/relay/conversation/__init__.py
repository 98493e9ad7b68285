"""Conversation service actions."""
