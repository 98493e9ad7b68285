"""Shared configuration and logging helpers for the chat relay packages."""
