"""Operator command line tools for the chat relay actions."""
