"""Slack channel actions."""
