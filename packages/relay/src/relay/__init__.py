"""Serverless actions relaying chat channel messages to a conversation service."""
