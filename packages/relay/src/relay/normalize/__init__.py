"""Conversions between channel payloads and conversation payloads."""
