"""Facebook Messenger channel actions."""
