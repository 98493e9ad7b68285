"""Channel specific receive, post and multiple post actions."""
