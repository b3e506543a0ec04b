"""Access to Git-backed Wally package indexes."""
