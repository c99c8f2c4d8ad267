"""Services that wrap repositories with transactions and error translation."""
