"""Plain data structures shared across Warden."""
