"""HTTP API for FeedWatch."""
