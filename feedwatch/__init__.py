"""FeedWatch: data reliability and source-health pipeline."""

__version__ = "0.1.0"
