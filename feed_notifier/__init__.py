"""Feed Notifier: post feed items with AI summaries to Bluesky and a webhook."""

__version__ = "1.0.0"
