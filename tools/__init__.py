from .feed_reader import FeedUnavailableError, read_feed, read_rows

__all__ = ["FeedUnavailableError", "read_feed", "read_rows"]
