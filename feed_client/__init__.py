"""Fetch pipeline, triggers and upload gate around the feed_core view."""
