"""Command line interface for StoryScope."""
