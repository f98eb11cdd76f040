"""StoryScope: content scraping, LLM analysis and storyboard generation."""

__version__ = "0.1.0"
