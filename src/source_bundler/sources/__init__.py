"""Content sources: feeds, articles, documentation sites, repositories."""
