"""Cloud video transcoding service."""
