"""statusmark - status and cover-art frontmatter for markdown vaults."""

__version__ = "0.1.0"
