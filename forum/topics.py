"""Topic files: Markdown body with optional YAML front matter overrides."""

from pathlib import Path

import frontmatter


def parse_topic_file(file_path: Path) -> tuple[str, dict]:
    """Parse a topic file.

    Returns:
        (topic, metadata) where topic is the stripped body and metadata may
        carry: turns (int), delay (float), modes (mapping name -> mode).
        If no front matter, metadata is {}.
    """
    post = frontmatter.load(str(file_path))
    topic = post.content.strip()
    metadata = dict(post.metadata)
    return topic, metadata
