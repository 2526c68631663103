"""Client-side consumer of the chat stream: parts in, views out."""
