"""Core engine: split merging, decoding, evidence scanning and reporting."""
