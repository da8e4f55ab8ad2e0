"""kleinewelt backend: childcare profiles, messaging and care groups."""
