"""Tree transforms applied to parsed notes."""
