"""Sprint risk, confidence and stability signals for agile teams."""
