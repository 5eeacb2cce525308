"""Command line interface for fhe-logreg."""
