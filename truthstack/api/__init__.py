"""HTTP surface for TruthStack."""
