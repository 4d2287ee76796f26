"""HTTP surface for the résumé analysis pipeline."""
