"""GitHub REST access for the flagger."""
