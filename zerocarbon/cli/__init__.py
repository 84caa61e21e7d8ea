"""ZeroCarbon CLI - maintenance commands for the emission summary engine."""
