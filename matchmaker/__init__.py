"""Matchmaker - pairs waiting players into balanced matches by skill, latency and region."""
