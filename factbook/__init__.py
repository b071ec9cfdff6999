"""Descriptive statistics report over the CIA World Factbook ``facts`` table."""
