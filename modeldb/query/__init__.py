"""Lookups, counts, drains and scans run inside a transaction."""