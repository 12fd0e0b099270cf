"""Gym attendance package.

This package is organized by feature modules (attendance, sync, users, qr)
with a thin Flask controller layer over an offline-first ledger and a sync
engine that replicates it to the remote authority.
"""
