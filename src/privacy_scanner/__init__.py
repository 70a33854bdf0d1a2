"""privacy_scanner: privacy exposure analysis for Solana wallets, transactions, and programs.

This package contains the normalizer that turns raw ledger data into a scan
context, the heuristic detectors that look for linkability and exposure risks,
and the services that collect, score, and report on scan targets.
"""
