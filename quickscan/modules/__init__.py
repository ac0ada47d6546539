"""Scan modules for QuickScan."""
