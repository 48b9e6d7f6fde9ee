"""Root-level conftest.py - anchors pytest's rootdir at the repository root.

Its presence puts the repository root on sys.path, so test modules can
import shared helpers as ``tests.helpers`` without tests/ being a package.
"""
