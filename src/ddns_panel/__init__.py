"""
DDNS Panel - web configuration panel for a dynamic-DNS updater.

This package provides a small web service that stores credentials and
per-domain update rules, then triggers a synchronization pass whenever
the configuration is saved.
"""

__version__ = "0.1.0"
__author__ = "DDNS Panel Contributors"
