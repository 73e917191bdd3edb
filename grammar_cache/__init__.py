"""
grammar-cache: Hot-reloading speech grammar cache

Discovers SRGS grammar files on disk, rewrites them for the configured
language and hotword, and keeps a recognition engine in sync as files
change or rules are composed at runtime.
"""

__version__ = "0.1.0"
