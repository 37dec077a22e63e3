"""
Utilities to prepare the runtime environment: e.g. loading the cluster
configuration files before any of the provider's activities start.
"""
