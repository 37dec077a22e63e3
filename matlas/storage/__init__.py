"""
Every provider needs a storage for the resources it has created.

The storage classes are utilities with one purpose: storing and fetching
the last known state of a managed cluster between the provider's runs.
"""
