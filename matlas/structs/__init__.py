"""
All the data structures used in the provider: the desired specs, the observed
statuses, the raw Atlas payloads, the identifiers, the settings.

Structs have no behaviour except for parsing/rendering themselves.
"""
