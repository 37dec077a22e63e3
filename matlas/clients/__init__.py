"""
All the routines to talk to the MongoDB Atlas Admin API.

Beware: this is NOT a generic Atlas client. It is a set of dedicated adapters
specially tailored to the provider's tasks: the clusters' lifecycle only.

The operations MUST NOT rely on how the provider communicates with Atlas:
the underlying HTTP library (now, ``aiohttp``) can be replaced in the future.
"""
