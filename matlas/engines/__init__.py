"""
Engines are things that run around the reactor (see `matlas.reactor`)
to help it to function, but are not part of it: e.g. logging and sleeping.
"""
