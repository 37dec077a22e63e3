"""
The reactor is the provider's core: it turns the desired cluster specs
into Atlas API requests, waits for the clusters to settle, and reports back.

* `matlas.reactor.translating` maps the specs to/from Atlas payloads.
* `matlas.reactor.polling` waits for a cluster to reach a target state.
* `matlas.reactor.handling` combines them into the resource operations.
"""
