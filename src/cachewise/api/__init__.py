"""HTTP surface: invocation endpoints, cache metrics and health probes."""
