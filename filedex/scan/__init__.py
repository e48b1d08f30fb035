"""Update pipeline: walk, hash, reconcile."""
