"""Planning and execution: atoms, the dependency graph, and the executor."""
