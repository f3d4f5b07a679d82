"""Infrastructure adapters: processes, host facts, sources, package managers."""
