"""Finding codes, dependency rules and the diagnostics orchestrator."""
