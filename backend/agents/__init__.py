"""Supply-chain analysis agents and their orchestrator."""
