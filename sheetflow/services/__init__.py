"""Engine services: registry, overlay resolver, field mapper, template resolver, orchestrator."""
