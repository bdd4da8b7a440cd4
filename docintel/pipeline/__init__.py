"""Document processing pipeline: state machine, events and the orchestrator."""
