"""Provider-neutral LLM access: adapters, retry, resolution."""
