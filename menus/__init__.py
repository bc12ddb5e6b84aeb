"""Terminal interaction: prompts, selection lists and output formatting."""
