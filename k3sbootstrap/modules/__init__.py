"""Bootstrap building blocks: inventory, stages and the work each stage does."""
