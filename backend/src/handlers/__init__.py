"""Entry points: the resort API and the updater scripts."""
