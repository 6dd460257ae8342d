# src/drywell/cli/__init__.py
