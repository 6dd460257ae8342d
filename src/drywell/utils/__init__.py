# src/drywell/utils/__init__.py
