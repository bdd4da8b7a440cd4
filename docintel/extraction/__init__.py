"""
Structured extraction: classification, core record, per-category records
and the deterministic validation / confidence pass over them.
"""
