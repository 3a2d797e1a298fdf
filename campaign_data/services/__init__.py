"""
Services composing tenant-scoped repositories: region statistics and edits,
demands, documents and supporters.
"""
