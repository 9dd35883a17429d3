"""
Memory module - layered persistent memory.

Tiers (injected in this order):
- condensed: Compressed narrative of old history
- recent turns: Raw chat history
- profile: Extracted user facts
- session summaries: Periodic bullet summaries
- manual memory: Facts saved via REMEMBER
- skills: Scored behavioral directives

Storage: any async key/value backend (in-memory, SQLite)
"""
