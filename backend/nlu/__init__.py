"""NLU module: turns a merchant's message into an ordered list of commands.

Uses Groq's LLM when a key is configured. It does NOT execute anything, and
it is OPTIONAL: if the LLM fails, a keyword parser handles the simple forms.

Import from the submodules (nlu.intent_parser, nlu.fallback, ...).
"""
