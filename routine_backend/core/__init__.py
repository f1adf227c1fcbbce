"""
Routine engine core: template, merger, debouncer, session state and coordinator
"""
