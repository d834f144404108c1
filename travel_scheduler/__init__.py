"""
Travel-aware schedule recalculation engine.

Entry points live in the submodules (e.g. ``travel_scheduler.engine``) so the
data models can import the pure time helpers without a circular import.
"""
