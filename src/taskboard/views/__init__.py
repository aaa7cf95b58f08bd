"""
View/filter engine.

Components:
- filters.py: Selector, ViewType, time windows and filter precedence
- search.py: pluggable fuzzy matchers and relevance ranking
"""
