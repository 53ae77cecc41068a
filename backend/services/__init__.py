"""
Reconciliation services: matching, order mutations and the sync run.
"""
