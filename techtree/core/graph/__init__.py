"""Tier computation and traversal over validated tech trees.

compute_tree() is a pure derivation: it never mutates the input tree and never
fails on a validated one. Cycles degrade to tier 1 with a recorded warning.
"""
