"""api/ -- FastAPI HTTP surface for VoidRunner.

Layer rule: api/ imports from auth/ and core/, never the other way around.
"""
