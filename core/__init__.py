"""core/ -- Kernel modules shared by every layer (configuration).

Layer rule: core/ has no reverse dependencies. It may not import from api/ or auth/.
"""
