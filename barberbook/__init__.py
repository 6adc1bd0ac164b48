"""
barberbook - appointment slot computation for barbershops.
"""

__version__ = "0.1.0"
