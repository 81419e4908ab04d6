"""Secondhand marketplace where buyer and seller agents negotiate prices."""
