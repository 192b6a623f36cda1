"""radcalc package.

BED/EQD2 dose conversions with an audited, locally stored alpha/beta
reference table. The CLI is exposed at package level: `from radcalc import cli`.
"""
from .cli import cli  # re-export the click CLI group at package level

__all__ = ["cli"]
