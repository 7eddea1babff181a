# File: clinicalanalysis/__init__.py
# Location: clinicalanalysis/clinicalanalysis/__init__.py

"""
clinicalanalysis Package.

This package drives a patient's clinical analysis through a sequence of
optional, interdependent compute stages (phenotype matching, clinical
screening, literature search) hosted by separate backend services, and
exposes live stage status and blended progress to its host.
"""

from .version import __version__
