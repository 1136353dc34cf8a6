"""
cdspredict - protein coding sequence prediction with competing Markov models.

ORFs ending in stop codons are found in the three forward frames of a DNA
sequence and scored by a trusted model trained on long ORFs against a
background model trained on short ORFs.
"""

__version__ = "0.1.0"
