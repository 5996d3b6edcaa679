"""
Promoter TFBS Profiler

Selects one TSS per coding gene, moves it onto the consensus DNase
hypersensitive site of its promoter and builds positional transcription
factor motif profiles around that anchor for gene-set comparisons.
"""

__version__ = "0.1.0"
__author__ = "Promoter TFBS Team"
