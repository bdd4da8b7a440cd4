"""
docintel — document intelligence pipeline for insurance policy documents.

Turns an uploaded policy PDF into retrievable, embedded text chunks plus
structured records (one core policy record and one record per detected
coverage category), and answers questions over several documents at once
with balanced per-document retrieval.
"""

__version__ = "0.1.0"
