"""History-Reconciler: health-history normalization and reconciliation engine.

Turns heterogeneous third-party health-history payloads into a canonical
per-patient history and merges patient-submitted revisions back into it
under provenance rules.
"""

__version__ = "1.0.0"
