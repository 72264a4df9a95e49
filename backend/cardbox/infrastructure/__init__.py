"""Infrastructure Layer — in-memory store, owner directory and collaborator adapters.

Invariants:
    - Collaborator adapters (OCR, email) never raise into the lifecycle engine
      except through the documented error types
    - All external calls carry a timeout
"""
