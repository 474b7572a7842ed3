"""
File Abstract Extractor — structured foreclosure facts from scanned PDF bundles.

Architecture: Chunk → Parallel LLM extraction → Serialized merge → Deterministic repairs
              → Validation → Targeted repair → Identity rendezvous → Final validation
Philosophy:  Trust the AI to read. Trust only code to merge, validate and gate.
"""

__version__ = "1.0.0"
