"""
DME order extraction from physician notes.

Two interchangeable strategies (deterministic rules and a schema-constrained
LLM call) produce the same ``NormalizedOrder`` record, which the pipeline
submits to a downstream order API.
"""

from .errors import ExtractionError, InvalidInput, UpstreamError
from .extractors.base import OrderExtractor, build_extractor
from .extractors.model_extractor import ModelBasedExtractor
from .extractors.rule_extractor import RuleBasedExtractor, extract_order
from .models import NormalizedOrder

__all__ = [
    'ExtractionError',
    'InvalidInput',
    'UpstreamError',
    'OrderExtractor',
    'build_extractor',
    'ModelBasedExtractor',
    'RuleBasedExtractor',
    'extract_order',
    'NormalizedOrder',
]
