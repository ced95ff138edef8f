# gallery_agent/tools/encoders/__init__.py
"""
Text encoders package

    from gallery_agent.tools.encoders import TextEncoder, HashingTextEncoder, encode_batch
"""

from .mock_encoder import HashingTextEncoder, tokenize
from .provider_base import TextEncoder, encode_batch

__all__ = ["TextEncoder", "HashingTextEncoder", "encode_batch", "tokenize"]
