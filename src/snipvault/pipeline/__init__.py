"""snipvault chunk pipeline — chunker, codec, cipher, content hashing, assembler."""

from snipvault.pipeline.assembler import Assembler
from snipvault.pipeline.chunker import Chunker, ChunkedContent
from snipvault.pipeline.cipher import Cipher
from snipvault.pipeline.hashing import ContentHashIndex, fingerprint

__all__ = [
    "Assembler",
    "ChunkedContent",
    "Chunker",
    "Cipher",
    "ContentHashIndex",
    "fingerprint",
]
